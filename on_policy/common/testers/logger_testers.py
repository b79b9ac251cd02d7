from __future__ import annotations

import csv
import json
import os
from typing import Any, Callable, List, Mapping, Tuple

from on_policy.common.loggers import CSVWriter, JSONLWriter, Logger, SafeWriter, Writer, build_logger
from on_policy.common.testers.test_utils import (
    assert_close,
    assert_eq,
    assert_file_exists,
    assert_in,
    assert_raises,
    assert_true,
    mk_tmp_dir,
    read_text,
    run_tests,
)


class FailingWriter(Writer):
    def write(self, row: Mapping[str, float]) -> None:
        raise OSError("disk full")

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


class ListWriter(Writer):
    def __init__(self) -> None:
        self.rows: List[dict] = []

    def write(self, row: Mapping[str, float]) -> None:
        self.rows.append(dict(row))

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


def _read_csv(path: str) -> List[dict]:
    with open(path, "r", newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def _read_jsonl(path: str) -> List[dict]:
    return [json.loads(line) for line in read_text(path).splitlines() if line.strip()]


# =============================================================================
# Tests: run directory
# =============================================================================
def test_run_dir_layout_and_metadata() -> None:
    root = mk_tmp_dir()
    logger = Logger(log_dir=root, exp_name="cartpole", run_id="r0", console_every=0)
    assert_eq(logger.run_dir, os.path.join(root, "cartpole", "r0"))
    assert_file_exists(os.path.join(logger.run_dir, "metadata.json"))

    meta = json.loads(read_text(os.path.join(logger.run_dir, "metadata.json")))
    assert_in("torch", meta)
    assert_in("host", meta)
    logger.close()


def test_run_dir_collision_suffix_and_resume() -> None:
    root = mk_tmp_dir()
    first = Logger(log_dir=root, exp_name="e", run_id="r", console_every=0)
    second = Logger(log_dir=root, exp_name="e", run_id="r", console_every=0)
    assert_eq(second.run_dir, first.run_dir + "_1")

    resumed = Logger(log_dir=root, exp_name="e", run_id="r", resume=True, console_every=0)
    assert_eq(resumed.run_dir, first.run_dir)

    assert_raises(
        FileNotFoundError,
        lambda: Logger(log_dir=root, exp_name="e", run_id="missing", resume=True),
    )
    for lg in (first, second, resumed):
        lg.close()


# =============================================================================
# Tests: backends
# =============================================================================
def test_log_writes_csv_and_jsonl_with_prefix_and_meta() -> None:
    logger = build_logger(log_dir=mk_tmp_dir(), exp_name="e", run_id="r", console_every=0)
    logger.log({"Value loss": 0.5, "Entropy": 0.69}, step=40, prefix="train")
    logger.log({"Value loss": 0.25, "Entropy": 0.6}, step=80, prefix="train")
    logger.close()

    rows = _read_csv(os.path.join(logger.run_dir, "metrics.csv"))
    assert_eq(len(rows), 2)
    assert_in("train/Value loss", rows[0])
    assert_close(float(rows[1]["train/Value loss"]), 0.25)
    assert_close(float(rows[1]["step"]), 80.0)

    lines = _read_jsonl(os.path.join(logger.run_dir, "metrics.jsonl"))
    assert_eq(len(lines), 2)
    for key in ("step", "wall_time", "timestamp", "train/Entropy"):
        assert_in(key, lines[0])


def test_csv_header_is_frozen_and_reused_on_resume() -> None:
    run_dir = mk_tmp_dir()
    w = CSVWriter(run_dir)
    w.write({"step": 1.0, "a": 1.0, "b": 2.0})
    w.write({"step": 2.0, "a": 3.0, "c": 9.0})
    assert_eq(w.fieldnames, ["step", "a", "b"])
    w.close()
    assert_raises(ValueError, lambda: w.write({"step": 3.0}))

    resumed = CSVWriter(run_dir)
    assert_eq(resumed.fieldnames, ["step", "a", "b"])
    resumed.write({"step": 3.0, "b": 5.0})
    resumed.close()

    rows = _read_csv(w.path)
    assert_eq(len(rows), 3)
    assert_eq(rows[1]["b"], "")
    assert_true("c" not in rows[1])
    assert_eq(rows[2]["a"], "")


def test_jsonl_allows_new_keys() -> None:
    w = JSONLWriter(mk_tmp_dir())
    w.write({"step": 1.0, "a": 1.0})
    w.write({"step": 2.0, "z": 2.0})
    w.close()

    lines = _read_jsonl(w.path)
    assert_eq(lines[1], {"step": 2.0, "z": 2.0})


def test_tensorboard_backend_writes_event_file() -> None:
    logger = build_logger(
        log_dir=mk_tmp_dir(),
        exp_name="e",
        run_id="r",
        use_csv=False,
        use_jsonl=False,
        use_tensorboard=True,
        console_every=0,
    )
    logger.log({"Value loss": 1.0}, step=5, prefix="train")
    logger.close()

    events = [f for f in os.listdir(logger.run_dir) if f.startswith("events.out.tfevents")]
    assert_true(len(events) >= 1, "expected a TensorBoard event file")


# =============================================================================
# Tests: aggregation / filtering / steps
# =============================================================================
def test_record_dump_aggregates_and_clears() -> None:
    sink = ListWriter()
    logger = Logger(log_dir=mk_tmp_dir(), writers=[sink], console_every=0)
    logger.record({"loss": 1.0}, prefix="train")
    logger.record({"loss": 3.0}, prefix="train")
    logger.dump(step=10)
    logger.dump(step=11)

    assert_eq(len(sink.rows), 1, "an empty buffer must not emit a row")
    assert_close(sink.rows[0]["train/loss"], 2.0)
    assert_close(sink.rows[0]["step"], 10.0)

    logger.record({"loss": 1.0})
    logger.record({"loss": 3.0})
    logger.dump(step=12, agg="max")
    assert_close(sink.rows[1]["loss"], 3.0)

    assert_raises(ValueError, lambda: logger.dump(agg="median"))


def test_drop_non_finite_and_non_scalars() -> None:
    sink = ListWriter()
    logger = Logger(log_dir=mk_tmp_dir(), writers=[sink], console_every=0, drop_non_finite=True)
    logger.log({"ok": 1.0, "nan": float("nan"), "inf": float("inf"), "vec": [1.0, 2.0]}, step=0)

    row = sink.rows[0]
    assert_in("ok", row)
    for key in ("nan", "inf", "vec"):
        assert_true(key not in row, f"{key} should be dropped")


def test_step_inferred_from_bound_trainer() -> None:
    class _T:
        global_env_step = 123

    sink = ListWriter()
    logger = Logger(log_dir=mk_tmp_dir(), writers=[sink], console_every=0)
    logger.bind_trainer(_T())
    logger.log({"x": 1.0})
    assert_close(sink.rows[0]["step"], 123.0)

    logger.set_step_fn(lambda: 7)
    logger.log({"x": 1.0})
    assert_close(sink.rows[1]["step"], 7.0)


# =============================================================================
# Tests: failure policy
# =============================================================================
def test_writer_failure_collected_when_not_strict() -> None:
    sink = ListWriter()
    logger = Logger(log_dir=mk_tmp_dir(), writers=[FailingWriter(), sink], console_every=0)
    logger.log({"x": 1.0}, step=1)

    assert_eq(len(sink.rows), 1, "healthy writers must still receive the row")
    assert_eq(len(logger.errors), 1)
    assert_in("disk full", logger.errors[0])


def test_writer_failure_raises_when_strict() -> None:
    logger = Logger(log_dir=mk_tmp_dir(), writers=[FailingWriter()], console_every=0, strict=True)
    assert_raises(OSError, lambda: logger.log({"x": 1.0}, step=1))


def test_safe_writer_records_errors() -> None:
    safe = SafeWriter(FailingWriter(), name="broken")
    safe.write({"x": 1.0})
    assert_eq(len(safe.errors), 1)
    assert_true(safe.errors[0].startswith("[broken] write"))


def test_logger_context_manager_closes_writers() -> None:
    with build_logger(log_dir=mk_tmp_dir(), exp_name="e", run_id="r", console_every=0) as logger:
        logger.log({"x": 1.0}, step=1)
        csv_path = os.path.join(logger.run_dir, "metrics.csv")
    assert_eq(len(_read_csv(csv_path)), 1)


# =============================================================================
# Simple runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("run_dir_layout_metadata", test_run_dir_layout_and_metadata),
    ("run_dir_collision_resume", test_run_dir_collision_suffix_and_resume),
    ("log_csv_jsonl_prefix_meta", test_log_writes_csv_and_jsonl_with_prefix_and_meta),
    ("csv_header_frozen_resume", test_csv_header_is_frozen_and_reused_on_resume),
    ("jsonl_new_keys", test_jsonl_allows_new_keys),
    ("tensorboard_event_file", test_tensorboard_backend_writes_event_file),
    ("record_dump_aggregate", test_record_dump_aggregates_and_clears),
    ("drop_non_finite", test_drop_non_finite_and_non_scalars),
    ("step_from_trainer", test_step_inferred_from_bound_trainer),
    ("writer_failure_non_strict", test_writer_failure_collected_when_not_strict),
    ("writer_failure_strict", test_writer_failure_raises_when_strict),
    ("safe_writer_errors", test_safe_writer_records_errors),
    ("context_manager_closes", test_logger_context_manager_closes_writers),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="loggers")


if __name__ == "__main__":
    raise SystemExit(main())
