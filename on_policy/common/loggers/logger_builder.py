from __future__ import annotations

from typing import List, Optional

from .base_writer import Writer
from .csv_writer import CSVWriter
from .jsonl_writer import JSONLWriter
from .logger import Logger
from .tensorboard_writer import TensorBoardWriter


def build_logger(
    *,
    log_dir: str = "./runs",
    exp_name: str = "exp",
    run_id: Optional[str] = None,
    overwrite: bool = False,
    resume: bool = False,
    # backend enable flags
    use_csv: bool = True,
    use_jsonl: bool = True,
    use_tensorboard: bool = False,
    # logger behavior
    console_every: int = 1,
    flush_every: int = 200,
    drop_non_finite: bool = False,
    strict: bool = False,
) -> Logger:
    """
    Construct a :class:`Logger` and attach the selected writer backends.

    The logger is created first because it resolves ``run_dir``; writers are
    then opened inside that directory.

    Parameters
    ----------
    log_dir, exp_name, run_id, overwrite, resume
        Run directory resolution, see :class:`Logger`.
    use_csv : bool, default=True
        Attach :class:`CSVWriter` (``metrics.csv``).
    use_jsonl : bool, default=True
        Attach :class:`JSONLWriter` (``metrics.jsonl``).
    use_tensorboard : bool, default=False
        Attach :class:`TensorBoardWriter` (event files in ``run_dir``).
    console_every, flush_every, drop_non_finite, strict
        Logger behavior, see :class:`Logger`.

    Returns
    -------
    Logger
    """
    logger = Logger(
        log_dir=str(log_dir),
        exp_name=str(exp_name),
        run_id=run_id,
        overwrite=bool(overwrite),
        resume=bool(resume),
        writers=None,
        console_every=int(console_every),
        flush_every=int(flush_every),
        drop_non_finite=bool(drop_non_finite),
        strict=bool(strict),
    )

    writers: List[Writer] = []
    if use_csv:
        writers.append(CSVWriter(logger.run_dir))
    if use_jsonl:
        writers.append(JSONLWriter(logger.run_dir))
    if use_tensorboard:
        writers.append(TensorBoardWriter(logger.run_dir))

    logger.add_writers(writers)
    return logger
