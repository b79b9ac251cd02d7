from __future__ import annotations

import json
import os
import socket
import sys
import time
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import numpy as np
import torch as th

from ..utils.common_utils import _to_scalar
from ..utils.logger_utils import META_KEYS, _make_run_dir
from .base_writer import Writer


class Logger:
    """
    Scalar-first experiment logger (frontend).

    Frontend concerns handled here:

    - owning a per-run directory ``{log_dir}/{exp_name}/{run_id}``
    - step inference (explicit argument, custom callable, or bound trainer)
    - key prefixing (``"train"`` + ``"Value loss"`` -> ``"train/Value loss"``)
    - optional dropping of NaN/Inf values
    - in-memory aggregation (`record` then `dump`)
    - console printing and periodic flushing, both counted in `log()` calls
    - metadata and config dumps

    I/O is delegated to :class:`Writer` backends.

    Parameters
    ----------
    log_dir : str, default="./runs"
        Root directory for experiment runs.
    exp_name : str, default="exp"
        Experiment subdirectory.
    run_id : str, optional
        Explicit run identifier; generated when omitted.
    overwrite : bool, default=False
        Reuse an existing run directory instead of suffixing ``_{k}``.
    resume : bool, default=False
        Append to an existing run directory (must exist).
    writers : Iterable[Writer], optional
        Backends attached at construction.
    console_every : int, default=1
        Print a console line every N `log()` calls; <= 0 disables.
    flush_every : int, default=200
        Flush writers every N `log()` calls; <= 0 disables.
    drop_non_finite : bool, default=False
        Discard NaN/Inf values.
    strict : bool, default=False
        Re-raise writer failures. Otherwise they are collected in
        :attr:`errors` and logging continues.
    """

    def __init__(
        self,
        *,
        log_dir: str = "./runs",
        exp_name: str = "exp",
        run_id: Optional[str] = None,
        overwrite: bool = False,
        resume: bool = False,
        writers: Optional[Iterable[Writer]] = None,
        console_every: int = 1,
        flush_every: int = 200,
        drop_non_finite: bool = False,
        strict: bool = False,
    ) -> None:
        self.strict = bool(strict)
        self._errors: List[str] = []

        self.run_dir = _make_run_dir(
            log_dir,
            exp_name,
            run_id=run_id,
            overwrite=bool(overwrite),
            resume=bool(resume),
        )
        os.makedirs(self.run_dir, exist_ok=True)

        self.console_every = int(console_every)
        self.flush_every = int(flush_every)
        self.drop_non_finite = bool(drop_non_finite)

        self._start_time = time.time()
        self._log_calls = 0
        self._step_fn: Optional[Callable[[], int]] = None
        self._buffer: Dict[str, List[float]] = defaultdict(list)
        self._writers: List[Writer] = list(writers) if writers is not None else []

        try:
            self.dump_metadata(filename="metadata.json")
        except OSError as e:
            self._handle_exception(e, "dump_metadata")

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def errors(self) -> List[str]:
        """Messages of writer failures swallowed in non-strict mode."""
        return list(self._errors)

    # ---------------------------------------------------------------------
    # Step inference
    # ---------------------------------------------------------------------
    def set_step_fn(self, fn: Optional[Callable[[], int]]) -> None:
        self._step_fn = fn

    def bind_trainer(self, trainer: Any) -> None:
        """Infer the step from ``trainer.global_env_step`` when none is given."""
        self._step_fn = lambda: int(getattr(trainer, "global_env_step", 0))

    def _infer_step(self, step: Optional[int]) -> int:
        if step is not None:
            return int(step)
        if self._step_fn is not None:
            return int(self._step_fn())
        return 0

    # ---------------------------------------------------------------------
    # Error handling
    # ---------------------------------------------------------------------
    def _handle_exception(self, err: Exception, context: str) -> None:
        msg = f"[{self.__class__.__name__}] {context}: {type(err).__name__}: {err}"
        self._errors.append(msg)
        if self.strict:
            raise err

    # ---------------------------------------------------------------------
    # Key normalization
    # ---------------------------------------------------------------------
    @staticmethod
    def _join_name(prefix: str, key: Any) -> str:
        p = str(prefix).strip().replace("\\", "/").strip("/")
        k = str(key).strip().replace("\\", "/").lstrip("/")
        return f"{p}/{k}" if p else k

    def _scalarize(self, metrics: Mapping[str, Any], prefix: str) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for k, v in metrics.items():
            val = _to_scalar(v)
            if val is None:
                continue
            if self.drop_non_finite and not np.isfinite(val):
                continue
            out[self._join_name(prefix, k)] = float(val)
        return out

    # ---------------------------------------------------------------------
    # Public logging APIs
    # ---------------------------------------------------------------------
    def log(self, metrics: Mapping[str, Any], step: Optional[int] = None, *, prefix: str = "") -> None:
        """
        Write metrics to every backend immediately.

        Non-scalar values are skipped. The meta keys ``step``, ``wall_time``
        and ``timestamp`` are injected into every row.
        """
        s = self._infer_step(step)
        self._log_calls += 1

        row = self._scalarize(metrics, prefix)
        now = time.time()
        row["step"] = float(s)
        row["wall_time"] = float(now - self._start_time)
        row["timestamp"] = float(now)

        for w in self._writers:
            try:
                w.write(row)
            except (OSError, ValueError, TypeError) as e:
                self._handle_exception(e, f"writer.write({w.__class__.__name__})")

        if self.console_every > 0 and (self._log_calls % self.console_every == 0):
            self._print_console(row)

        if self.flush_every > 0 and (self._log_calls % self.flush_every == 0):
            self.flush()

    def record(self, metrics: Mapping[str, Any], *, prefix: str = "") -> None:
        """Buffer metrics for later aggregation by :meth:`dump`."""
        for k, v in self._scalarize(metrics, prefix).items():
            self._buffer[k].append(v)

    def dump(self, step: Optional[int] = None, *, agg: str = "mean", clear: bool = True) -> None:
        """
        Aggregate buffered values per key and emit them through :meth:`log`.

        Raises
        ------
        ValueError
            If `agg` is not one of mean|min|max|std.
        """
        op = str(agg).lower().strip()
        reducers = {"mean": np.mean, "min": np.min, "max": np.max, "std": np.std}
        if op not in reducers:
            raise ValueError(f"Unknown agg={agg!r}. Use mean|min|max|std.")

        out = {
            k: float(reducers[op](np.asarray(vals, dtype=np.float64)))
            for k, vals in self._buffer.items()
            if vals
        }
        if clear:
            self._buffer.clear()
        if out:
            self.log(out, step=step)

    # ---------------------------------------------------------------------
    # Config / metadata
    # ---------------------------------------------------------------------
    def dump_config(self, config: Mapping[str, Any], filename: str = "config.json") -> None:
        path = os.path.join(self.run_dir, filename)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(dict(config), f, indent=2, ensure_ascii=False, default=str)

    def dump_metadata(self, filename: str = "metadata.json") -> None:
        """Write host, interpreter and torch/CUDA information into ``run_dir``."""
        meta: Dict[str, Any] = {
            "run_dir": self.run_dir,
            "start_time_unix": float(self._start_time),
            "start_time_iso": datetime.fromtimestamp(self._start_time).isoformat(),
            "host": socket.gethostname(),
            "pid": os.getpid(),
            "python": sys.version.replace("\n", " "),
            "platform": sys.platform,
            "torch": str(th.__version__),
            "cuda_available": bool(th.cuda.is_available()),
        }
        path = os.path.join(self.run_dir, filename)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(meta, f, indent=2, ensure_ascii=False, default=str)

    # ---------------------------------------------------------------------
    # Writer lifecycle
    # ---------------------------------------------------------------------
    def add_writer(self, writer: Writer) -> None:
        self._writers.append(writer)

    def add_writers(self, writers: Iterable[Writer]) -> None:
        for w in writers:
            self.add_writer(w)

    def flush(self) -> None:
        for w in self._writers:
            try:
                w.flush()
            except (OSError, ValueError) as e:
                self._handle_exception(e, f"writer.flush({w.__class__.__name__})")

    def close(self) -> None:
        try:
            self.flush()
        finally:
            for w in self._writers:
                try:
                    w.close()
                except (OSError, ValueError) as e:
                    self._handle_exception(e, f"writer.close({w.__class__.__name__})")

    # ---------------------------------------------------------------------
    # Console output
    # ---------------------------------------------------------------------
    @staticmethod
    def _print_console(row: Mapping[str, float]) -> None:
        """Print ``[step=.. | t=..s] key=value ...`` for up to six metrics."""
        step = int(row.get("step", 0.0))
        wall = float(row.get("wall_time", 0.0))
        shown = [f"{k}={float(v):.4g}" for k, v in row.items() if k not in META_KEYS][:6]
        print(f"[step={step} | t={wall:.1f}s] " + " ".join(shown))
