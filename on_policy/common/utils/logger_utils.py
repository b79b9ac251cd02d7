from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, TextIO, Tuple, List
import csv
import json
import os
import uuid


# =============================================================================
# Metadata convention
# =============================================================================
# Keys injected by the Logger on every row; writers treat them as an index.
META_KEYS: Tuple[str, str, str] = ("step", "wall_time", "timestamp")


# =============================================================================
# Run directory utilities
# =============================================================================
def _generate_run_id() -> str:
    """
    Generate a run identifier like ``"2026-01-22_14-03-12_a1b2c3d4"``.

    The timestamp prefix keeps directories sorted; the random suffix avoids
    collisions between launches within the same second.
    """
    ts = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


def _make_run_dir(
    log_dir: str,
    exp_name: str,
    *,
    run_id: Optional[str] = None,
    overwrite: bool = False,
    resume: bool = False,
) -> str:
    """
    Resolve ``{log_dir}/{exp_name}/{run_id}`` for an experiment.

    Parameters
    ----------
    log_dir : str
        Root logging directory (e.g., ``"./runs"``).
    exp_name : str
        Experiment name (subdirectory under ``log_dir``).
    run_id : Optional[str], default=None
        Explicit run identifier. Generated via `_generate_run_id()` if None.
    overwrite : bool, default=False
        Reuse the directory even if it exists. Otherwise a ``_{k}`` suffix is
        appended on collision.
    resume : bool, default=False
        Return the path as-is; the directory must already exist.

    Returns
    -------
    run_dir : str
        Resolved run directory path (not created).

    Raises
    ------
    FileNotFoundError
        If ``resume=True`` and the directory does not exist.
    """
    base = os.path.join(str(log_dir), str(exp_name))
    rid = run_id or _generate_run_id()
    path = os.path.join(base, str(rid))

    if resume:
        if not os.path.exists(path):
            raise FileNotFoundError(f"resume=True but run_dir does not exist: {path}")
        return path

    if overwrite or (not os.path.exists(path)):
        return path

    i = 1
    while os.path.exists(f"{path}_{i}"):
        i += 1
    return f"{path}_{i}"


# =============================================================================
# Metric row helpers
# =============================================================================
def _split_meta(row: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, float]]:
    """
    Split a row into (meta, metrics) based on META_KEYS.

    Meta values keep their type (timestamp may be a float or string); metric
    values are cast to float.
    """
    meta = {k: row[k] for k in META_KEYS if k in row}
    metrics = {str(k): float(v) for k, v in row.items() if k not in META_KEYS}
    return meta, metrics


def _json_dumps(obj: Any) -> str:
    """JSON with ``ensure_ascii=False`` and ``default=str`` for non-JSON objects."""
    return json.dumps(obj, ensure_ascii=False, default=str)


# =============================================================================
# Filesystem helpers for writers
# =============================================================================
def _ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _open_append(
    path: str,
    *,
    newline: Optional[str] = None,
    encoding: str = "utf-8",
) -> TextIO:
    """
    Open a file in append mode, creating the parent directory if needed.

    Notes
    -----
    Caller owns the returned handle. For CSV pass ``newline=""``.
    """
    dirpath = os.path.dirname(path)
    if dirpath:
        _ensure_dir(dirpath)
    return open(path, "a", newline=newline, encoding=encoding)


def _read_csv_header(path: str, *, encoding: str = "utf-8") -> Optional[List[str]]:
    """
    Read the first row of an existing CSV file.

    Returns None if the file is missing, empty, or unreadable.
    """
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", newline="", encoding=encoding) as rf:
            header = next(csv.reader(rf), None)
    except (OSError, csv.Error, UnicodeDecodeError):
        return None
    if not header:
        return None
    return [str(h) for h in header]


def _safe_call(obj: Optional[Any], method: str) -> None:
    """
    Best-effort method call used for flush/close on shutdown paths.

    Missing methods are ignored; I/O errors are ignored.
    """
    if obj is None:
        return
    fn = getattr(obj, method, None)
    if not callable(fn):
        return
    try:
        fn()
    except (OSError, ValueError):
        pass
