from __future__ import annotations

import os
from typing import Mapping, Optional, TextIO

from .base_writer import Writer
from ..utils.logger_utils import _json_dumps, _open_append, _safe_call


class JSONLWriter(Writer):
    """
    JSON Lines backend: exactly one JSON object per ``write()`` call.

    ``{"step": 40.0, "train/Value loss": 0.12, ...}\\n``

    Unlike the wide CSV, new keys may appear at any row.

    Parameters
    ----------
    run_dir : str
        Directory where the JSONL file is created or appended to.
    filename : str, default="metrics.jsonl"
        Filename inside ``run_dir``.
    """

    def __init__(self, run_dir: str, filename: str = "metrics.jsonl") -> None:
        self._path = os.path.join(run_dir, filename)
        self._f: Optional[TextIO] = _open_append(self._path)

    @property
    def path(self) -> str:
        return self._path

    def write(self, row: Mapping[str, float]) -> None:
        if self._f is None:
            raise ValueError(f"JSONLWriter for {self._path} is closed")
        self._f.write(_json_dumps(dict(row)) + "\n")

    def flush(self) -> None:
        _safe_call(self._f, "flush")

    def close(self) -> None:
        _safe_call(self._f, "close")
        self._f = None
