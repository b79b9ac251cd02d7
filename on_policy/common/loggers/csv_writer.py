from __future__ import annotations

import csv
import os
from typing import List, Mapping, Optional, TextIO

from .base_writer import Writer
from ..utils.logger_utils import _open_append, _read_csv_header, _safe_call


class CSVWriter(Writer):
    """
    Wide CSV backend: one row per ``write()`` call with a frozen column schema.

    The schema is fixed once per file:

    - new or empty file: the keys of the first row, written as the header;
    - existing file (resumed run): the header already on disk.

    Keys outside the frozen schema are dropped and missing keys are written as
    empty cells, so the file stays rectangular across resumes.

    Parameters
    ----------
    run_dir : str
        Directory where the CSV file is created or appended to.
    filename : str, default="metrics.csv"
        CSV filename inside ``run_dir``.
    encoding : str, default="utf-8"
        Text encoding for reading and writing.
    """

    def __init__(self, run_dir: str, *, filename: str = "metrics.csv", encoding: str = "utf-8") -> None:
        self._path = os.path.join(run_dir, filename)
        self._encoding = encoding
        self._fieldnames: List[str] = _read_csv_header(self._path, encoding=encoding) or []
        self._f: Optional[TextIO] = _open_append(self._path, newline="", encoding=encoding)
        self._writer: Optional[csv.DictWriter] = None
        if self._fieldnames:
            self._writer = csv.DictWriter(self._f, fieldnames=self._fieldnames)

    @property
    def path(self) -> str:
        return self._path

    @property
    def fieldnames(self) -> List[str]:
        return list(self._fieldnames)

    def write(self, row: Mapping[str, float]) -> None:
        if self._f is None:
            raise ValueError(f"CSVWriter for {self._path} is closed")

        if self._writer is None:
            self._fieldnames = [str(k) for k in row.keys()]
            self._writer = csv.DictWriter(self._f, fieldnames=self._fieldnames)
            self._writer.writeheader()

        self._writer.writerow({k: row.get(k, "") for k in self._fieldnames})

    def flush(self) -> None:
        _safe_call(self._f, "flush")

    def close(self) -> None:
        if self._f is None:
            return
        try:
            self.flush()
        finally:
            _safe_call(self._f, "close")
            self._f = None
            self._writer = None
