from __future__ import annotations

from typing import Mapping

from torch.utils.tensorboard import SummaryWriter

from .base_writer import Writer
from ..utils.logger_utils import _split_meta


class TensorBoardWriter(Writer):
    """
    TensorBoard backend: every non-meta key becomes a scalar series.

    The row's ``step`` meta key is used as ``global_step`` so TensorBoard curves
    line up with the CSV/JSONL files.

    Parameters
    ----------
    run_dir : str
        Directory where event files are written.
    """

    def __init__(self, run_dir: str) -> None:
        self._tb = SummaryWriter(log_dir=run_dir)

    def write(self, row: Mapping[str, float]) -> None:
        meta, metrics = _split_meta(row)
        step = int(float(meta.get("step", 0)))
        for k, v in metrics.items():
            self._tb.add_scalar(str(k), float(v), global_step=step)

    def flush(self) -> None:
        self._tb.flush()

    def close(self) -> None:
        self._tb.close()
