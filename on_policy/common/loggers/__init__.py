"""
Loggers
====================

- Logger frontend (run directory, step inference, buffering, console line)
- Writer backends (CSV, JSONL, TensorBoard) and a failure-isolating wrapper
- `build_logger` to wire a Logger with selected backends

Typical usage
-------------
::

    from on_policy.common.loggers import build_logger

    logger = build_logger(log_dir="./runs", exp_name="cartpole_a2c")
    logger.log({"Value loss": 0.1}, step=40, prefix="train")
    logger.close()
"""

from __future__ import annotations

from .base_writer import SafeWriter, Writer
from .csv_writer import CSVWriter
from .jsonl_writer import JSONLWriter
from .logger import Logger
from .logger_builder import build_logger
from .tensorboard_writer import TensorBoardWriter

__all__ = [
    "Logger",
    "Writer",
    "SafeWriter",
    "CSVWriter",
    "JSONLWriter",
    "TensorBoardWriter",
    "build_logger",
]
