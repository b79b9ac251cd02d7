from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Mapping, Optional


class Writer(ABC):
    """
    Abstract base class for metric writer backends.

    Contract
    --------
    - `write(row)` consumes one mapping of metric names to scalars. Rows carry
      the meta keys ``step``, ``wall_time`` and ``timestamp`` injected by the
      :class:`~on_policy.common.loggers.Logger`.
    - `flush()` and `close()` should be idempotent.
    - Implementations raise on failure; suppression is the job of
      :class:`SafeWriter` or of the logger's ``strict`` policy.
    """

    @abstractmethod
    def write(self, row: Mapping[str, float]) -> None:
        raise NotImplementedError

    @abstractmethod
    def flush(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError


class SafeWriter(Writer):
    """
    Failure-isolating wrapper for a :class:`Writer`.

    I/O and serialization errors raised by the inner writer are recorded in
    :attr:`errors` instead of propagating into the training loop.

    Parameters
    ----------
    inner : Writer
        The concrete writer to wrap.
    name : str, optional
        Identifier used in recorded error messages. Defaults to the inner
        class name.
    """

    def __init__(self, inner: Writer, *, name: Optional[str] = None) -> None:
        self._inner = inner
        self._name = name or inner.__class__.__name__
        self.errors: List[str] = []

    def _record(self, op: str, err: Exception) -> None:
        self.errors.append(f"[{self._name}] {op}: {type(err).__name__}: {err}")

    def write(self, row: Mapping[str, float]) -> None:
        try:
            self._inner.write(row)
        except (OSError, ValueError, TypeError) as e:
            self._record("write", e)

    def flush(self) -> None:
        try:
            self._inner.flush()
        except (OSError, ValueError) as e:
            self._record("flush", e)

    def close(self) -> None:
        try:
            self._inner.close()
        except (OSError, ValueError) as e:
            self._record("close", e)
