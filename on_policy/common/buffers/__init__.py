"""
buffers
=======

Public exports for the ``buffers`` subpackage.

>>> from on_policy.common.buffers import RolloutStorage

Notes
-----
- :class:`BaseRolloutStorage` allocates the time-major tensors and defines the
  insert / compute_returns / after_update contract.
- :class:`RolloutStorage` implements it for synchronous A2C, with plain
  discounted or GAE(λ) returns.
"""

from __future__ import annotations

from .base_buffer import BaseRolloutStorage
from .rollout_storage import RolloutStorage

__all__ = (
    "BaseRolloutStorage",
    "RolloutStorage",
)
