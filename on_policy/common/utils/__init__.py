"""
Utils
====================

This subpackage aggregates small, reusable helpers used across the codebase.

Modules included
----------------
- buffer_utils
    Discounted and GAE(λ) return recurrences over time-major rollouts.
- common_utils
    NumPy/Torch conversion helpers, scalar coercion, and shape validation.
- logger_utils
    Run-directory management and lightweight CSV/JSON serialization helpers.
- network_utils
    Weight initialization and input batching helpers.
- train_utils
    Seeding and gymnasium vector-env I/O helpers (masks, action formatting).

Design policy
-------------
- Functions prefixed with '_' are semi-private: importable for internal use,
  but not guaranteed as a stable public API.
"""

from __future__ import annotations

from .buffer_utils import compute_discounted_returns, compute_gae_returns
from .common_utils import _mean, _to_scalar, _to_tensor, _validate_shape
from .network_utils import _ensure_batch, _make_weights_init
from .train_utils import _done_mask, _format_env_action, _obs_shape_from_space, _set_random_seed

__all__ = [
    "compute_discounted_returns",
    "compute_gae_returns",
    "_to_tensor",
    "_to_scalar",
    "_mean",
    "_validate_shape",
    "_make_weights_init",
    "_ensure_batch",
    "_set_random_seed",
    "_done_mask",
    "_format_env_action",
    "_obs_shape_from_space",
]
