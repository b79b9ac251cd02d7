"""
Optimizers
====================

Factory and utilities for torch optimizers:

- build_optimizer : string identifier -> torch.optim.Optimizer
- clip_grad_norm : global L2 gradient clipping (0 disables)
- global_grad_norm : read-only global gradient norm
- optimizer_state_dict / load_optimizer_state_dict : checkpoint helpers
"""

from __future__ import annotations

from .optimizer_builder import (
    build_optimizer,
    clip_grad_norm,
    global_grad_norm,
    load_optimizer_state_dict,
    optimizer_state_dict,
)

__all__ = [
    "build_optimizer",
    "clip_grad_norm",
    "global_grad_norm",
    "optimizer_state_dict",
    "load_optimizer_state_dict",
]
