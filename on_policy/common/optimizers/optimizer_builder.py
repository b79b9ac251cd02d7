from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Union

import torch as th
import torch.nn as nn
import torch.optim as optim
from torch.optim import Optimizer


_OPTIMIZER_ALIASES: Dict[str, str] = {
    "rmsprop": "rmsprop",
    "rms": "rmsprop",
}


def _normalize_name(name: str) -> str:
    key = str(name).lower().strip().replace("-", "").replace("_", "")
    if key not in _OPTIMIZER_ALIASES:
        raise ValueError(f"Unknown optimizer name: {name!r}")
    return _OPTIMIZER_ALIASES[key]


# =============================================================================
# Optimizer factory
# =============================================================================
def build_optimizer(
    params: Union[Iterable[nn.Parameter], Iterable[Dict[str, Any]]],
    *,
    name: str = "rmsprop",
    lr: float = 7e-4,
    weight_decay: float = 0.0,
    eps: float = 1e-8,
    momentum: float = 0.0,
    alpha: float = 0.99,
    centered: bool = False,
) -> Optimizer:
    """
    Build a PyTorch optimizer from a string identifier.

    Parameters
    ----------
    params : Iterable[nn.Parameter] or Iterable[Dict[str, Any]]
        Flat parameters or torch param-group dicts.
    name : str, default="rmsprop"
        Case-insensitive; "-" and "_" are ignored.
        Supported: "rmsprop" (alias "rms").
    lr : float, default=7e-4
        Learning rate. Must be > 0.
    weight_decay : float, default=0.0
        Weight decay coefficient. Must be >= 0.
    eps : float, default=1e-8
        Denominator epsilon. Must be > 0.
    momentum : float, default=0.0
        RMSprop momentum.
    alpha : float, default=0.99
        RMSprop smoothing constant, in [0, 1).
    centered : bool, default=False
        Centered RMSprop.

    Returns
    -------
    optimizer : torch.optim.Optimizer

    Raises
    ------
    ValueError
        If `name` is unknown or a hyperparameter is out of range.
    """
    _normalize_name(name)

    lr = float(lr)
    weight_decay = float(weight_decay)
    eps = float(eps)
    momentum = float(momentum)
    alpha = float(alpha)

    if lr <= 0:
        raise ValueError(f"lr must be > 0, got: {lr}")
    if weight_decay < 0:
        raise ValueError(f"weight_decay must be >= 0, got: {weight_decay}")
    if eps <= 0:
        raise ValueError(f"eps must be > 0, got: {eps}")
    if momentum < 0:
        raise ValueError(f"momentum must be >= 0, got: {momentum}")
    if not (0.0 <= alpha < 1.0):
        raise ValueError(f"alpha must be in [0, 1), got: {alpha}")

    return optim.RMSprop(
        params,
        lr=lr,
        alpha=alpha,
        eps=eps,
        weight_decay=weight_decay,
        momentum=momentum,
        centered=bool(centered),
    )


# =============================================================================
# Gradient utilities
# =============================================================================
def clip_grad_norm(
    parameters: Iterable[nn.Parameter],
    max_norm: float,
    norm_type: float = 2.0,
) -> float:
    """
    Clip the global gradient norm of `parameters` in place.

    Parameters
    ----------
    parameters : Iterable[nn.Parameter]
        Parameters whose gradients are clipped jointly. Materialized into a
        list, so generators are fine.
    max_norm : float
        Maximum allowed norm. ``max_norm <= 0`` is a no-op returning 0.0.
    norm_type : float, default=2.0
        p-norm type.

    Returns
    -------
    total_norm : float
        Pre-clip global norm.
    """
    if max_norm <= 0:
        return 0.0

    params_list = list(parameters)
    total_norm = nn.utils.clip_grad_norm_(params_list, float(max_norm), norm_type=float(norm_type))
    return float(total_norm.detach().cpu().item()) if th.is_tensor(total_norm) else float(total_norm)


def global_grad_norm(parameters: Iterable[nn.Parameter], norm_type: float = 2.0) -> float:
    """Global p-norm of all existing gradients (parameters without grads are skipped)."""
    grads = [p.grad.detach().flatten() for p in parameters if p.grad is not None]
    if not grads:
        return 0.0
    return float(th.linalg.vector_norm(th.cat(grads), ord=float(norm_type)).cpu().item())


# =============================================================================
# Checkpoint helpers
# =============================================================================
def optimizer_state_dict(optimizer: Optimizer) -> Dict[str, Any]:
    return optimizer.state_dict()


def load_optimizer_state_dict(optimizer: Optimizer, state: Mapping[str, Any]) -> None:
    optimizer.load_state_dict(dict(state))
