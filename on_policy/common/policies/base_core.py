from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Mapping

import torch as th
import torch.nn as nn
from torch.optim import Optimizer

from ..optimizers.optimizer_builder import (
    clip_grad_norm,
    load_optimizer_state_dict,
    optimizer_state_dict,
)


class BaseCore(ABC):
    """
    Base class for update engines ("cores").

    A core owns the optimizer and performs parameter updates from collected
    data; it never touches the environment.

    Provides
    --------
    - a reference to the policy and its device
    - a monotonically increasing update-call counter
    - global gradient clipping honoring the ``max_grad_norm <= 0`` disable rule
    - optimizer checkpoint helpers

    Parameters
    ----------
    policy : nn.Module
        Actor-critic module whose parameters this core optimizes.
    """

    def __init__(self, *, policy: nn.Module) -> None:
        self.policy = policy
        dev = getattr(policy, "device", th.device("cpu"))
        self.device = dev if isinstance(dev, th.device) else th.device(str(dev))
        self._update_calls: int = 0

    # ---------------------------------------------------------------------
    # Bookkeeping
    # ---------------------------------------------------------------------
    @property
    def update_calls(self) -> int:
        """Number of completed optimizer steps."""
        return int(self._update_calls)

    def _bump(self) -> None:
        self._update_calls += 1

    # ---------------------------------------------------------------------
    # Gradient clipping
    # ---------------------------------------------------------------------
    def _clip_params(self, params: Iterable[nn.Parameter], *, max_grad_norm: float) -> float:
        """
        Clip the joint gradient norm of `params` in place.

        Returns the pre-clip norm, or 0.0 when clipping is disabled
        (``max_grad_norm <= 0``).
        """
        mg = float(max_grad_norm)
        if mg <= 0.0:
            return 0.0
        return clip_grad_norm(params, mg)

    # ---------------------------------------------------------------------
    # Optimizer persistence helpers
    # ---------------------------------------------------------------------
    def _save_opt(self, opt: Optimizer) -> Dict[str, Any]:
        return {"opt": optimizer_state_dict(opt)}

    def _load_opt(self, opt: Optimizer, state: Mapping[str, Any]) -> None:
        opt_state = state.get("opt", None)
        if opt_state is not None:
            load_optimizer_state_dict(opt, opt_state)

    # ---------------------------------------------------------------------
    # Default persistence (core-wide)
    # ---------------------------------------------------------------------
    def state_dict(self) -> Dict[str, Any]:
        return {"update_calls": int(self._update_calls)}

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        self._update_calls = int(state.get("update_calls", 0))

    # ---------------------------------------------------------------------
    # Main contract
    # ---------------------------------------------------------------------
    @abstractmethod
    def update(self, storage: Any) -> Dict[str, float]:
        """
        Run one update from a completed rollout and return scalar metrics.

        Parameters
        ----------
        storage : Any
            Rollout storage whose returns have already been computed.
        """
        raise NotImplementedError
