from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Tuple

import torch as th
import torch.nn as nn

from ..utils.network_utils import _ensure_batch


class BasePolicy(nn.Module, ABC):
    """
    Actor-critic policy contract consumed by the rollout loop and the A2C core.

    Every method takes ``(obs, hidden_states, masks)`` with a leading batch
    dimension B. Hidden states are opaque: feed-forward policies return them
    unchanged and report ``hidden_size == 1``.

    Subclass contract
    -----------------
    - act(obs, hidden_states, masks, deterministic=False)
        -> (value (B,1), action, action_log_prob (B,1), hidden_states)
    - get_values(obs, hidden_states, masks) -> value (B,1)
    - evaluate_actions(obs, hidden_states, masks, actions)
        -> (value (B,1), action_log_prob (B,1), entropy (scalar), hidden_states)
    - get_probs(obs, hidden_states, masks) -> probabilities (B, n)
    """

    @property
    def device(self) -> th.device:
        return next(self.parameters()).device

    @property
    @abstractmethod
    def hidden_size(self) -> int:
        raise NotImplementedError

    def set_training(self, training: bool) -> None:
        self.train(bool(training))

    def _as_batch(self, x: Any) -> th.Tensor:
        return _ensure_batch(x, device=self.device)

    @abstractmethod
    def act(
        self,
        obs: th.Tensor,
        hidden_states: th.Tensor,
        masks: th.Tensor,
        deterministic: bool = False,
    ) -> Tuple[th.Tensor, th.Tensor, th.Tensor, th.Tensor]:
        raise NotImplementedError

    @abstractmethod
    def get_values(self, obs: th.Tensor, hidden_states: th.Tensor, masks: th.Tensor) -> th.Tensor:
        raise NotImplementedError

    @abstractmethod
    def evaluate_actions(
        self,
        obs: th.Tensor,
        hidden_states: th.Tensor,
        masks: th.Tensor,
        actions: th.Tensor,
    ) -> Tuple[th.Tensor, th.Tensor, th.Tensor, th.Tensor]:
        raise NotImplementedError

    @abstractmethod
    def get_probs(self, obs: th.Tensor, hidden_states: th.Tensor, masks: th.Tensor) -> th.Tensor:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self, path: str) -> None:
        """Save module weights to ``path`` (``.pt`` appended if missing)."""
        if not path.endswith(".pt"):
            path += ".pt"
        th.save(self.state_dict(), path)

    def load(self, path: str) -> None:
        """Load module weights saved by :meth:`save`, mapped onto this policy's device."""
        if not path.endswith(".pt"):
            path += ".pt"
        self.load_state_dict(th.load(path, map_location=self.device))
