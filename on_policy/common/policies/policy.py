from __future__ import annotations

from typing import Tuple

import torch as th
import torch.nn as nn

from ..networks.base_networks import NNBase
from ..networks.distributions import BaseDistribution, BernoulliOutput, CategoricalOutput, NormalOutput
from ..spaces import ActionSpace
from .base_head import BasePolicy


class Policy(BasePolicy):
    """
    Actor-critic policy: an :class:`NNBase` body plus a distribution head.

    Parameters
    ----------
    action_space : ActionSpace
        Selects the head:
        - Discrete    -> categorical over ``n`` actions, actions shaped (B, 1) long
        - Box         -> diagonal Gaussian, state-independent log-std, (B, A) float
        - MultiBinary -> independent Bernoulli bits, (B, n) float
    base : NNBase
        Body producing ``(value, actor_features, hidden_states)``.
    log_std_init : float, default=0.0
        Initial log-std (Box only).

    Notes
    -----
    Entropy returned by :meth:`evaluate_actions` is the batch mean, a scalar.
    """

    def __init__(self, action_space: ActionSpace, base: NNBase, *, log_std_init: float = 0.0) -> None:
        super().__init__()
        if not isinstance(base, NNBase):
            raise ValueError(f"base must be an NNBase, got {type(base).__name__}")

        self.action_space = action_space
        self.base = base

        if action_space.type == "Discrete":
            self.output_layer: nn.Module = CategoricalOutput(base.output_size, action_space.n)
        elif action_space.type == "Box":
            self.output_layer = NormalOutput(base.output_size, action_space.n, log_std_init=log_std_init)
        else:
            self.output_layer = BernoulliOutput(base.output_size, action_space.n)

    @property
    def hidden_size(self) -> int:
        return int(self.base.hidden_size)

    def _dist(
        self,
        obs: th.Tensor,
        hidden_states: th.Tensor,
        masks: th.Tensor,
    ) -> Tuple[th.Tensor, BaseDistribution, th.Tensor]:
        value, actor_features, hidden_states = self.base(
            self._as_batch(obs),
            self._as_batch(hidden_states),
            self._as_batch(masks),
        )
        return value, self.output_layer(actor_features), hidden_states

    def act(
        self,
        obs: th.Tensor,
        hidden_states: th.Tensor,
        masks: th.Tensor,
        deterministic: bool = False,
    ) -> Tuple[th.Tensor, th.Tensor, th.Tensor, th.Tensor]:
        """
        Sample (or take the mode of) an action.

        Returns
        -------
        value : torch.Tensor
            V(s), shape (B, 1).
        action : torch.Tensor
            (B, 1) long for Discrete, (B, A) float otherwise.
        action_log_prob : torch.Tensor
            log π(a|s), shape (B, 1).
        hidden_states : torch.Tensor
            Next hidden state, shape (B, hidden_size).
        """
        value, dist, hidden_states = self._dist(obs, hidden_states, masks)
        action = dist.mode() if deterministic else dist.sample()
        return value, action, dist.log_prob(action), hidden_states

    def get_values(self, obs: th.Tensor, hidden_states: th.Tensor, masks: th.Tensor) -> th.Tensor:
        value, _, _ = self.base(
            self._as_batch(obs),
            self._as_batch(hidden_states),
            self._as_batch(masks),
        )
        return value

    def evaluate_actions(
        self,
        obs: th.Tensor,
        hidden_states: th.Tensor,
        masks: th.Tensor,
        actions: th.Tensor,
    ) -> Tuple[th.Tensor, th.Tensor, th.Tensor, th.Tensor]:
        """
        Score stored actions under the current parameters.

        Returns
        -------
        value : torch.Tensor
            Shape (B, 1).
        action_log_prob : torch.Tensor
            Shape (B, 1).
        entropy : torch.Tensor
            Mean entropy over the batch, 0-d.
        hidden_states : torch.Tensor
            Shape (B, hidden_size).
        """
        value, dist, hidden_states = self._dist(obs, hidden_states, masks)
        action_log_prob = dist.log_prob(actions.to(self.device))
        entropy = dist.entropy().mean()
        return value, action_log_prob, entropy, hidden_states

    def get_probs(self, obs: th.Tensor, hidden_states: th.Tensor, masks: th.Tensor) -> th.Tensor:
        """
        Action probabilities, shape (B, n).

        Raises
        ------
        ValueError
            For Box action spaces, which have no finite probability vector.
        """
        if self.action_space.type == "Box":
            raise ValueError("get_probs is undefined for Box action spaces")
        _, dist, _ = self._dist(obs, hidden_states, masks)
        return dist.probs
