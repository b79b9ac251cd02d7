from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

import torch as th

from on_policy.common.buffers import RolloutStorage
from on_policy.common.optimizers import build_optimizer
from on_policy.common.policies.base_core import BaseCore
from on_policy.common.policies.base_head import BasePolicy


def compute_a2c_loss(
    advantages: th.Tensor,
    action_log_probs: th.Tensor,
    entropy: th.Tensor,
    *,
    value_loss_coef: float,
    entropy_coef: float,
) -> Tuple[th.Tensor, th.Tensor, th.Tensor]:
    """
    Compose the A2C objective.

    Parameters
    ----------
    advantages : torch.Tensor
        ``returns - values`` with the graph to the critic intact, shape (T, N, 1).
    action_log_probs : torch.Tensor
        log π(a_t|s_t) under the current parameters, shape (T, N, 1).
    entropy : torch.Tensor
        Mean policy entropy, 0-d.
    value_loss_coef : float
        Weight of the critic regression term.
    entropy_coef : float
        Weight of the entropy bonus.

    Returns
    -------
    loss : torch.Tensor
        ``value_loss * value_loss_coef + action_loss - entropy * entropy_coef``.
    value_loss : torch.Tensor
        ``mean(advantages ** 2)``.
    action_loss : torch.Tensor
        ``-mean(advantages.detach() * action_log_probs)``.

    Notes
    -----
    The advantage enters the policy-gradient term as a constant, so
    ``action_loss`` carries no gradient into the critic.
    """
    value_loss = advantages.pow(2).mean()
    action_loss = -(advantages.detach() * action_log_probs).mean()
    loss = value_loss * value_loss_coef + action_loss - entropy * entropy_coef
    return loss, value_loss, action_loss


class A2C(BaseCore):
    """
    Synchronous Advantage Actor-Critic update engine.

    One call to :meth:`update` performs exactly one RMSprop step over the whole
    rollout held in a :class:`RolloutStorage` whose returns are computed.

    Parameters
    ----------
    policy : BasePolicy
        Actor-critic policy to optimize.
    value_loss_coef : float
        Weight of the value loss. Must be >= 0.
    entropy_coef : float
        Weight of the entropy bonus. Must be >= 0.
    learning_rate : float
        RMSprop learning rate. Must be > 0.
    epsilon : float, default=1e-8
        RMSprop denominator epsilon. Must be > 0.
    alpha : float, default=0.99
        RMSprop smoothing constant.
    max_grad_norm : float, default=0.5
        Global L2 gradient-norm threshold over all policy parameters.
        0 disables clipping.

    Raises
    ------
    ValueError
        On negative coefficients or invalid optimizer hyperparameters.
    """

    def __init__(
        self,
        policy: BasePolicy,
        value_loss_coef: float,
        entropy_coef: float,
        learning_rate: float,
        epsilon: float = 1e-8,
        alpha: float = 0.99,
        max_grad_norm: float = 0.5,
    ) -> None:
        super().__init__(policy=policy)

        self.value_loss_coef = float(value_loss_coef)
        self.entropy_coef = float(entropy_coef)
        self.max_grad_norm = float(max_grad_norm)
        if self.value_loss_coef < 0.0:
            raise ValueError(f"value_loss_coef must be >= 0, got {self.value_loss_coef}")
        if self.entropy_coef < 0.0:
            raise ValueError(f"entropy_coef must be >= 0, got {self.entropy_coef}")
        if self.max_grad_norm < 0.0:
            raise ValueError(f"max_grad_norm must be >= 0, got {self.max_grad_norm}")

        self.optimizer = build_optimizer(
            self.policy.parameters(),
            name="rmsprop",
            lr=float(learning_rate),
            eps=float(epsilon),
            alpha=float(alpha),
        )

    # =============================================================================
    # Update
    # =============================================================================
    def update(self, storage: RolloutStorage) -> Dict[str, float]:
        """
        Perform one A2C optimization step over the full rollout.

        Returns
        -------
        Dict[str, float]
            ``{"Value loss", "Action loss", "Entropy"}``.
        """
        obs_shape = storage.observations.shape[2:]
        action_dim = storage.actions.size(-1)
        num_steps, num_processes, _ = storage.rewards.shape

        values, action_log_probs, entropy, _ = self.policy.evaluate_actions(
            storage.observations[:-1].reshape(-1, *obs_shape),
            storage.hidden_states[0].reshape(-1, self.policy.hidden_size),
            storage.masks[:-1].reshape(-1, 1),
            storage.actions.reshape(-1, action_dim),
        )

        values = values.view(num_steps, num_processes, 1)
        action_log_probs = action_log_probs.view(num_steps, num_processes, 1)

        advantages = storage.returns[:-1] - values
        loss, value_loss, action_loss = compute_a2c_loss(
            advantages,
            action_log_probs,
            entropy,
            value_loss_coef=self.value_loss_coef,
            entropy_coef=self.entropy_coef,
        )

        self.optimizer.zero_grad()
        loss.backward()
        self._clip_params(self.policy.parameters(), max_grad_norm=self.max_grad_norm)
        self.optimizer.step()
        self._bump()

        return {
            "Value loss": float(value_loss.item()),
            "Action loss": float(action_loss.item()),
            "Entropy": float(entropy.item()),
        }

    # =============================================================================
    # Persistence
    # =============================================================================
    def state_dict(self) -> Dict[str, Any]:
        s = super().state_dict()
        s.update(self._save_opt(self.optimizer))
        s.update(
            {
                "value_loss_coef": float(self.value_loss_coef),
                "entropy_coef": float(self.entropy_coef),
                "max_grad_norm": float(self.max_grad_norm),
            }
        )
        return s

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        super().load_state_dict(state)
        self._load_opt(self.optimizer, state)
        if "value_loss_coef" in state:
            self.value_loss_coef = float(state["value_loss_coef"])
        if "entropy_coef" in state:
            self.entropy_coef = float(state["entropy_coef"])
        if "max_grad_norm" in state:
            self.max_grad_norm = float(state["max_grad_norm"])
