from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

import torch as th

from ..buffers import RolloutStorage
from .base_core import BaseCore
from .base_head import BasePolicy
from .base_policy import BaseAlgorithm


class OnPolicyAlgorithm(BaseAlgorithm):
    """
    Synchronous on-policy driver: rollout storage + one core update per rollout.

    Lifecycle
    ---------
    1. ``reset(obs)`` with the batch returned by ``env.reset()``.
    2. Repeat ``num_steps`` times:
       ``value, action, logp, h = act()``; step the env;
       ``on_env_step(obs=..., hidden_states=h, action=action,
       action_log_prob=logp, value=value, reward=..., mask=...)``.
    3. ``update()``: bootstrap V(s_T) without gradients, compute returns,
       run ``core.update(storage)``, recycle storage via ``after_update``.

    Parameters
    ----------
    policy : BasePolicy
        Actor-critic policy. Its ``action_space`` and ``hidden_size`` size the
        storage.
    core : BaseCore
        Update engine (e.g. A2C).
    num_steps : int
        Rollout horizon T.
    num_processes : int
        Number of parallel environments N.
    obs_shape : Tuple[int, ...]
        Per-environment observation shape.
    gamma : float, default=0.99
        Discount factor.
    use_gae : bool, default=False
        GAE(λ) returns if True, plain bootstrapped returns otherwise.
    gae_lambda : float, default=0.95
        λ for GAE (the ``tau`` of ``compute_returns``).
    device : Optional[Union[str, torch.device]], default=None
        Storage device; defaults to the policy's device.
    """

    def __init__(
        self,
        *,
        policy: BasePolicy,
        core: BaseCore,
        num_steps: int = 5,
        num_processes: int = 1,
        obs_shape: Tuple[int, ...],
        gamma: float = 0.99,
        use_gae: bool = False,
        gae_lambda: float = 0.95,
        device: Optional[Union[str, th.device]] = None,
    ) -> None:
        super().__init__(policy=policy, core=core, device=device)

        self.gamma = float(gamma)
        self.gae_lambda = float(gae_lambda)
        self.use_gae = bool(use_gae)
        if not (0.0 <= self.gamma <= 1.0):
            raise ValueError(f"gamma must be in [0, 1], got {self.gamma}")
        if not (0.0 <= self.gae_lambda <= 1.0):
            raise ValueError(f"gae_lambda must be in [0, 1], got {self.gae_lambda}")

        self.storage = RolloutStorage(
            int(num_steps),
            int(num_processes),
            tuple(obs_shape),
            policy.action_space,
            policy.hidden_size,
            device=self.device,
        )

        self._started: bool = False
        self._rollout_steps: int = 0

    @property
    def num_steps(self) -> int:
        return self.storage.num_steps

    @property
    def num_processes(self) -> int:
        return self.storage.num_processes

    # ------------------------------------------------------------------
    # Rollout
    # ------------------------------------------------------------------
    def reset(self, obs: Any) -> None:
        """Seed storage slot 0 with the observations from ``env.reset()``."""
        self.storage.set_first_observation(obs)
        self._started = True
        self._rollout_steps = 0

    def act(self, deterministic: bool = False) -> Tuple[th.Tensor, th.Tensor, th.Tensor, th.Tensor]:
        """
        Act on the current storage slot without building a graph.

        Returns
        -------
        (value, action, action_log_prob, hidden_states)
            As returned by ``policy.act`` for the whole process batch.

        Raises
        ------
        RuntimeError
            If called before :meth:`reset`.
        """
        if not self._started:
            raise RuntimeError("OnPolicyAlgorithm.act() called before reset(obs).")

        t = self.storage.step
        with th.no_grad():
            return self.policy.act(
                self.storage.observations[t],
                self.storage.hidden_states[t],
                self.storage.masks[t],
                deterministic=deterministic,
            )

    def on_env_step(
        self,
        *,
        obs: Any,
        hidden_states: Any,
        action: Any,
        action_log_prob: Any,
        value: Any,
        reward: Any,
        mask: Any,
    ) -> None:
        """Insert one vectorized transition into storage."""
        if not self._started:
            raise RuntimeError("OnPolicyAlgorithm.on_env_step() called before reset(obs).")
        if self._rollout_steps >= self.num_steps:
            raise RuntimeError("Rollout is full. Call update() before collecting more steps.")

        self.storage.insert(obs, hidden_states, action, action_log_prob, value, reward, mask)
        self._rollout_steps += 1
        self._env_steps += self.num_processes

    def ready_to_update(self) -> bool:
        return self._rollout_steps >= self.num_steps

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------
    def _bootstrap_next_value(self) -> th.Tensor:
        with th.no_grad():
            return self.policy.get_values(
                self.storage.observations[-1],
                self.storage.hidden_states[-1],
                self.storage.masks[-1],
            ).detach()

    def update(self) -> Dict[str, float]:
        """
        Compute returns for the full rollout, run one core update, recycle storage.

        Raises
        ------
        RuntimeError
            If fewer than ``num_steps`` transitions were collected.
        """
        if not self.ready_to_update():
            raise RuntimeError(
                f"update() needs a full rollout of {self.num_steps} steps, got {self._rollout_steps}"
            )

        next_value = self._bootstrap_next_value()
        self.storage.compute_returns(next_value, self.use_gae, self.gamma, self.gae_lambda)

        metrics = self._filter_scalar_metrics(self.core.update(self.storage), drop_non_finite=False)

        self.storage.after_update()
        self._rollout_steps = 0
        return metrics
