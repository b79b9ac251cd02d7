from __future__ import annotations

from typing import Any, Union

import torch as th

from .base_buffer import BaseRolloutStorage
from ..utils.buffer_utils import compute_discounted_returns, compute_gae_returns
from ..utils.common_utils import _to_tensor


# =============================================================================
# RolloutStorage
# =============================================================================
class RolloutStorage(BaseRolloutStorage):
    """
    Time-major rollout storage for synchronous A2C over N environments.

    Layout (T = num_steps, N = num_processes)::

        observations      (T+1, N, *obs_shape)
        hidden_states     (T+1, N, hidden_state_size)
        rewards           (T,   N, 1)
        value_preds       (T+1, N, 1)
        returns           (T+1, N, 1)
        action_log_probs  (T,   N, 1)
        actions           (T,   N, 1) long for Discrete, (T, N, A) float otherwise
        masks             (T+1, N, 1)

    Indexing convention
    -------------------
    ``insert`` at cursor ``t`` stores the *result* of acting at time t:
    the next observation, hidden state and mask go to slot ``t + 1`` while the
    action, log-prob, value prediction and reward go to slot ``t``. Hence
    ``masks[t + 1] == 0`` marks that the episode ended after step t, and the
    recurrences never bootstrap across that boundary.

    Examples
    --------
    >>> space = ActionSpace("Discrete", (2,))
    >>> storage = RolloutStorage(5, 4, (3,), space, 1)
    >>> storage.set_first_observation(obs0)
    >>> for _ in range(5):
    ...     storage.insert(obs, h, a, logp, v, r, m)
    >>> storage.compute_returns(next_value, use_gae=True, gamma=0.99, tau=0.95)
    >>> storage.after_update()
    """

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def observations(self) -> th.Tensor:
        return self._observations

    @property
    def hidden_states(self) -> th.Tensor:
        return self._hidden_states

    @property
    def actions(self) -> th.Tensor:
        return self._actions

    @property
    def action_log_probs(self) -> th.Tensor:
        return self._action_log_probs

    @property
    def value_preds(self) -> th.Tensor:
        return self._value_preds

    @property
    def rewards(self) -> th.Tensor:
        return self._rewards

    @property
    def masks(self) -> th.Tensor:
        return self._masks

    @property
    def returns(self) -> th.Tensor:
        return self._returns

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def set_first_observation(self, observation: Any) -> None:
        """
        Write the initial observation batch (N, *obs_shape) into slot 0.

        Used once after ``env.reset()``; subsequent rollouts are seeded by
        :meth:`after_update`.
        """
        self._observations[0].copy_(_to_tensor(observation, self._device))

    @th.no_grad()
    def insert(
        self,
        observation: Any,
        hidden_state: Any,
        action: Any,
        action_log_prob: Any,
        value_pred: Any,
        reward: Any,
        mask: Any,
    ) -> None:
        """
        Write one timestep for all processes and advance the cursor.

        Parameters
        ----------
        observation : Any
            Next observation, shape (N, *obs_shape).
        hidden_state : Any
            Next hidden state, shape (N, hidden_state_size).
        action : Any
            Action taken, shape (N, 1) for Discrete or (N, A) otherwise.
        action_log_prob : Any
            log π(a_t | s_t), shape (N, 1).
        value_pred : Any
            V(s_t), shape (N, 1).
        reward : Any
            r_t, shape (N, 1).
        mask : Any
            1.0 if the episode continues, 0.0 if it ended, shape (N, 1).

        Raises
        ------
        ValueError
            If ``mask`` holds anything other than 0 or 1.
        RuntimeError
            On shape mismatch (raised by torch during the copy).
        """
        dev = self._device
        mask_t = _to_tensor(mask, dev)
        if bool(((mask_t != 0.0) & (mask_t != 1.0)).any()):
            raise ValueError(f"mask values must be 0 or 1, got {mask_t.flatten().tolist()}")

        act_dtype = self._actions.dtype
        t = self._step

        self._observations[t + 1].copy_(_to_tensor(observation, dev))
        self._hidden_states[t + 1].copy_(_to_tensor(hidden_state, dev))
        self._masks[t + 1].copy_(mask_t)
        self._actions[t].copy_(_to_tensor(action, dev, dtype=act_dtype))
        self._action_log_probs[t].copy_(_to_tensor(action_log_prob, dev))
        self._value_preds[t].copy_(_to_tensor(value_pred, dev))
        self._rewards[t].copy_(_to_tensor(reward, dev))

        self._step = (t + 1) % self._num_steps

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------
    def compute_returns(
        self,
        next_value: th.Tensor,
        use_gae: bool,
        gamma: float,
        tau: float,
    ) -> None:
        """
        Fill ``returns`` for the completed rollout.

        Parameters
        ----------
        next_value : torch.Tensor
            Bootstrap value V(s_T), shape (N, 1).
        use_gae : bool
            GAE(λ=tau) if True, plain bootstrapped discounted returns otherwise.
        gamma : float
            Discount factor in [0, 1].
        tau : float
            GAE λ in [0, 1]. Validated even when ``use_gae`` is False.

        Raises
        ------
        ValueError
            If gamma or tau lies outside [0, 1].
        """
        gamma, tau = float(gamma), float(tau)
        if not (0.0 <= tau <= 1.0):
            raise ValueError(f"tau must be in [0, 1], got {tau}")

        next_value = _to_tensor(next_value, self._device)
        if use_gae:
            compute_gae_returns(
                self._returns,
                self._rewards,
                self._value_preds,
                self._masks,
                next_value,
                gamma=gamma,
                tau=tau,
            )
        else:
            compute_discounted_returns(
                self._returns,
                self._rewards,
                self._masks,
                next_value,
                gamma=gamma,
            )

    # ------------------------------------------------------------------
    # Recycling
    # ------------------------------------------------------------------
    def after_update(self) -> None:
        """
        Prepare for the next rollout.

        The last observation, hidden state and mask become slot 0, and the
        cursor rewinds so the next ``insert`` writes observation slot 1.
        """
        self._observations[0].copy_(self._observations[-1])
        self._hidden_states[0].copy_(self._hidden_states[-1])
        self._masks[0].copy_(self._masks[-1])
        self._step = 0

    def to(self, device: Union[str, th.device]) -> "RolloutStorage":
        """Move every tensor to ``device`` (in place) and return self."""
        dev = th.device(device)
        for name in (
            "_observations",
            "_hidden_states",
            "_rewards",
            "_value_preds",
            "_returns",
            "_action_log_probs",
            "_actions",
            "_masks",
        ):
            setattr(self, name, getattr(self, name).to(dev))
        self._device = dev
        return self
