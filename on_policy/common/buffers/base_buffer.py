from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Tuple, Union

import torch as th

from ..spaces import ActionSpace
from ..utils.common_utils import _validate_shape


# =============================================================================
# Base: RolloutStorage (on-policy, vectorized)
# =============================================================================
class BaseRolloutStorage(ABC):
    """
    Abstract base class for fixed-horizon, multi-process rollout storage.

    Storage is time-major: every tensor is laid out as ``(time, process, ...)``
    and allocated once in :meth:`reset`. Observation-like fields (observations,
    hidden states, masks, value predictions, returns) carry ``num_steps + 1``
    slots so the state reached after the last action can seed the next rollout.

    Contract
    --------
    - :meth:`insert` writes exactly one timestep for all processes.
    - :meth:`compute_returns` fills ``returns`` for a complete rollout.
    - :meth:`after_update` carries the last observation slot into slot 0.

    Parameters
    ----------
    num_steps : int
        Rollout horizon T.
    num_processes : int
        Number of parallel environments N.
    obs_shape : Tuple[int, ...]
        Per-environment observation shape.
    action_space : ActionSpace
        Determines the action storage layout and dtype.
    hidden_state_size : int
        Width of the opaque recurrent state carried per process.
    device : Union[str, torch.device], default="cpu"
        Device on which all tensors are allocated.
    """

    def __init__(
        self,
        num_steps: int,
        num_processes: int,
        obs_shape: Tuple[int, ...],
        action_space: ActionSpace,
        hidden_state_size: int,
        *,
        device: Union[str, th.device] = "cpu",
    ) -> None:
        if int(num_steps) <= 0:
            raise ValueError(f"num_steps must be positive, got {num_steps}")
        if int(num_processes) <= 0:
            raise ValueError(f"num_processes must be positive, got {num_processes}")
        if int(hidden_state_size) <= 0:
            raise ValueError(f"hidden_state_size must be positive, got {hidden_state_size}")
        if not isinstance(action_space, ActionSpace):
            raise ValueError(f"action_space must be an ActionSpace, got {type(action_space).__name__}")

        self._num_steps = int(num_steps)
        self._num_processes = int(num_processes)
        self._obs_shape = _validate_shape(obs_shape, name="obs_shape")
        self._action_space = action_space
        self._hidden_state_size = int(hidden_state_size)
        self._device = th.device(device)

        self.reset()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    @property
    def num_steps(self) -> int:
        return self._num_steps

    @property
    def num_processes(self) -> int:
        return self._num_processes

    @property
    def obs_shape(self) -> Tuple[int, ...]:
        return self._obs_shape

    @property
    def action_space(self) -> ActionSpace:
        return self._action_space

    @property
    def hidden_state_size(self) -> int:
        return self._hidden_state_size

    @property
    def device(self) -> th.device:
        return self._device

    @property
    def step(self) -> int:
        """Index of the next action slot to be written."""
        return self._step

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------
    def reset(self) -> None:
        """
        (Re)allocate every tensor and rewind the cursor.

        Notes
        -----
        Masks start at 1.0: the initial observation is treated as a
        continuation, so no bootstrap is cut before the first boundary.
        """
        T, N = self._num_steps, self._num_processes
        dev = self._device
        act_dtype = th.long if self._action_space.is_discrete else th.float32

        self._step = 0
        self._observations = th.zeros((T + 1, N, *self._obs_shape), device=dev)
        self._hidden_states = th.zeros((T + 1, N, self._hidden_state_size), device=dev)
        self._rewards = th.zeros((T, N, 1), device=dev)
        self._value_preds = th.zeros((T + 1, N, 1), device=dev)
        self._returns = th.zeros((T + 1, N, 1), device=dev)
        self._action_log_probs = th.zeros((T, N, 1), device=dev)
        self._actions = th.zeros((T, N, self._action_space.storage_dim), dtype=act_dtype, device=dev)
        self._masks = th.ones((T + 1, N, 1), device=dev)

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------
    @abstractmethod
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
        """Write one timestep for all processes and advance the cursor."""
        raise NotImplementedError

    @abstractmethod
    def compute_returns(self, next_value: th.Tensor, use_gae: bool, gamma: float, tau: float) -> None:
        """Fill the returns tensor for the completed rollout."""
        raise NotImplementedError

    @abstractmethod
    def after_update(self) -> None:
        """Carry the final observation/hidden/mask slot into slot 0."""
        raise NotImplementedError
