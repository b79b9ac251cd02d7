from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import torch as th

from on_policy.common.buffers import RolloutStorage
from on_policy.common.spaces import ActionSpace


@dataclass
class RecordedDump:
    step: int
    metrics: Dict[str, float]


class FakeLogger:
    """
    Minimal logger capturing ``record``/``dump`` traffic for assertions.
    Matches the subset of :class:`Logger` the trainer uses.
    """

    def __init__(self) -> None:
        self.dumps: List[RecordedDump] = []
        self._pending: Dict[str, float] = {}
        self.flushed: int = 0
        self.bound: Optional[Any] = None
        self.run_dir: Optional[str] = None

    def bind_trainer(self, trainer: Any) -> None:
        self.bound = trainer

    def record(self, metrics: Dict[str, Any], *, prefix: str = "") -> None:
        for k, v in metrics.items():
            key = f"{prefix}/{k}" if prefix else str(k)
            self._pending[key] = float(v)

    def dump(self, step: Optional[int] = None, **_: Any) -> None:
        self.dumps.append(RecordedDump(step=int(step or 0), metrics=dict(self._pending)))
        self._pending.clear()

    def flush(self) -> None:
        self.flushed += 1


class TwoStateVecEnv:
    """
    Vectorized two-state bandit with the gymnasium vector API.

    Each process observes ``[1, 0]`` or ``[0, 1]``; action 0 pays 1.0 in the
    first state and action 1 pays 1.0 in the second, anything else pays 0.
    Episodes last ``episode_len`` steps; the returned observation after a
    terminal step is already the first observation of the next episode.
    """

    def __init__(self, num_envs: int = 2, *, episode_len: int = 3, seed: int = 0) -> None:
        self.num_envs = int(num_envs)
        self.episode_len = int(episode_len)
        self._rng = np.random.default_rng(seed)
        self._state = np.zeros(self.num_envs, dtype=np.int64)
        self._t = np.zeros(self.num_envs, dtype=np.int64)
        self.step_calls: int = 0

    def _obs(self) -> np.ndarray:
        obs = np.zeros((self.num_envs, 2), dtype=np.float32)
        obs[np.arange(self.num_envs), self._state] = 1.0
        return obs

    def reset(self, seed: Optional[int] = None) -> Tuple[np.ndarray, Dict[str, Any]]:
        if seed is not None:
            self._rng = np.random.default_rng(seed)
        self._state = self._rng.integers(0, 2, size=self.num_envs)
        self._t[:] = 0
        return self._obs(), {}

    def step(self, actions: np.ndarray):
        self.step_calls += 1
        actions = np.asarray(actions).reshape(-1)
        reward = (actions == self._state).astype(np.float32)
        self._t += 1
        terminated = self._t >= self.episode_len
        truncated = np.zeros(self.num_envs, dtype=bool)
        self._t[terminated] = 0
        self._state = self._rng.integers(0, 2, size=self.num_envs)
        return self._obs(), reward, terminated, truncated, {}

    def close(self) -> None:
        pass


def discrete_space(n: int = 2) -> ActionSpace:
    return ActionSpace("Discrete", (n,))


def filled_storage(
    *,
    num_steps: int = 3,
    num_processes: int = 2,
    obs_dim: int = 2,
    rewards: Optional[np.ndarray] = None,
    masks: Optional[np.ndarray] = None,
    values: Optional[np.ndarray] = None,
    action_space: Optional[ActionSpace] = None,
) -> RolloutStorage:
    """
    Build a storage and insert ``num_steps`` deterministic transitions.

    ``rewards``/``masks``/``values`` are (T, N) arrays; ``masks[t]`` is the
    mask inserted at step t (i.e. stored into slot t + 1).
    """
    space = action_space or discrete_space(2)
    storage = RolloutStorage(num_steps, num_processes, (obs_dim,), space, 1)
    storage.set_first_observation(np.zeros((num_processes, obs_dim), dtype=np.float32))

    if rewards is None:
        rewards = np.ones((num_steps, num_processes), dtype=np.float32)
    if masks is None:
        masks = np.ones((num_steps, num_processes), dtype=np.float32)
    if values is None:
        values = np.zeros((num_steps, num_processes), dtype=np.float32)

    for t in range(num_steps):
        obs = np.full((num_processes, obs_dim), float(t + 1), dtype=np.float32)
        if space.is_discrete:
            action = th.full((num_processes, 1), t % space.n, dtype=th.long)
        else:
            action = th.full((num_processes, space.n), 0.1 * t)
        storage.insert(
            obs,
            th.zeros(num_processes, 1),
            action,
            th.full((num_processes, 1), -0.5),
            th.as_tensor(values[t], dtype=th.float32).view(-1, 1),
            th.as_tensor(rewards[t], dtype=th.float32).view(-1, 1),
            th.as_tensor(masks[t], dtype=th.float32).view(-1, 1),
        )
    return storage
