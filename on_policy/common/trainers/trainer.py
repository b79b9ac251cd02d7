from __future__ import annotations

import math
import os
import sys
from collections import deque
from typing import Any, Deque, Dict, Mapping, Optional

import numpy as np
from tqdm import tqdm

from ..policies.on_policy_algorithm import OnPolicyAlgorithm
from ..utils.common_utils import _mean
from ..utils.train_utils import _done_mask, _format_env_action, _set_random_seed


# episodes averaged into rollout/ep_*_mean
_EPISODE_WINDOW = 100


class Trainer:
    """
    Synchronous rollout/update driver over a gymnasium-style vector env.

    Each iteration collects ``algo.num_steps`` vectorized transitions, then
    calls ``algo.update()`` once. Episode returns and lengths are tracked per
    process and logged together with the update metrics.

    Required env interface (gymnasium vector API)
    ---------------------------------------------
    - ``reset(seed=...) -> (obs, info)`` with obs shaped (N, *obs_shape)
    - ``step(actions) -> (obs, reward, terminated, truncated, info)`` with
      per-process arrays of length N

    Parameters
    ----------
    env : Any
        Vector environment with ``num_envs == algo.num_processes``.
    algo : OnPolicyAlgorithm
        Algorithm driver (e.g. built by ``a2c(...)``).
    total_env_steps : int
        Stop once this many transitions (summed over processes) were consumed.
    seed : int, default=0
        Seeds Python/NumPy/torch and the first ``env.reset``.
    deterministic : bool, default=True
        Request deterministic cuDNN kernels.
    log_every_updates : int, default=10
        Dump aggregated metrics every N updates; <= 0 disables.
    logger : Optional[Any], default=None
        A :class:`~on_policy.common.loggers.Logger` (or compatible object).
    run_dir : Optional[str], default=None
        Where checkpoints go. Defaults to ``logger.run_dir`` when a logger is
        given, else ``"./runs/exp"``.
    checkpoint_every_updates : int, default=0
        Save ``algo`` every N updates; <= 0 disables.
    show_progress : bool, default=False
        Display a tqdm progress bar over env steps.
    """

    def __init__(
        self,
        *,
        env: Any,
        algo: OnPolicyAlgorithm,
        total_env_steps: int,
        seed: int = 0,
        deterministic: bool = True,
        log_every_updates: int = 10,
        logger: Optional[Any] = None,
        run_dir: Optional[str] = None,
        checkpoint_every_updates: int = 0,
        show_progress: bool = False,
    ) -> None:
        self.env = env
        self.algo = algo
        self.logger = logger

        self.total_env_steps = int(total_env_steps)
        if self.total_env_steps < 1:
            raise ValueError(f"total_env_steps must be >= 1, got {self.total_env_steps}")

        num_envs = int(getattr(env, "num_envs", algo.num_processes))
        if num_envs != algo.num_processes:
            raise ValueError(
                f"env.num_envs ({num_envs}) must equal algo.num_processes ({algo.num_processes})"
            )

        self.seed = int(seed)
        self.deterministic = bool(deterministic)
        self.log_every_updates = int(log_every_updates)
        self.checkpoint_every_updates = int(checkpoint_every_updates)
        self.show_progress = bool(show_progress)

        if run_dir is None:
            run_dir = getattr(logger, "run_dir", None) or "./runs/exp"
        self.run_dir = str(run_dir)
        self.ckpt_dir = os.path.join(self.run_dir, "checkpoints")

        # ---- counters ----
        self.global_env_step: int = 0
        self.global_update_step: int = 0
        self.episode_idx: int = 0

        n = algo.num_processes
        self._ep_return = np.zeros(n, dtype=np.float64)
        self._ep_len = np.zeros(n, dtype=np.int64)
        self._finished_returns: Deque[float] = deque(maxlen=_EPISODE_WINDOW)
        self._finished_lengths: Deque[int] = deque(maxlen=_EPISODE_WINDOW)
        self._warned_non_finite: bool = False

        _set_random_seed(self.seed, deterministic=self.deterministic)

        if logger is not None and callable(getattr(logger, "bind_trainer", None)):
            logger.bind_trainer(self)

    # ---------------------------------------------------------------------
    # Warnings
    # ---------------------------------------------------------------------
    def _warn(self, message: str) -> None:
        print(f"[Trainer][WARN] {message}", file=sys.stderr)

    # =============================================================================
    # Training entrypoint
    # =============================================================================
    def train(self) -> Dict[str, float]:
        """
        Run rollouts and updates until ``total_env_steps`` is reached.

        Returns
        -------
        Dict[str, float]
            Metrics of the last update plus episode statistics.
        """
        obs, _ = self.env.reset(seed=self.seed)
        self.algo.reset(obs)
        self.algo.set_training(True)

        last: Dict[str, float] = {}
        with tqdm(
            total=self.total_env_steps,
            desc="Training",
            unit="step",
            disable=not self.show_progress,
            dynamic_ncols=True,
        ) as pbar:
            while self.global_env_step < self.total_env_steps:
                steps_before = self.global_env_step
                self._collect_rollout()
                metrics = self.algo.update()
                self.global_update_step += 1
                pbar.update(self.global_env_step - steps_before)

                self._check_metrics(metrics)
                last = dict(metrics)
                last.update(self._episode_stats())
                self._maybe_log(metrics)
                self._maybe_checkpoint()

        self.algo.set_training(False)
        if self.logger is not None:
            self.logger.flush()
        return last

    # ---------------------------------------------------------------------
    # Rollout
    # ---------------------------------------------------------------------
    def _collect_rollout(self) -> None:
        action_type = self.algo.policy.action_space.type
        for _ in range(self.algo.num_steps):
            value, action, action_log_prob, hidden_states = self.algo.act()

            obs, reward, terminated, truncated, _ = self.env.step(_format_env_action(action, action_type))
            reward = np.asarray(reward, dtype=np.float32).reshape(-1, 1)
            masks = _done_mask(terminated, truncated)

            self._track_episodes(reward, masks)

            self.algo.on_env_step(
                obs=obs,
                hidden_states=hidden_states,
                action=action,
                action_log_prob=action_log_prob,
                value=value,
                reward=reward,
                mask=masks,
            )
            self.global_env_step += self.algo.num_processes

    def _track_episodes(self, reward: np.ndarray, masks: np.ndarray) -> None:
        self._ep_return += reward.reshape(-1)
        self._ep_len += 1
        for i in np.flatnonzero(masks.reshape(-1) == 0.0):
            self._finished_returns.append(float(self._ep_return[i]))
            self._finished_lengths.append(int(self._ep_len[i]))
            self._ep_return[i] = 0.0
            self._ep_len[i] = 0
            self.episode_idx += 1

    def _episode_stats(self) -> Dict[str, float]:
        if not self._finished_returns:
            return {}
        return {
            "rollout/ep_return_mean": _mean(self._finished_returns),
            "rollout/ep_len_mean": _mean(self._finished_lengths),
            "rollout/episodes": float(self.episode_idx),
        }

    # ---------------------------------------------------------------------
    # Logging / checkpointing
    # ---------------------------------------------------------------------
    def _check_metrics(self, metrics: Mapping[str, float]) -> None:
        bad = [k for k, v in metrics.items() if not math.isfinite(v)]
        if bad and not self._warned_non_finite:
            self._warned_non_finite = True
            self._warn(f"non-finite update metrics at update {self.global_update_step}: {bad}")

    def _maybe_log(self, metrics: Mapping[str, float]) -> None:
        if self.logger is None:
            return
        self.logger.record(metrics, prefix="train")
        if self.log_every_updates > 0 and (self.global_update_step % self.log_every_updates == 0):
            self.logger.record(self._episode_stats())
            self.logger.record({"sys/updates": float(self.global_update_step)})
            self.logger.dump(step=self.global_env_step)

    def _maybe_checkpoint(self) -> None:
        if self.checkpoint_every_updates <= 0:
            return
        if self.global_update_step % self.checkpoint_every_updates == 0:
            self.save_checkpoint()

    def save_checkpoint(self, path: Optional[str] = None) -> str:
        """Save the algorithm; defaults to ``{run_dir}/checkpoints/ckpt_{update}.pt``."""
        if path is None:
            os.makedirs(self.ckpt_dir, exist_ok=True)
            path = os.path.join(self.ckpt_dir, f"ckpt_{self.global_update_step:07d}.pt")
        self.algo.save(path)
        return path if path.endswith(".pt") else path + ".pt"

    def load_checkpoint(self, path: str) -> None:
        self.algo.load(path)
        self.global_env_step = self.algo.env_steps
