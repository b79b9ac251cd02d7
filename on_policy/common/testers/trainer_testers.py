from __future__ import annotations

import os
from typing import Any, Callable, List, Tuple

import numpy as np
import torch as th

from on_policy.baselines.a2c import a2c
from on_policy.common.spaces import ActionSpace
from on_policy.common.testers.test_harness import FakeLogger, TwoStateVecEnv
from on_policy.common.testers.test_utils import (
    assert_close,
    assert_eq,
    assert_file_exists,
    assert_in,
    assert_raises,
    assert_true,
    mk_tmp_dir,
    run_tests,
)
from on_policy.common.trainers import Trainer
from on_policy.common.utils.train_utils import _done_mask, _format_env_action


def _algo(num_processes: int = 2, num_steps: int = 3):
    return a2c(
        obs_shape=(2,),
        action_space=ActionSpace("Discrete", (2,)),
        num_processes=num_processes,
        num_steps=num_steps,
        hidden_size=16,
    )


# =============================================================================
# Tests: helpers
# =============================================================================
def test_done_mask_combines_terminated_and_truncated() -> None:
    masks = _done_mask(np.array([True, False, False]), np.array([False, True, False]))
    assert_eq(masks.shape, (3, 1))
    assert_eq(masks.dtype, np.float32)
    assert_eq(masks.reshape(-1).tolist(), [0.0, 0.0, 1.0])


def test_format_env_action_by_space() -> None:
    d = _format_env_action(th.tensor([[1], [0]]), "Discrete")
    assert_eq(d.shape, (2,))
    assert_eq(d.dtype, np.int64)

    b = _format_env_action(th.tensor([[0.1, 0.2]]), "Box")
    assert_eq(b.shape, (1, 2))
    assert_eq(b.dtype, np.float32)

    m = _format_env_action(th.tensor([[1.0, 0.0, 1.0]]), "MultiBinary")
    assert_eq(m.dtype, np.int8)


# =============================================================================
# Tests: training loop
# =============================================================================
def test_trainer_runs_to_total_env_steps() -> None:
    env = TwoStateVecEnv(num_envs=2, episode_len=3)
    algo = _algo()
    trainer = Trainer(
        env=env,
        algo=algo,
        total_env_steps=30,
        seed=0,
        log_every_updates=0,
        run_dir=mk_tmp_dir(),
    )
    last = trainer.train()

    # 30 steps / (3 steps * 2 envs) = 5 updates
    assert_eq(trainer.global_env_step, 30)
    assert_eq(trainer.global_update_step, 5)
    assert_eq(env.step_calls, 15)
    assert_eq(algo.core.update_calls, 5)
    assert_eq(algo.env_steps, 30)
    for key in ("Value loss", "Action loss", "Entropy"):
        assert_in(key, last)


def test_trainer_tracks_episode_statistics() -> None:
    env = TwoStateVecEnv(num_envs=2, episode_len=3)
    trainer = Trainer(env=env, algo=_algo(), total_env_steps=12, log_every_updates=0, run_dir=mk_tmp_dir())
    last = trainer.train()

    # every process finishes an episode every 3 steps
    assert_eq(trainer.episode_idx, 4)
    assert_close(last["rollout/ep_len_mean"], 3.0)
    assert_true(0.0 <= last["rollout/ep_return_mean"] <= 3.0)


def test_trainer_episode_window_is_bounded() -> None:
    env = TwoStateVecEnv(num_envs=2, episode_len=1)
    trainer = Trainer(env=env, algo=_algo(), total_env_steps=240, log_every_updates=0, run_dir=mk_tmp_dir())
    last = trainer.train()

    # one-step episodes: every env step finishes an episode
    assert_eq(trainer.episode_idx, 240)
    assert_eq(len(trainer._finished_returns), 100)
    assert_eq(len(trainer._finished_lengths), 100)
    assert_close(last["rollout/ep_len_mean"], 1.0)
    assert_close(last["rollout/episodes"], 240.0)


def test_trainer_logs_through_logger() -> None:
    logger = FakeLogger()
    logger.run_dir = mk_tmp_dir()
    trainer = Trainer(
        env=TwoStateVecEnv(num_envs=2, episode_len=3),
        algo=_algo(),
        total_env_steps=24,
        log_every_updates=2,
        logger=logger,
    )
    trainer.train()

    assert_true(logger.bound is trainer, "trainer must bind itself for step inference")
    assert_eq(trainer.run_dir, logger.run_dir)
    assert_eq(len(logger.dumps), 2)
    assert_eq([d.step for d in logger.dumps], [12, 24])
    for key in ("train/Value loss", "train/Action loss", "train/Entropy", "rollout/ep_return_mean"):
        assert_in(key, logger.dumps[0].metrics)
    assert_true(logger.flushed >= 1)


def test_trainer_checkpoints_and_reloads() -> None:
    run_dir = mk_tmp_dir()
    trainer = Trainer(
        env=TwoStateVecEnv(num_envs=2, episode_len=3),
        algo=_algo(),
        total_env_steps=12,
        log_every_updates=0,
        run_dir=run_dir,
        checkpoint_every_updates=1,
    )
    trainer.train()

    ckpts = sorted(os.listdir(trainer.ckpt_dir))
    assert_eq(ckpts, ["ckpt_0000001.pt", "ckpt_0000002.pt"])

    other = Trainer(
        env=TwoStateVecEnv(num_envs=2, episode_len=3),
        algo=_algo(),
        total_env_steps=12,
        run_dir=run_dir,
    )
    path = os.path.join(trainer.ckpt_dir, ckpts[-1])
    assert_file_exists(path)
    other.load_checkpoint(path)
    assert_eq(other.global_env_step, 12)
    assert_eq(other.algo.core.update_calls, 2)


def test_trainer_config_validation() -> None:
    assert_raises(
        ValueError,
        lambda: Trainer(env=TwoStateVecEnv(num_envs=3), algo=_algo(num_processes=2), total_env_steps=10),
    )
    assert_raises(
        ValueError,
        lambda: Trainer(env=TwoStateVecEnv(num_envs=2), algo=_algo(), total_env_steps=0),
    )


# =============================================================================
# Simple runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("done_mask", test_done_mask_combines_terminated_and_truncated),
    ("format_env_action", test_format_env_action_by_space),
    ("trainer_total_env_steps", test_trainer_runs_to_total_env_steps),
    ("trainer_episode_stats", test_trainer_tracks_episode_statistics),
    ("trainer_episode_window", test_trainer_episode_window_is_bounded),
    ("trainer_logger", test_trainer_logs_through_logger),
    ("trainer_checkpoints", test_trainer_checkpoints_and_reloads),
    ("trainer_config_validation", test_trainer_config_validation),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="trainer")


if __name__ == "__main__":
    raise SystemExit(main())
