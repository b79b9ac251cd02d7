from __future__ import annotations

from typing import Any, Callable, List, Tuple

import numpy as np
import torch as th
from gymnasium import spaces as gym_spaces

from on_policy.common.buffers import RolloutStorage
from on_policy.common.spaces import ActionSpace
from on_policy.common.testers.test_harness import discrete_space, filled_storage
from on_policy.common.testers.test_utils import (
    assert_allclose,
    assert_eq,
    assert_raises,
    assert_shape,
    assert_true,
    run_tests,
)


# =============================================================================
# Tests: layout
# =============================================================================
def test_storage_shapes_and_dtypes_discrete() -> None:
    storage = RolloutStorage(5, 4, (3,), discrete_space(6), 2)

    assert_shape(storage.observations, (6, 4, 3))
    assert_shape(storage.hidden_states, (6, 4, 2))
    assert_shape(storage.rewards, (5, 4, 1))
    assert_shape(storage.value_preds, (6, 4, 1))
    assert_shape(storage.returns, (6, 4, 1))
    assert_shape(storage.action_log_probs, (5, 4, 1))
    assert_shape(storage.actions, (5, 4, 1))
    assert_shape(storage.masks, (6, 4, 1))

    assert_eq(storage.actions.dtype, th.long)
    assert_true(bool((storage.masks == 1.0).all()), "masks must start at 1")
    assert_eq(storage.step, 0)


def test_storage_shapes_box_and_multibinary() -> None:
    box = RolloutStorage(2, 3, (4,), ActionSpace("Box", (2,)), 1)
    assert_shape(box.actions, (2, 3, 2))
    assert_eq(box.actions.dtype, th.float32)

    mb = RolloutStorage(2, 3, (4,), ActionSpace("MultiBinary", (5,)), 1)
    assert_shape(mb.actions, (2, 3, 5))
    assert_eq(mb.actions.dtype, th.float32)


def test_storage_invalid_config_raises() -> None:
    space = discrete_space(2)
    assert_raises(ValueError, lambda: RolloutStorage(0, 1, (2,), space, 1))
    assert_raises(ValueError, lambda: RolloutStorage(1, 0, (2,), space, 1))
    assert_raises(ValueError, lambda: RolloutStorage(1, 1, (), space, 1))
    assert_raises(ValueError, lambda: RolloutStorage(1, 1, (2, 0), space, 1))
    assert_raises(ValueError, lambda: RolloutStorage(1, 1, (2,), space, 0))
    assert_raises(ValueError, lambda: ActionSpace("Tuple", (2,)))
    assert_raises(ValueError, lambda: ActionSpace("Discrete", (0,)))


def test_storage_to_device_keeps_contents() -> None:
    storage = filled_storage(num_steps=2, num_processes=2)
    before = storage.observations.clone()

    out = storage.to("cpu")
    assert_true(out is storage)
    assert_eq(storage.device, th.device("cpu"))
    assert_eq((storage.num_steps, storage.num_processes, storage.hidden_state_size), (2, 2, 1))
    assert_eq(tuple(storage.obs_shape), (2,))
    assert_allclose(storage.observations, before)
    assert_eq(storage.actions.dtype, th.long)


# =============================================================================
# Tests: insert / after_update
# =============================================================================
def test_insert_writes_next_slots_and_advances_cursor() -> None:
    storage = RolloutStorage(3, 2, (2,), discrete_space(2), 1)
    storage.set_first_observation(np.full((2, 2), 7.0, dtype=np.float32))

    storage.insert(
        np.full((2, 2), 1.0, dtype=np.float32),
        th.full((2, 1), 0.25),
        th.tensor([[1], [0]]),
        th.full((2, 1), -0.3),
        th.full((2, 1), 0.9),
        th.tensor([[1.0], [2.0]]),
        th.tensor([[1.0], [0.0]]),
    )

    assert_eq(storage.step, 1)
    assert_allclose(storage.observations[0], th.full((2, 2), 7.0))
    assert_allclose(storage.observations[1], th.full((2, 2), 1.0))
    assert_allclose(storage.hidden_states[1], th.full((2, 1), 0.25))
    assert_allclose(storage.masks[1], th.tensor([[1.0], [0.0]]))
    assert_eq(storage.actions[0].view(-1).tolist(), [1, 0])
    assert_allclose(storage.action_log_probs[0], th.full((2, 1), -0.3))
    assert_allclose(storage.value_preds[0], th.full((2, 1), 0.9))
    assert_allclose(storage.rewards[0], th.tensor([[1.0], [2.0]]))
    assert_allclose(storage.masks[0], th.ones(2, 1))


def test_insert_cursor_wraps_after_full_rollout() -> None:
    storage = filled_storage(num_steps=3, num_processes=2)
    assert_eq(storage.step, 0, "cursor must wrap to 0 after num_steps inserts")
    assert_allclose(storage.observations[3], th.full((2, 2), 3.0))


def test_insert_rejects_non_binary_mask() -> None:
    storage = RolloutStorage(2, 1, (2,), discrete_space(2), 1)

    def _bad() -> None:
        storage.insert(
            np.zeros((1, 2), dtype=np.float32),
            th.zeros(1, 1),
            th.zeros(1, 1, dtype=th.long),
            th.zeros(1, 1),
            th.zeros(1, 1),
            th.zeros(1, 1),
            th.tensor([[0.5]]),
        )

    assert_raises(ValueError, _bad)
    assert_eq(storage.step, 0, "a rejected insert must not advance the cursor")


def test_after_update_carries_last_slot() -> None:
    masks = np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 0.0]], dtype=np.float32)
    storage = filled_storage(num_steps=3, num_processes=2, masks=masks)
    storage.after_update()

    assert_eq(storage.step, 0)
    assert_allclose(storage.observations[0], storage.observations[-1])
    assert_allclose(storage.hidden_states[0], storage.hidden_states[-1])
    assert_allclose(storage.masks[0], th.tensor([[1.0], [0.0]]))


# =============================================================================
# Tests: returns
# =============================================================================
def test_compute_returns_discounted_no_done() -> None:
    rewards = np.array([[1.0], [2.0], [3.0]], dtype=np.float32)
    storage = filled_storage(num_steps=3, num_processes=1, rewards=rewards)
    storage.compute_returns(th.tensor([[4.0]]), False, 0.5, 0.95)

    expected = th.tensor([3.25, 4.5, 5.0, 4.0]).view(4, 1, 1)
    assert_allclose(storage.returns, expected, atol=1e-6)


def test_compute_returns_discounted_cut_at_episode_end() -> None:
    # episode ended after step 1 -> masks[2] == 0
    masks = np.array([[1.0], [0.0], [1.0]], dtype=np.float32)
    storage = filled_storage(num_steps=3, num_processes=1, masks=masks)
    storage.compute_returns(th.tensor([[10.0]]), False, 1.0, 1.0)

    expected = th.tensor([2.0, 1.0, 11.0, 10.0]).view(4, 1, 1)
    assert_allclose(storage.returns, expected, atol=1e-6)


def test_returns_before_boundary_ignore_later_rewards() -> None:
    masks = np.array([[1.0, 1.0], [0.0, 1.0], [1.0, 1.0], [1.0, 1.0]], dtype=np.float32)
    base = np.ones((4, 2), dtype=np.float32)
    later = base.copy()
    later[2:, 0] = 50.0

    for use_gae in (False, True):
        a = filled_storage(num_steps=4, num_processes=2, rewards=base, masks=masks)
        b = filled_storage(num_steps=4, num_processes=2, rewards=later, masks=masks)
        a.compute_returns(th.tensor([[3.0], [3.0]]), use_gae, 0.9, 0.8)
        b.compute_returns(th.tensor([[-7.0], [3.0]]), use_gae, 0.9, 0.8)

        # process 0 ended after step 1: slots 0..1 are independent of later data
        assert_allclose(a.returns[:2, 0], b.returns[:2, 0])
        assert_true(bool(th.isfinite(a.returns[:-1]).all()))
        assert_shape(a.returns, (5, 2, 1))


def test_compute_returns_gae_matches_discounted_when_lambda_one() -> None:
    rewards = np.array([[1.0, 0.0], [1.0, 2.0]], dtype=np.float32)
    values = np.array([[0.5, 0.2], [0.5, 0.1]], dtype=np.float32)
    masks = np.array([[1.0, 1.0], [1.0, 0.0]], dtype=np.float32)
    next_value = th.tensor([[1.0], [3.0]])

    gae = filled_storage(num_steps=2, num_processes=2, rewards=rewards, values=values, masks=masks)
    gae.compute_returns(next_value, True, 0.9, 1.0)

    plain = filled_storage(num_steps=2, num_processes=2, rewards=rewards, values=values, masks=masks)
    plain.compute_returns(next_value, False, 0.9, 1.0)

    assert_allclose(gae.returns[:-1], plain.returns[:-1], atol=1e-5)
    assert_allclose(gae.value_preds[-1], next_value)
    assert_allclose(gae.returns[-1], next_value)


def test_compute_returns_gae_seeds_last_slot_with_bootstrap() -> None:
    storage = filled_storage(num_steps=3, num_processes=2)
    storage.compute_returns(th.tensor([[5.0], [7.0]]), True, 0.9, 0.95)
    assert_allclose(storage.returns[-1], th.tensor([[5.0], [7.0]]))

    # a GAE pass after a discounted pass must not keep the older bootstrap
    storage.compute_returns(th.tensor([[1.0], [1.0]]), False, 0.9, 0.95)
    storage.compute_returns(th.tensor([[9.0], [9.0]]), True, 0.9, 0.95)
    assert_allclose(storage.returns[-1], th.tensor([[9.0], [9.0]]))


def test_compute_returns_gae_lambda_zero_is_one_step_td() -> None:
    rewards = np.array([[1.0], [1.0]], dtype=np.float32)
    values = np.array([[0.5], [0.5]], dtype=np.float32)
    storage = filled_storage(num_steps=2, num_processes=1, rewards=rewards, values=values)
    storage.compute_returns(th.tensor([[1.0]]), True, 1.0, 0.0)

    assert_allclose(storage.returns[:-1].view(-1), th.tensor([1.5, 2.0]), atol=1e-6)


def test_compute_returns_rejects_bad_discount() -> None:
    storage = filled_storage(num_steps=2, num_processes=1)
    nv = th.zeros(1, 1)
    assert_raises(ValueError, lambda: storage.compute_returns(nv, False, 1.5, 0.9))
    assert_raises(ValueError, lambda: storage.compute_returns(nv, False, 0.9, -0.1))
    assert_raises(ValueError, lambda: storage.compute_returns(nv, True, -0.1, 0.9))


# =============================================================================
# Tests: gymnasium space conversion
# =============================================================================
def test_action_space_from_gym() -> None:
    d = ActionSpace.from_gym(gym_spaces.Discrete(3))
    assert_eq((d.type, d.shape, d.storage_dim), ("Discrete", (3,), 1))

    b = ActionSpace.from_gym(gym_spaces.Box(low=-1.0, high=1.0, shape=(2,), dtype=np.float32))
    assert_eq((b.type, b.shape, b.storage_dim), ("Box", (2,), 2))

    m = ActionSpace.from_gym(gym_spaces.MultiBinary(4))
    assert_eq((m.type, m.storage_dim), ("MultiBinary", 4))

    assert_raises(ValueError, lambda: ActionSpace.from_gym(gym_spaces.MultiDiscrete([2, 2])))


# =============================================================================
# Simple runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("storage_shapes_dtypes_discrete", test_storage_shapes_and_dtypes_discrete),
    ("storage_shapes_box_multibinary", test_storage_shapes_box_and_multibinary),
    ("storage_invalid_config_raises", test_storage_invalid_config_raises),
    ("storage_to_device", test_storage_to_device_keeps_contents),
    ("insert_writes_next_slots", test_insert_writes_next_slots_and_advances_cursor),
    ("insert_cursor_wraps", test_insert_cursor_wraps_after_full_rollout),
    ("insert_rejects_non_binary_mask", test_insert_rejects_non_binary_mask),
    ("after_update_carries_last_slot", test_after_update_carries_last_slot),
    ("returns_discounted_no_done", test_compute_returns_discounted_no_done),
    ("returns_discounted_cut_at_done", test_compute_returns_discounted_cut_at_episode_end),
    ("returns_boundary_independence", test_returns_before_boundary_ignore_later_rewards),
    ("returns_gae_lambda_one", test_compute_returns_gae_matches_discounted_when_lambda_one),
    ("returns_gae_seeds_last_slot", test_compute_returns_gae_seeds_last_slot_with_bootstrap),
    ("returns_gae_lambda_zero", test_compute_returns_gae_lambda_zero_is_one_step_td),
    ("returns_bad_discount_raises", test_compute_returns_rejects_bad_discount),
    ("action_space_from_gym", test_action_space_from_gym),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="buffers")


if __name__ == "__main__":
    raise SystemExit(main())
