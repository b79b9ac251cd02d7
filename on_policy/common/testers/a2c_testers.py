from __future__ import annotations

import math
import os
from typing import Any, Callable, Dict, List, Tuple

import numpy as np
import torch as th

from on_policy.baselines.a2c import A2C, a2c, compute_a2c_loss
from on_policy.common.buffers import RolloutStorage
from on_policy.common.networks import MLPBase
from on_policy.common.optimizers import global_grad_norm
from on_policy.common.policies import OnPolicyAlgorithm, Policy
from on_policy.common.spaces import ActionSpace
from on_policy.common.testers.test_harness import filled_storage
from on_policy.common.testers.test_utils import (
    assert_allclose,
    assert_close,
    assert_eq,
    assert_finite,
    assert_raises,
    assert_shape,
    assert_true,
    mk_tmp_dir,
    run_tests,
    seed_all,
)


def _discrete_policy(obs_dim: int = 2, hidden: int = 10, n: int = 2) -> Policy:
    return Policy(ActionSpace("Discrete", (n,)), MLPBase(obs_dim, hidden))


def _random_one_hot(n: int) -> th.Tensor:
    idx = th.randint(0, 2, (n,))
    return th.nn.functional.one_hot(idx, num_classes=2).float()


def _ready_storage(policy: Policy, *, reward_scale: float = 1.0) -> RolloutStorage:
    rewards = np.array([[1.0, -1.0], [2.0, 0.5], [0.0, 3.0]], dtype=np.float32) * reward_scale
    storage = filled_storage(num_steps=3, num_processes=2, rewards=rewards)
    with th.no_grad():
        next_value = policy.get_values(storage.observations[-1], storage.hidden_states[-1], storage.masks[-1])
    storage.compute_returns(next_value, False, 0.9, 0.95)
    return storage


# =============================================================================
# Tests: loss composition
# =============================================================================
def test_loss_formula() -> None:
    adv = th.tensor([[[1.0]], [[-2.0]]])
    logp = th.tensor([[[-0.5]], [[-1.0]]])
    entropy = th.tensor(0.3)

    loss, value_loss, action_loss = compute_a2c_loss(
        adv, logp, entropy, value_loss_coef=0.5, entropy_coef=0.1
    )
    assert_close(value_loss.item(), 2.5)
    assert_close(action_loss.item(), -0.75)
    assert_close(loss.item(), 2.5 * 0.5 - 0.75 - 0.03, rtol=1e-6)


def test_action_loss_treats_advantage_as_constant() -> None:
    adv = th.tensor([0.5, -1.5, 2.0], requires_grad=True)
    logp = th.tensor([-0.1, -0.2, -0.3], requires_grad=True)

    _, _, action_loss = compute_a2c_loss(adv, logp, th.tensor(0.0), value_loss_coef=1.0, entropy_coef=0.0)
    action_loss.backward()

    assert_true(adv.grad is None, "policy-gradient term must not reach the critic")
    assert_allclose(logp.grad, -adv.detach() / 3.0)


def test_action_loss_gradient_ignores_value_perturbation() -> None:
    returns = th.tensor([1.0, 2.0, -1.0])
    logp_init = th.tensor([-0.7, -0.2, -1.2])

    def _grads(values: th.Tensor) -> Tuple[float, th.Tensor]:
        v = values.clone().requires_grad_(True)
        logp = logp_init.clone().requires_grad_(True)
        _, value_loss, action_loss = compute_a2c_loss(
            returns - v, logp, th.tensor(0.0), value_loss_coef=1.0, entropy_coef=0.0
        )
        action_loss.backward()
        assert_true(v.grad is None)
        return float(value_loss.item()), logp.grad.clone()

    vl_a, g_a = _grads(th.tensor([0.5, 0.5, 0.5]))
    vl_b, g_b = _grads(th.tensor([0.6, 0.5, 0.5]))
    assert_true(vl_a != vl_b, "value loss must react to the critic")
    assert_allclose(g_b - g_a, th.tensor([0.1, 0.0, 0.0]) / 3.0, atol=1e-6)


def test_action_loss_lower_when_mass_follows_advantage() -> None:
    adv = th.tensor([2.0, -1.0])
    aligned = th.log(th.tensor([0.9, 0.1]))
    inverted = th.log(th.tensor([0.1, 0.9]))

    _, _, loss_aligned = compute_a2c_loss(adv, aligned, th.tensor(0.0), value_loss_coef=0.0, entropy_coef=0.0)
    _, _, loss_inverted = compute_a2c_loss(adv, inverted, th.tensor(0.0), value_loss_coef=0.0, entropy_coef=0.0)
    assert_true(loss_aligned.item() < loss_inverted.item())


def test_a2c_invalid_coefficients_raise() -> None:
    policy = _discrete_policy()
    assert_raises(ValueError, lambda: A2C(policy, -1.0, 0.0, 1e-3))
    assert_raises(ValueError, lambda: A2C(policy, 0.5, -0.01, 1e-3))
    assert_raises(ValueError, lambda: A2C(policy, 0.5, 0.01, 0.0))
    assert_raises(ValueError, lambda: A2C(policy, 0.5, 0.01, 1e-3, max_grad_norm=-1.0))


# =============================================================================
# Tests: update step
# =============================================================================
def test_update_returns_metrics_and_changes_params() -> None:
    seed_all(0)
    policy = _discrete_policy()
    core = A2C(policy, 0.5, 0.01, 1e-2)
    storage = _ready_storage(policy)
    before = [p.detach().clone() for p in policy.parameters()]

    metrics = core.update(storage)

    assert_eq(set(metrics.keys()), {"Value loss", "Action loss", "Entropy"})
    for v in metrics.values():
        assert_true(isinstance(v, float))
        assert_finite(v)
    assert_true(metrics["Value loss"] >= 0.0)
    assert_true(0.0 <= metrics["Entropy"] <= math.log(2.0) + 1e-6)
    assert_eq(core.update_calls, 1)

    changed = any(not th.equal(b, p.detach()) for b, p in zip(before, policy.parameters()))
    assert_true(changed, "one update must move the parameters")


def test_update_evaluates_whole_rollout_from_first_hidden_slot() -> None:
    seed_all(1)
    policy = _discrete_policy()
    core = A2C(policy, 0.5, 0.01, 1e-2)
    storage = _ready_storage(policy)

    seen: Dict[str, Tuple[int, ...]] = {}
    original = policy.evaluate_actions

    def spy(obs, hidden_states, masks, actions):
        seen["obs"] = tuple(obs.shape)
        seen["hidden"] = tuple(hidden_states.shape)
        seen["masks"] = tuple(masks.shape)
        seen["actions"] = tuple(actions.shape)
        return original(obs, hidden_states, masks, actions)

    policy.evaluate_actions = spy
    core.update(storage)

    assert_eq(seen["obs"], (6, 2))
    assert_eq(seen["hidden"], (2, 1))
    assert_eq(seen["masks"], (6, 1))
    assert_eq(seen["actions"], (6, 1))


def test_update_does_not_touch_storage() -> None:
    seed_all(2)
    policy = _discrete_policy()
    core = A2C(policy, 0.5, 0.01, 1e-2)
    storage = _ready_storage(policy)
    returns = storage.returns.clone()
    step = storage.step

    core.update(storage)
    assert_allclose(storage.returns, returns)
    assert_eq(storage.step, step)


def test_zero_coefficients_leave_critic_untouched() -> None:
    seed_all(3)
    policy = _discrete_policy()
    core = A2C(policy, 0.0, 0.0, 1e-2)
    storage = _ready_storage(policy)

    critic_params = list(policy.base.critic.parameters()) + list(policy.base.critic_linear.parameters())
    critic_before = [p.detach().clone() for p in critic_params]
    actor_before = [p.detach().clone() for p in policy.base.actor.parameters()]

    core.update(storage)

    for b, p in zip(critic_before, critic_params):
        assert_allclose(p, b, msg="critic must not move with value_loss_coef == 0")
    moved = any(not th.equal(b, p.detach()) for b, p in zip(actor_before, policy.base.actor.parameters()))
    assert_true(moved, "actor must still learn from the policy-gradient term")


def _norm_seen_by_optimizer(max_grad_norm: float) -> float:
    seed_all(4)
    policy = _discrete_policy()
    core = A2C(policy, 1.0, 0.01, 1e-2, max_grad_norm=max_grad_norm)
    storage = _ready_storage(policy, reward_scale=100.0)

    norms: List[float] = []
    core.optimizer.step = lambda *args, **kwargs: norms.append(global_grad_norm(policy.parameters()))
    core.update(storage)
    assert_eq(len(norms), 1, "exactly one optimizer step per update")
    return norms[0]


def test_gradient_clipping_bounds_global_norm() -> None:
    assert_true(_norm_seen_by_optimizer(0.0) > 0.01, "unclipped norm should exceed the threshold")
    assert_true(_norm_seen_by_optimizer(0.01) <= 0.01 + 1e-5)


# =============================================================================
# Tests: learning signal
# =============================================================================
def _play_two_state_game(seed: int, learning_rate: float) -> Tuple[th.Tensor, th.Tensor]:
    """Train on the two-state game; return P(a | s=[1,0]) before and after."""
    seed_all(seed)
    space = ActionSpace("Discrete", (2,))
    policy = Policy(space, MLPBase(2, 10))
    storage = RolloutStorage(3, 2, (2,), space, 1)
    core = A2C(policy, 1.0, 1e-7, learning_rate)

    query = th.tensor([[1.0, 0.0]])
    with th.no_grad():
        before = policy.get_probs(query, th.zeros(1, 1), th.ones(1, 1))[0]

    storage.set_first_observation(_random_one_hot(2))
    for _ in range(10):
        for step in range(3):
            with th.no_grad():
                value, action, logp, hidden = policy.act(
                    storage.observations[step], storage.hidden_states[step], storage.masks[step]
                )
            state = storage.observations[step].argmax(dim=-1, keepdim=True)
            reward = (action == state).float()
            storage.insert(_random_one_hot(2), hidden, action, logp, value, reward, th.ones(2, 1))

        with th.no_grad():
            next_value = policy.get_values(
                storage.observations[-1], storage.hidden_states[-1], storage.masks[-1]
            )
        storage.compute_returns(next_value, False, 0.9, 0.9)
        core.update(storage)
        storage.after_update()

    with th.no_grad():
        after = policy.get_probs(query, th.zeros(1, 1), th.ones(1, 1))[0]
    return before, after


def test_two_state_game_prefers_rewarded_action() -> None:
    # RMSprop's first step is ~lr / sqrt(1 - alpha) per weight; lr=0.1 saturates the softmax
    seeds = range(5)
    moved_right = []
    for seed in seeds:
        before, after = _play_two_state_game(seed, 1e-2)
        moved_right.append(bool(after[0] > before[0] and after[1] < before[1]))

    assert_true(
        sum(moved_right) >= 3,
        f"P(a=0 | s=[1,0]) should rise in most runs, got {moved_right} over seeds {list(seeds)}",
    )


# =============================================================================
# Tests: algorithm driver + builder
# =============================================================================
def _run_rollout(algo: OnPolicyAlgorithm, obs_dim: int) -> None:
    n = algo.num_processes
    for _ in range(algo.num_steps):
        value, action, logp, hidden = algo.act()
        algo.on_env_step(
            obs=np.random.randn(n, obs_dim).astype(np.float32),
            hidden_states=hidden,
            action=action,
            action_log_prob=logp,
            value=value,
            reward=np.ones((n, 1), dtype=np.float32),
            mask=np.ones((n, 1), dtype=np.float32),
        )


def test_algorithm_lifecycle_errors() -> None:
    seed_all(6)
    algo = a2c(obs_shape=(3,), action_space=ActionSpace("Discrete", (2,)), num_processes=2, num_steps=2)

    assert_raises(RuntimeError, lambda: algo.act())
    algo.reset(np.zeros((2, 3), dtype=np.float32))
    assert_raises(RuntimeError, lambda: algo.update())

    _run_rollout(algo, 3)
    assert_true(algo.ready_to_update())
    value, action, logp, hidden = algo.act()
    assert_raises(
        RuntimeError,
        lambda: algo.on_env_step(
            obs=np.zeros((2, 3), dtype=np.float32),
            hidden_states=hidden,
            action=action,
            action_log_prob=logp,
            value=value,
            reward=np.zeros((2, 1), dtype=np.float32),
            mask=np.ones((2, 1), dtype=np.float32),
        ),
    )


def test_algorithm_update_recycles_storage() -> None:
    seed_all(7)
    algo = a2c(obs_shape=(3,), action_space=ActionSpace("Box", (2,)), num_processes=2, num_steps=4, use_gae=True)
    algo.reset(np.zeros((2, 3), dtype=np.float32))
    _run_rollout(algo, 3)
    last_obs = algo.storage.observations[-1].clone()

    metrics = algo.update()

    assert_eq(set(metrics.keys()), {"Value loss", "Action loss", "Entropy"})
    assert_eq(algo.storage.step, 0)
    assert_allclose(algo.storage.observations[0], last_obs)
    assert_true(not algo.ready_to_update())
    assert_eq(algo.env_steps, 8)


def test_algorithm_predict_shapes() -> None:
    algo = a2c(obs_shape=(3,), action_space=ActionSpace("Discrete", (4,)), num_processes=1)
    assert_shape(algo.predict(np.zeros((5, 3), dtype=np.float32)), (5, 1))
    assert_shape(algo.predict(np.zeros(3, dtype=np.float32)), (1, 1))


def test_algorithm_save_load_roundtrip() -> None:
    seed_all(8)
    space = ActionSpace("Discrete", (2,))
    src = a2c(obs_shape=(3,), action_space=space, num_processes=2, num_steps=2)
    src.reset(np.zeros((2, 3), dtype=np.float32))
    _run_rollout(src, 3)
    src.update()

    path = os.path.join(mk_tmp_dir(), "algo")
    src.save(path)

    dst = a2c(obs_shape=(3,), action_space=space, num_processes=2, num_steps=2)
    dst.load(path)

    obs = th.randn(4, 3)
    h, m = th.zeros(4, 1), th.ones(4, 1)
    assert_allclose(dst.policy.get_probs(obs, h, m), src.policy.get_probs(obs, h, m))
    assert_eq(dst.core.update_calls, 1)
    assert_eq(dst.env_steps, 4)

    bad = os.path.join(mk_tmp_dir(), "bad.pt")
    th.save({"weights": 1}, bad)
    assert_raises(ValueError, lambda: dst.load(bad))


# =============================================================================
# Simple runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("loss_formula", test_loss_formula),
    ("action_loss_advantage_constant", test_action_loss_treats_advantage_as_constant),
    ("action_loss_ignores_value_perturbation", test_action_loss_gradient_ignores_value_perturbation),
    ("action_loss_sign", test_action_loss_lower_when_mass_follows_advantage),
    ("invalid_coefficients", test_a2c_invalid_coefficients_raise),
    ("update_metrics_and_params", test_update_returns_metrics_and_changes_params),
    ("update_evaluation_shapes", test_update_evaluates_whole_rollout_from_first_hidden_slot),
    ("update_does_not_touch_storage", test_update_does_not_touch_storage),
    ("zero_coefficients_critic_untouched", test_zero_coefficients_leave_critic_untouched),
    ("gradient_clipping", test_gradient_clipping_bounds_global_norm),
    ("two_state_game", test_two_state_game_prefers_rewarded_action),
    ("algorithm_lifecycle_errors", test_algorithm_lifecycle_errors),
    ("algorithm_update_recycles", test_algorithm_update_recycles_storage),
    ("algorithm_predict_shapes", test_algorithm_predict_shapes),
    ("algorithm_save_load", test_algorithm_save_load_roundtrip),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="a2c")


if __name__ == "__main__":
    raise SystemExit(main())
