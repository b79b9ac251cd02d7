from __future__ import annotations

import os
from typing import Any, Callable, List, Tuple

import torch as th
import torch.nn as nn

from on_policy.common.networks import MLPBase
from on_policy.common.policies import Policy
from on_policy.common.spaces import ActionSpace
from on_policy.common.testers.test_utils import (
    assert_allclose,
    assert_eq,
    assert_finite,
    assert_raises,
    assert_shape,
    assert_true,
    mk_tmp_dir,
    run_tests,
    seed_all,
)
from on_policy.common.utils.network_utils import _make_weights_init


def _make_policy(space: ActionSpace, obs_dim: int = 4, hidden: int = 16) -> Policy:
    return Policy(space, MLPBase(obs_dim, hidden))


def _inputs(batch: int = 5, obs_dim: int = 4) -> Tuple[th.Tensor, th.Tensor, th.Tensor]:
    return th.randn(batch, obs_dim), th.zeros(batch, 1), th.ones(batch, 1)


# =============================================================================
# Tests: body
# =============================================================================
def test_mlp_base_forward_shapes_and_hidden_passthrough() -> None:
    seed_all(0)
    base = MLPBase(4, 32, num_layers=3)
    obs, h, m = _inputs()
    h = th.full((5, 1), 0.7)

    value, features, h_out = base(obs, h, m)
    assert_shape(value, (5, 1))
    assert_shape(features, (5, 32))
    assert_true(h_out is h, "feed-forward body must return hidden states unchanged")
    assert_eq(base.hidden_size, 1)
    assert_true(base.is_recurrent is False)


def test_mlp_base_trunks_share_no_parameters() -> None:
    base = MLPBase(3, 8)
    actor_ids = {id(p) for p in base.actor.parameters()}
    critic_ids = {id(p) for p in base.critic.parameters()} | {id(p) for p in base.critic_linear.parameters()}
    assert_true(actor_ids.isdisjoint(critic_ids))


def test_mlp_base_invalid_config_raises() -> None:
    assert_raises(ValueError, lambda: MLPBase(0, 8))
    assert_raises(ValueError, lambda: MLPBase(4, 8, num_layers=0))
    assert_raises(ValueError, lambda: _make_weights_init("uniformish"))


# =============================================================================
# Tests: policy heads
# =============================================================================
def test_discrete_policy_act_and_evaluate() -> None:
    seed_all(1)
    policy = _make_policy(ActionSpace("Discrete", (3,)))
    obs, h, m = _inputs()

    value, action, logp, h_out = policy.act(obs, h, m)
    assert_shape(value, (5, 1))
    assert_shape(action, (5, 1))
    assert_eq(action.dtype, th.long)
    assert_shape(logp, (5, 1))
    assert_shape(h_out, (5, 1))

    v2, logp2, entropy, _ = policy.evaluate_actions(obs, h, m, action)
    assert_allclose(v2, value, atol=1e-6)
    assert_allclose(logp2, logp, atol=1e-6)
    assert_eq(entropy.dim(), 0, "entropy must be a batch mean scalar")

    probs = policy.get_probs(obs, h, m)
    assert_shape(probs, (5, 3))
    assert_allclose(probs.sum(dim=-1), th.ones(5), atol=1e-5)
    assert_allclose(logp2.exp().view(-1), probs.gather(1, action).view(-1), atol=1e-5)


def test_discrete_policy_deterministic_is_argmax() -> None:
    seed_all(2)
    policy = _make_policy(ActionSpace("Discrete", (4,)))
    obs, h, m = _inputs(batch=6)

    _, action, _, _ = policy.act(obs, h, m, deterministic=True)
    probs = policy.get_probs(obs, h, m)
    assert_eq(action.view(-1).tolist(), probs.argmax(dim=-1).tolist())


def test_box_policy_shapes_and_get_probs_raises() -> None:
    seed_all(3)
    policy = Policy(ActionSpace("Box", (2,)), MLPBase(4, 16), log_std_init=-0.5)
    obs, h, m = _inputs()

    _, action, logp, _ = policy.act(obs, h, m)
    assert_shape(action, (5, 2))
    assert_eq(action.dtype, th.float32)
    assert_shape(logp, (5, 1))
    assert_finite(logp)

    _, logp2, entropy, _ = policy.evaluate_actions(obs, h, m, action)
    assert_allclose(logp2, logp, atol=1e-5)
    assert_eq(entropy.dim(), 0)

    assert_raises(ValueError, lambda: policy.get_probs(obs, h, m))


def test_multibinary_policy_shapes() -> None:
    seed_all(4)
    policy = _make_policy(ActionSpace("MultiBinary", (3,)))
    obs, h, m = _inputs()

    _, action, logp, _ = policy.act(obs, h, m)
    assert_shape(action, (5, 3))
    assert_true(bool(((action == 0.0) | (action == 1.0)).all()))
    assert_shape(logp, (5, 1))
    assert_shape(policy.get_probs(obs, h, m), (5, 3))


def test_policy_accepts_unbatched_observation() -> None:
    policy = _make_policy(ActionSpace("Discrete", (2,)))
    value = policy.get_values(th.randn(4), th.zeros(1), th.ones(1))
    assert_shape(value, (1, 1))


def test_policy_rejects_non_nnbase_body() -> None:
    assert_raises(ValueError, lambda: Policy(ActionSpace("Discrete", (2,)), nn.Linear(4, 4)))


def test_policy_save_load_roundtrip() -> None:
    seed_all(5)
    src = _make_policy(ActionSpace("Discrete", (2,)))
    dst = _make_policy(ActionSpace("Discrete", (2,)))
    path = os.path.join(mk_tmp_dir(), "policy")

    src.save(path)
    assert_true(os.path.exists(path + ".pt"))
    dst.load(path)

    obs, h, m = _inputs()
    assert_allclose(dst.get_probs(obs, h, m), src.get_probs(obs, h, m))
    assert_allclose(dst.get_values(obs, h, m), src.get_values(obs, h, m))


# =============================================================================
# Simple runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("mlp_base_shapes_hidden_passthrough", test_mlp_base_forward_shapes_and_hidden_passthrough),
    ("mlp_base_trunks_disjoint", test_mlp_base_trunks_share_no_parameters),
    ("mlp_base_invalid_config", test_mlp_base_invalid_config_raises),
    ("discrete_act_evaluate", test_discrete_policy_act_and_evaluate),
    ("discrete_deterministic_argmax", test_discrete_policy_deterministic_is_argmax),
    ("box_shapes_get_probs_raises", test_box_policy_shapes_and_get_probs_raises),
    ("multibinary_shapes", test_multibinary_policy_shapes),
    ("unbatched_observation", test_policy_accepts_unbatched_observation),
    ("rejects_non_nnbase", test_policy_rejects_non_nnbase_body),
    ("save_load_roundtrip", test_policy_save_load_roundtrip),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="policies")


if __name__ == "__main__":
    raise SystemExit(main())
