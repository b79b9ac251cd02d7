from __future__ import annotations

from typing import Any, Callable, List, Tuple

import torch as th
import torch.nn as nn
import torch.optim as optim

from on_policy.common.optimizers import (
    build_optimizer,
    clip_grad_norm,
    global_grad_norm,
    load_optimizer_state_dict,
    optimizer_state_dict,
)
from on_policy.common.testers.test_utils import (
    assert_allclose,
    assert_close,
    assert_eq,
    assert_raises,
    assert_true,
    run_tests,
    seed_all,
)


def _model_with_grads(scale: float = 10.0) -> nn.Module:
    seed_all(0)
    model = nn.Linear(4, 3)
    loss = (model(th.randn(8, 4)) * scale).pow(2).sum()
    loss.backward()
    return model


# =============================================================================
# Tests: factory
# =============================================================================
def test_build_optimizer_names() -> None:
    params = list(nn.Linear(2, 2).parameters())
    assert_true(isinstance(build_optimizer(params), optim.RMSprop), "default must be RMSprop")
    assert_true(isinstance(build_optimizer(params, name="RMS_prop"), optim.RMSprop))
    assert_true(isinstance(build_optimizer(params, name="rms"), optim.RMSprop))
    assert_raises(ValueError, lambda: build_optimizer(params, name="adam"))


def test_build_optimizer_rmsprop_hyperparameters() -> None:
    params = list(nn.Linear(2, 2).parameters())
    opt = build_optimizer(params, name="rmsprop", lr=1e-3, eps=1e-5, alpha=0.95)
    group = opt.param_groups[0]
    assert_close(group["lr"], 1e-3)
    assert_close(group["eps"], 1e-5)
    assert_close(group["alpha"], 0.95)


def test_build_optimizer_invalid_raises() -> None:
    params = list(nn.Linear(2, 2).parameters())
    assert_raises(ValueError, lambda: build_optimizer(params, name="lion"))
    assert_raises(ValueError, lambda: build_optimizer(params, lr=0.0))
    assert_raises(ValueError, lambda: build_optimizer(params, eps=0.0))
    assert_raises(ValueError, lambda: build_optimizer(params, alpha=1.0))
    assert_raises(ValueError, lambda: build_optimizer(params, weight_decay=-1.0))


# =============================================================================
# Tests: gradient utilities
# =============================================================================
def test_clip_grad_norm_limits_global_norm() -> None:
    model = _model_with_grads()
    before = global_grad_norm(model.parameters())
    assert_true(before > 1.0)

    returned = clip_grad_norm(model.parameters(), 1.0)
    assert_close(returned, before, rtol=1e-5)
    assert_close(global_grad_norm(model.parameters()), 1.0, rtol=1e-4)


def test_clip_grad_norm_disabled_is_noop() -> None:
    model = _model_with_grads()
    before = [p.grad.clone() for p in model.parameters()]

    assert_eq(clip_grad_norm(model.parameters(), 0.0), 0.0)
    for g0, p in zip(before, model.parameters()):
        assert_allclose(p.grad, g0)


def test_global_grad_norm_without_grads_is_zero() -> None:
    assert_eq(global_grad_norm(nn.Linear(2, 2).parameters()), 0.0)


def test_optimizer_state_roundtrip() -> None:
    model = _model_with_grads()
    opt = build_optimizer(model.parameters(), lr=1e-2)
    opt.step()

    fresh = build_optimizer(model.parameters(), lr=1e-2)
    load_optimizer_state_dict(fresh, optimizer_state_dict(opt))

    for p in model.parameters():
        assert_allclose(fresh.state[p]["square_avg"], opt.state[p]["square_avg"])


# =============================================================================
# Simple runner
# =============================================================================
TESTS: List[Tuple[str, Callable[[], Any]]] = [
    ("build_optimizer_names", test_build_optimizer_names),
    ("build_optimizer_rmsprop_hparams", test_build_optimizer_rmsprop_hyperparameters),
    ("build_optimizer_invalid", test_build_optimizer_invalid_raises),
    ("clip_grad_norm_limits", test_clip_grad_norm_limits_global_norm),
    ("clip_grad_norm_disabled", test_clip_grad_norm_disabled_is_noop),
    ("global_grad_norm_no_grads", test_global_grad_norm_without_grads_is_zero),
    ("optimizer_state_roundtrip", test_optimizer_state_roundtrip),
]


def main(argv=None) -> int:
    return run_tests(TESTS, argv=argv, suite_name="optimizers")


if __name__ == "__main__":
    raise SystemExit(main())
