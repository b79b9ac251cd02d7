from __future__ import annotations

from typing import Any, Tuple, Union

import torch as th
import torch.nn as nn

from on_policy.common.networks import MLPBase
from on_policy.common.policies import OnPolicyAlgorithm, Policy
from on_policy.common.spaces import ActionSpace

from .core import A2C


def a2c(
    *,
    # -------------------------------------------------------------------------
    # Environment I/O
    # -------------------------------------------------------------------------
    obs_shape: Tuple[int, ...],
    action_space: ActionSpace,
    num_processes: int,
    device: Union[str, th.device] = "cpu",
    # -------------------------------------------------------------------------
    # Network hyperparameters
    # -------------------------------------------------------------------------
    hidden_size: int = 64,
    num_layers: int = 2,
    activation_fn: Any = nn.Tanh,
    log_std_init: float = 0.0,
    # -------------------------------------------------------------------------
    # A2C update hyperparameters
    # -------------------------------------------------------------------------
    value_loss_coef: float = 0.5,
    entropy_coef: float = 0.01,
    learning_rate: float = 7e-4,
    epsilon: float = 1e-5,
    alpha: float = 0.99,
    max_grad_norm: float = 0.5,
    # -------------------------------------------------------------------------
    # Rollout schedule
    # -------------------------------------------------------------------------
    num_steps: int = 5,
    gamma: float = 0.99,
    use_gae: bool = False,
    gae_lambda: float = 0.95,
) -> OnPolicyAlgorithm:
    """
    Build a synchronous A2C :class:`OnPolicyAlgorithm` for flat observations.

    Wires three layers:

    1) **Policy** (:class:`Policy` over :class:`MLPBase`): separate actor and
       critic MLP trunks plus a distribution head chosen by ``action_space``.
    2) **Core** (:class:`A2C`): RMSprop optimizer, loss composition, gradient
       clipping.
    3) **Algorithm** (:class:`OnPolicyAlgorithm`): rollout storage sized
       ``(num_steps, num_processes)``, bootstrap value, return computation.

    Parameters
    ----------
    obs_shape : Tuple[int, ...]
        Per-environment observation shape. Flattened by the MLP body.
    action_space : ActionSpace
        Discrete, Box, or MultiBinary descriptor.
    num_processes : int
        Number of parallel environments.
    device : str | torch.device, default="cpu"
        Device for the policy and storage.
    hidden_size : int, default=64
        Width of every hidden layer.
    num_layers : int, default=2
        Hidden layers per trunk.
    activation_fn : Any, default=torch.nn.Tanh
        Trunk activation class.
    log_std_init : float, default=0.0
        Initial Gaussian log-std (Box only).
    value_loss_coef, entropy_coef : float
        Loss weights.
    learning_rate, epsilon, alpha : float
        RMSprop hyperparameters.
    max_grad_norm : float, default=0.5
        Global gradient-norm clip; 0 disables.
    num_steps : int, default=5
        Rollout horizon.
    gamma : float, default=0.99
        Discount factor.
    use_gae : bool, default=False
        Use GAE(λ) returns.
    gae_lambda : float, default=0.95
        GAE λ.

    Returns
    -------
    OnPolicyAlgorithm
    """
    num_inputs = 1
    for d in obs_shape:
        num_inputs *= int(d)

    # -------------------------------------------------------------------------
    # 1) Policy
    # -------------------------------------------------------------------------
    base = MLPBase(
        num_inputs,
        int(hidden_size),
        num_layers=int(num_layers),
        activation_fn=activation_fn,
    )
    policy = Policy(action_space, base, log_std_init=float(log_std_init)).to(device)

    # -------------------------------------------------------------------------
    # 2) Core
    # -------------------------------------------------------------------------
    core = A2C(
        policy,
        float(value_loss_coef),
        float(entropy_coef),
        float(learning_rate),
        epsilon=float(epsilon),
        alpha=float(alpha),
        max_grad_norm=float(max_grad_norm),
    )

    # -------------------------------------------------------------------------
    # 3) Algorithm
    # -------------------------------------------------------------------------
    return OnPolicyAlgorithm(
        policy=policy,
        core=core,
        num_steps=int(num_steps),
        num_processes=int(num_processes),
        obs_shape=tuple(obs_shape),
        gamma=float(gamma),
        use_gae=bool(use_gae),
        gae_lambda=float(gae_lambda),
        device=device,
    )
