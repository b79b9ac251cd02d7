"""
A2C
=======

Synchronous Advantage Actor-Critic.

Public API
----------
a2c : callable
    Builder wiring :class:`~on_policy.common.policies.Policy`, :class:`A2C`
    and :class:`~on_policy.common.policies.OnPolicyAlgorithm`.
A2C : BaseCore
    One RMSprop step per rollout: value loss, detached-advantage policy loss,
    entropy bonus, global gradient clipping.
compute_a2c_loss : callable
    Pure loss composition used by :class:`A2C`.

Examples
--------
::

    from on_policy.baselines.a2c import a2c
    from on_policy.common.spaces import ActionSpace

    algo = a2c(obs_shape=(4,), action_space=ActionSpace("Discrete", (2,)), num_processes=8)
"""

from __future__ import annotations

from .a2c import a2c
from .core import A2C, compute_a2c_loss

__all__ = [
    "a2c",
    "A2C",
    "compute_a2c_loss",
]
