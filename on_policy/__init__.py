"""
on_policy

Top-level package initializer.

Re-exports the stable public API: the synchronous A2C builder and update
engine, rollout storage, and the policy/algorithm classes they plug into.

Usage
-----
from on_policy import a2c, ActionSpace, Trainer
"""

from __future__ import annotations

from .baselines.a2c import A2C, a2c, compute_a2c_loss
from .common.buffers import RolloutStorage
from .common.policies import BasePolicy, OnPolicyAlgorithm, Policy
from .common.spaces import ActionSpace
from .common.trainers import Trainer

__all__ = [
    "a2c",
    "A2C",
    "compute_a2c_loss",
    "RolloutStorage",
    "ActionSpace",
    "BasePolicy",
    "Policy",
    "OnPolicyAlgorithm",
    "Trainer",
]
