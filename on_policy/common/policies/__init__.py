"""
policies
========

Actor-critic policies, update-engine base, and algorithm drivers.

- :class:`BasePolicy` / :class:`Policy` : actor-critic contract and its MLP
  implementation over Discrete, Box and MultiBinary action spaces.
- :class:`BaseCore` : optimizer-owning update engine base.
- :class:`BaseAlgorithm` / :class:`OnPolicyAlgorithm` : glue between policy,
  core and rollout storage, with checkpointing.
"""

from __future__ import annotations

from .base_core import BaseCore
from .base_head import BasePolicy
from .base_policy import BaseAlgorithm
from .on_policy_algorithm import OnPolicyAlgorithm
from .policy import Policy

__all__ = [
    "BasePolicy",
    "Policy",
    "BaseCore",
    "BaseAlgorithm",
    "OnPolicyAlgorithm",
]
