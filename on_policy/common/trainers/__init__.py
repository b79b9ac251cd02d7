"""
trainers
========

:class:`Trainer` drives an :class:`~on_policy.common.policies.OnPolicyAlgorithm`
over a gymnasium-style vector environment: rollout collection, one update per
rollout, episode statistics, logging and checkpoints.
"""

from __future__ import annotations

from .trainer import Trainer

__all__ = ["Trainer"]
