"""
networks
========

Actor-critic bodies and action-distribution heads.

- :class:`MLPBase` : separate tanh MLP trunks for actor and critic.
- Output heads (:class:`CategoricalOutput`, :class:`NormalOutput`,
  :class:`BernoulliOutput`) turn actor features into distribution wrappers
  whose ``log_prob``/``entropy`` are always shaped (B, 1).
"""

from __future__ import annotations

from .base_networks import MLPBase, MLPFeaturesExtractor, NNBase
from .distributions import (
    BaseDistribution,
    BernoulliDistribution,
    BernoulliOutput,
    CategoricalDistribution,
    CategoricalOutput,
    DiagGaussianDistribution,
    NormalOutput,
)

__all__ = [
    "NNBase",
    "MLPBase",
    "MLPFeaturesExtractor",
    "BaseDistribution",
    "CategoricalDistribution",
    "DiagGaussianDistribution",
    "BernoulliDistribution",
    "CategoricalOutput",
    "NormalOutput",
    "BernoulliOutput",
]
