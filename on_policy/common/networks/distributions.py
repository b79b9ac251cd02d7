from __future__ import annotations

from abc import ABC, abstractmethod

import torch as th
import torch.nn as nn
from torch.distributions import Bernoulli, Categorical, Normal

from ..utils.network_utils import _make_weights_init


LOG_STD_MIN = -20.0
LOG_STD_MAX = 2.0


# =============================================================================
# Base interface
# =============================================================================
class BaseDistribution(ABC):
    """
    Base interface for policy action distributions.

    Contract
    --------
    - `sample()`   : non-reparameterized sampling, shape (B, storage_dim).
    - `log_prob()` : shape (B, 1), summed over action dims where needed.
    - `entropy()`  : shape (B, 1), summed over action dims where needed.
    - `mode()`     : deterministic action (mean / argmax / threshold).
    """

    @abstractmethod
    def sample(self) -> th.Tensor:
        raise NotImplementedError

    @abstractmethod
    def log_prob(self, action: th.Tensor) -> th.Tensor:
        raise NotImplementedError

    @abstractmethod
    def entropy(self) -> th.Tensor:
        raise NotImplementedError

    @abstractmethod
    def mode(self) -> th.Tensor:
        raise NotImplementedError


# =============================================================================
# Discrete: Categorical
# =============================================================================
class CategoricalDistribution(BaseDistribution):
    """
    Categorical distribution over ``n`` discrete actions.

    Parameters
    ----------
    logits : torch.Tensor
        Unnormalized logits, shape (B, n).

    Notes
    -----
    Actions are returned as (B, 1) long tensors, matching the single long
    slot the rollout storage reserves for a discrete action.
    """

    def __init__(self, logits: th.Tensor) -> None:
        self.logits = logits
        self.dist = Categorical(logits=logits)

    @property
    def probs(self) -> th.Tensor:
        """Action probabilities, shape (B, n)."""
        return self.dist.probs

    def sample(self) -> th.Tensor:
        return self.dist.sample().unsqueeze(-1)

    def log_prob(self, action: th.Tensor) -> th.Tensor:
        """
        Parameters
        ----------
        action : torch.Tensor
            Action indices, shape (B,) or (B, 1).

        Returns
        -------
        log_prob : torch.Tensor
            Shape (B, 1).
        """
        if action.dim() == 2 and action.size(-1) == 1:
            action = action.squeeze(-1)
        return self.dist.log_prob(action.long()).unsqueeze(-1)

    def entropy(self) -> th.Tensor:
        return self.dist.entropy().unsqueeze(-1)

    def mode(self) -> th.Tensor:
        return th.argmax(self.dist.probs, dim=-1, keepdim=True)


# =============================================================================
# Continuous: Diagonal Gaussian
# =============================================================================
class DiagGaussianDistribution(BaseDistribution):
    """
    Diagonal Gaussian distribution (continuous actions, no squashing).

    Parameters
    ----------
    mean : torch.Tensor
        Mean tensor, shape (B, A).
    log_std : torch.Tensor
        Log standard deviation, broadcastable to (B, A). Clamped to
        [LOG_STD_MIN, LOG_STD_MAX].
    """

    def __init__(self, mean: th.Tensor, log_std: th.Tensor) -> None:
        self.mean = mean
        self.log_std = th.clamp(log_std, LOG_STD_MIN, LOG_STD_MAX).expand_as(mean)
        self.dist = Normal(self.mean, th.exp(self.log_std))

    def sample(self) -> th.Tensor:
        return self.dist.sample()

    def log_prob(self, action: th.Tensor) -> th.Tensor:
        return self.dist.log_prob(action).sum(dim=-1, keepdim=True)

    def entropy(self) -> th.Tensor:
        return self.dist.entropy().sum(dim=-1, keepdim=True)

    def mode(self) -> th.Tensor:
        return self.mean


# =============================================================================
# Multi-binary: independent Bernoulli
# =============================================================================
class BernoulliDistribution(BaseDistribution):
    """
    Product of independent Bernoulli variables (MultiBinary actions).

    Parameters
    ----------
    logits : torch.Tensor
        Per-bit logits, shape (B, n).
    """

    def __init__(self, logits: th.Tensor) -> None:
        self.logits = logits
        self.dist = Bernoulli(logits=logits)

    @property
    def probs(self) -> th.Tensor:
        """Per-bit probability of 1, shape (B, n)."""
        return self.dist.probs

    def sample(self) -> th.Tensor:
        return self.dist.sample()

    def log_prob(self, action: th.Tensor) -> th.Tensor:
        return self.dist.log_prob(action.float()).sum(dim=-1, keepdim=True)

    def entropy(self) -> th.Tensor:
        return self.dist.entropy().sum(dim=-1, keepdim=True)

    def mode(self) -> th.Tensor:
        return (self.dist.probs > 0.5).float()


# =============================================================================
# Output layers: features -> distribution
# =============================================================================
class CategoricalOutput(nn.Module):
    """Linear logits head; small-gain init keeps the initial policy near uniform."""

    def __init__(self, num_inputs: int, num_outputs: int) -> None:
        super().__init__()
        self.linear = nn.Linear(int(num_inputs), int(num_outputs))
        self.linear.apply(_make_weights_init("orthogonal", gain=0.01))

    def forward(self, features: th.Tensor) -> CategoricalDistribution:
        return CategoricalDistribution(self.linear(features))


class NormalOutput(nn.Module):
    """
    Gaussian head with a state-independent log-std.

    Parameters
    ----------
    num_inputs : int
        Actor feature width.
    num_outputs : int
        Action dimension.
    log_std_init : float, default=0.0
        Initial value of the trainable log-std vector.
    """

    def __init__(self, num_inputs: int, num_outputs: int, *, log_std_init: float = 0.0) -> None:
        super().__init__()
        self.linear = nn.Linear(int(num_inputs), int(num_outputs))
        self.linear.apply(_make_weights_init("orthogonal", gain=1.0))
        self.log_std = nn.Parameter(th.full((int(num_outputs),), float(log_std_init)))

    def forward(self, features: th.Tensor) -> DiagGaussianDistribution:
        mean = self.linear(features)
        return DiagGaussianDistribution(mean, self.log_std)


class BernoulliOutput(nn.Module):
    """Linear per-bit logits head."""

    def __init__(self, num_inputs: int, num_outputs: int) -> None:
        super().__init__()
        self.linear = nn.Linear(int(num_inputs), int(num_outputs))
        self.linear.apply(_make_weights_init("orthogonal", gain=0.01))

    def forward(self, features: th.Tensor) -> BernoulliDistribution:
        return BernoulliDistribution(self.linear(features))
