from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple, Type

import math
import torch as th
import torch.nn as nn

from ..utils.network_utils import _validate_hidden_sizes, _make_weights_init


# =============================================================================
# Feature Extractors
# =============================================================================
class MLPFeaturesExtractor(nn.Module):
    """
    Plain MLP trunk: (Linear -> Activation) repeated.

    Parameters
    ----------
    input_dim : int
        Input dimensionality.
    hidden_sizes : Tuple[int, ...]
        Hidden layer widths. The output width is ``hidden_sizes[-1]``.
    activation_fn : type[nn.Module], default=nn.Tanh
        Activation module class inserted after each linear layer.
    """

    def __init__(
        self,
        input_dim: int,
        hidden_sizes: Tuple[int, ...],
        activation_fn: Type[nn.Module] = nn.Tanh,
    ) -> None:
        super().__init__()
        hs = _validate_hidden_sizes(hidden_sizes)

        layers: list[nn.Module] = []
        prev_dim = int(input_dim)
        for h in hs:
            layers.append(nn.Linear(prev_dim, h))
            layers.append(activation_fn())
            prev_dim = h

        self.net = nn.Sequential(*layers)
        self.out_dim = int(hs[-1])

    def forward(self, x: th.Tensor) -> th.Tensor:
        return self.net(x)


# =============================================================================
# Actor-critic bases
# =============================================================================
class NNBase(nn.Module, ABC):
    """
    Base class for actor-critic feature bodies.

    A base maps ``(obs, hidden_states, masks)`` to
    ``(value, actor_features, hidden_states)``. Hidden states and masks are
    part of the signature so recurrent bodies can plug in; feed-forward bodies
    pass the hidden state through untouched.

    Attributes
    ----------
    output_size : int
        Width of ``actor_features``; the distribution head consumes it.
    hidden_size : int
        Width of the recurrent state carried between steps. Feed-forward bases
        report 1 so the rollout storage still has a slot to pass through.
    """

    def __init__(self, output_size: int) -> None:
        super().__init__()
        self._output_size = int(output_size)

    @property
    def output_size(self) -> int:
        return self._output_size

    @property
    def is_recurrent(self) -> bool:
        return False

    @property
    def hidden_size(self) -> int:
        return 1

    @abstractmethod
    def forward(
        self,
        obs: th.Tensor,
        hidden_states: th.Tensor,
        masks: th.Tensor,
    ) -> Tuple[th.Tensor, th.Tensor, th.Tensor]:
        raise NotImplementedError


class MLPBase(NNBase):
    """
    Feed-forward actor-critic body with separate actor and critic trunks.

    Parameters
    ----------
    num_inputs : int
        Flat observation dimension.
    hidden_size : int, default=64
        Width of every hidden layer in both trunks.
    num_layers : int, default=2
        Number of hidden layers per trunk.
    activation_fn : type[nn.Module], default=nn.Tanh
        Trunk activation.

    Notes
    -----
    - Trunk layers use orthogonal init with gain sqrt(2) and zero bias; the
      critic output uses gain 1.
    - The two trunks share no parameters, so a zero value-loss coefficient
      leaves the critic untouched.
    """

    def __init__(
        self,
        num_inputs: int,
        hidden_size: int = 64,
        *,
        num_layers: int = 2,
        activation_fn: Type[nn.Module] = nn.Tanh,
    ) -> None:
        if int(num_inputs) <= 0:
            raise ValueError(f"num_inputs must be positive, got {num_inputs}")
        if int(num_layers) <= 0:
            raise ValueError(f"num_layers must be positive, got {num_layers}")
        super().__init__(output_size=int(hidden_size))

        self.num_inputs = int(num_inputs)
        hidden_sizes = (int(hidden_size),) * int(num_layers)

        self.actor = MLPFeaturesExtractor(self.num_inputs, hidden_sizes, activation_fn)
        self.critic = MLPFeaturesExtractor(self.num_inputs, hidden_sizes, activation_fn)
        self.critic_linear = nn.Linear(int(hidden_size), 1)

        trunk_init = _make_weights_init("orthogonal", gain=math.sqrt(2.0))
        self.actor.apply(trunk_init)
        self.critic.apply(trunk_init)
        self.critic_linear.apply(_make_weights_init("orthogonal", gain=1.0))

    def forward(
        self,
        obs: th.Tensor,
        hidden_states: th.Tensor,
        masks: th.Tensor,
    ) -> Tuple[th.Tensor, th.Tensor, th.Tensor]:
        """
        Parameters
        ----------
        obs : torch.Tensor
            Shape (B, num_inputs).
        hidden_states : torch.Tensor
            Shape (B, hidden_size); returned unchanged.
        masks : torch.Tensor
            Shape (B, 1); unused by the feed-forward body.

        Returns
        -------
        value : torch.Tensor
            Shape (B, 1).
        actor_features : torch.Tensor
            Shape (B, output_size).
        hidden_states : torch.Tensor
            Same tensor as the input.
        """
        x = obs.reshape(obs.size(0), -1).float()
        value = self.critic_linear(self.critic(x))
        actor_features = self.actor(x)
        return value, actor_features, hidden_states
