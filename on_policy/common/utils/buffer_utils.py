from __future__ import annotations

import torch as th


def _check_discount(gamma: float, tau: float) -> None:
    if not (0.0 <= gamma <= 1.0):
        raise ValueError(f"gamma must be in [0, 1], got {gamma}")
    if not (0.0 <= tau <= 1.0):
        raise ValueError(f"tau must be in [0, 1], got {tau}")


# =============================================================================
# Return recurrences over (T, N, 1) rollouts
# =============================================================================
@th.no_grad()
def compute_discounted_returns(
    returns: th.Tensor,
    rewards: th.Tensor,
    masks: th.Tensor,
    next_value: th.Tensor,
    *,
    gamma: float,
) -> th.Tensor:
    """
    Fill ``returns`` in place with bootstrapped discounted returns.

    Parameters
    ----------
    returns : torch.Tensor
        Output buffer, shape (T+1, N, 1). Every slot is overwritten.
    rewards : torch.Tensor
        Rewards r_t, shape (T, N, 1).
    masks : torch.Tensor
        Continuation masks, shape (T+1, N, 1). ``masks[t+1] == 0`` means the
        episode ended after step t.
    next_value : torch.Tensor
        Bootstrap value V(s_T), shape (N, 1).
    gamma : float
        Discount factor in [0, 1].

    Returns
    -------
    returns : torch.Tensor
        The same tensor that was passed in.

    Notes
    -----
    Recurrence::

        R_T = V(s_T)
        R_t = R_{t+1} * gamma * mask_{t+1} + r_t
    """
    _check_discount(gamma, 1.0)

    num_steps = rewards.size(0)
    returns[-1].copy_(next_value)
    for step in reversed(range(num_steps)):
        returns[step] = returns[step + 1] * gamma * masks[step + 1] + rewards[step]
    return returns


@th.no_grad()
def compute_gae_returns(
    returns: th.Tensor,
    rewards: th.Tensor,
    value_preds: th.Tensor,
    masks: th.Tensor,
    next_value: th.Tensor,
    *,
    gamma: float,
    tau: float,
) -> th.Tensor:
    """
    Fill ``returns`` in place with GAE(λ) returns, ``A_t + V(s_t)``.

    Parameters
    ----------
    returns : torch.Tensor
        Output buffer, shape (T+1, N, 1). Every slot is written; ``returns[T]``
        holds ``next_value``.
    rewards : torch.Tensor
        Rewards, shape (T, N, 1).
    value_preds : torch.Tensor
        Value estimates, shape (T+1, N, 1). ``value_preds[T]`` is overwritten
        with ``next_value`` before the backward pass.
    masks : torch.Tensor
        Continuation masks, shape (T+1, N, 1).
    next_value : torch.Tensor
        Bootstrap value V(s_T), shape (N, 1).
    gamma : float
        Discount factor in [0, 1].
    tau : float
        GAE smoothing parameter λ in [0, 1].

    Returns
    -------
    returns : torch.Tensor
        The same tensor that was passed in.

    Notes
    -----
    Schulman et al., "High-Dimensional Continuous Control Using GAE", 2016::

        δ_t = r_t + γ V_{t+1} m_{t+1} - V_t
        A_t = δ_t + γ λ m_{t+1} A_{t+1}
    """
    _check_discount(gamma, tau)

    num_steps = rewards.size(0)
    value_preds[-1].copy_(next_value)
    returns[-1].copy_(next_value)
    gae = th.zeros_like(rewards[0])
    for step in reversed(range(num_steps)):
        delta = (
            rewards[step]
            + gamma * value_preds[step + 1] * masks[step + 1]
            - value_preds[step]
        )
        gae = delta + gamma * tau * masks[step + 1] * gae
        returns[step] = gae + value_preds[step]
    return returns
