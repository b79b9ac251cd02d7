from __future__ import annotations

from typing import Any, Tuple
import os
import random

import numpy as np
import torch as th


# =============================================================================
# Seeding
# =============================================================================
def _set_random_seed(
    seed: int,
    *,
    deterministic: bool = True,
    set_torch_threads_to_one: bool = False,
) -> None:
    """
    Seed Python/NumPy/PyTorch RNGs for reproducibility (best-effort).

    Parameters
    ----------
    seed : int
        Base seed.
    deterministic : bool, default=True
        Configure cuDNN for deterministic kernels.
    set_torch_threads_to_one : bool, default=False
        Limit PyTorch intra-op threads (useful with many env subprocesses).

    Notes
    -----
    Full determinism is not guaranteed across GPU drivers and CUDA versions.
    """
    seed = int(seed)

    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    np.random.seed(seed)
    th.manual_seed(seed)

    if th.cuda.is_available():
        th.cuda.manual_seed_all(seed)

    if deterministic:
        th.backends.cudnn.benchmark = False
        th.backends.cudnn.deterministic = True

    if set_torch_threads_to_one:
        th.set_num_threads(1)


# =============================================================================
# Vector-env I/O helpers
# =============================================================================
def _done_mask(terminated: Any, truncated: Any) -> np.ndarray:
    """
    Build continuation masks from gymnasium vector-env flags.

    Returns
    -------
    masks : np.ndarray
        Shape (N, 1), float32. 0.0 where an episode ended (terminated or
        truncated), 1.0 otherwise.
    """
    done = np.logical_or(np.asarray(terminated, dtype=bool), np.asarray(truncated, dtype=bool))
    return (1.0 - done.astype(np.float32)).reshape(-1, 1)


def _format_env_action(action: th.Tensor, action_type: str) -> np.ndarray:
    """
    Convert a policy action batch to what a gymnasium vector env expects.

    Discrete actions arrive as (N, 1) long tensors and are flattened to (N,)
    integers; Box and MultiBinary actions keep their (N, A) layout.
    """
    a = action.detach().cpu().numpy()
    if action_type == "Discrete":
        return a.reshape(-1).astype(np.int64)
    if action_type == "MultiBinary":
        return a.astype(np.int8)
    return a.astype(np.float32)


def _obs_shape_from_space(space: Any) -> Tuple[int, ...]:
    """Per-environment observation shape from a gymnasium single observation space."""
    shape = getattr(space, "shape", None)
    if shape is None or len(shape) == 0:
        raise ValueError(f"Observation space must have a non-empty shape, got {space!r}")
    return tuple(int(d) for d in shape)
