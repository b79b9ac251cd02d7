from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np
import torch as th


# =============================================================================
# NumPy / Torch conversion utilities
# =============================================================================
def _to_tensor(
    x: Any,
    device: Union[str, th.device],
    dtype: th.dtype = th.float32,
) -> th.Tensor:
    """
    Convert input to a torch.Tensor on the given device and dtype.

    Parameters
    ----------
    x : Any
        ``np.ndarray``, ``torch.Tensor``, Python scalar or list.
    device : Union[str, torch.device]
        Target device (e.g., "cpu", "cuda:0").
    dtype : torch.dtype, default=torch.float32
        Target dtype. Applied even if ``x`` is already a tensor.

    Returns
    -------
    t : torch.Tensor
        Tensor placed on ``device`` with dtype ``dtype``.
    """
    dev = th.device(device)

    if th.is_tensor(x):
        return x.to(device=dev, dtype=dtype)

    if isinstance(x, np.ndarray):
        return th.from_numpy(x).to(device=dev, dtype=dtype)

    return th.as_tensor(x, dtype=dtype, device=dev)


def _to_scalar(x: Any) -> Optional[float]:
    """
    Convert a scalar-like input to a Python float.

    Accepted inputs
    ---------------
    - Python scalars: int/float/bool
    - NumPy scalars (np.number)
    - 0-d or 1-element NumPy arrays
    - 0-d or 1-element torch tensors

    Returns
    -------
    s : float or None
        Python float if convertible, else None. Multi-element inputs return None
        rather than silently discarding data.
    """
    if th.is_tensor(x):
        if x.numel() == 1:
            return float(x.detach().cpu().item())
        return None

    if isinstance(x, (bool, int, float, np.number)):
        return float(x)

    try:
        arr = np.asarray(x)
        if arr.shape == () or arr.size == 1:
            return float(arr.reshape(-1)[0])
    except (TypeError, ValueError):
        return None

    return None


def _validate_shape(shape: Sequence[int], *, name: str) -> tuple:
    """
    Validate a tensor shape specification (excluding batch dimensions).

    Raises
    ------
    ValueError
        If the shape is empty or has non-positive entries.
    """
    out = tuple(int(d) for d in shape)
    if len(out) == 0:
        raise ValueError(f"{name} must have at least one dimension, got {out}")
    if any(d <= 0 for d in out):
        raise ValueError(f"{name} must contain positive sizes, got {out}")
    return out


def _mean(xs: Sequence[float]) -> float:
    """Mean of a float sequence; 0.0 when empty."""
    if len(xs) == 0:
        return 0.0
    return float(np.mean(np.asarray(xs, dtype=np.float64)))
