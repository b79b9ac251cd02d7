from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

import math
import torch as th

from ..utils.common_utils import _to_scalar
from .base_core import BaseCore
from .base_head import BasePolicy


class BaseAlgorithm:
    """
    Shared base class for algorithm drivers.

    Glues together two components and owns checkpointing:

    - **policy**: inference-facing actor-critic module (:class:`BasePolicy`).
    - **core**: update engine (:class:`BaseCore`) owning the optimizer.

    The environment loop itself lives in subclasses and the trainer.

    Parameters
    ----------
    policy : BasePolicy
        Actor-critic module.
    core : BaseCore
        Update engine bound to the same policy.
    device : Optional[Union[str, torch.device]], default=None
        Device for checkpoint ``map_location``. Falls back to the policy's
        device.
    """

    def __init__(
        self,
        *,
        policy: BasePolicy,
        core: BaseCore,
        device: Optional[Union[str, th.device]] = None,
    ) -> None:
        self.policy = policy
        self.core = core

        if device is None:
            device = policy.device
        self.device: th.device = device if isinstance(device, th.device) else th.device(str(device))
        self._env_steps: int = 0

    @property
    def env_steps(self) -> int:
        """Environment transitions consumed (summed over processes)."""
        return int(self._env_steps)

    # ------------------------------------------------------------------
    # Modes / action selection
    # ------------------------------------------------------------------
    def set_training(self, training: bool) -> None:
        self.policy.set_training(bool(training))

    @th.no_grad()
    def predict(
        self,
        obs: Any,
        hidden_states: Optional[Any] = None,
        masks: Optional[Any] = None,
        deterministic: bool = True,
    ) -> th.Tensor:
        """
        Select actions for evaluation, outside of any rollout.

        Missing hidden states default to zeros and missing masks to ones.
        """
        obs_t = self.policy._as_batch(obs)
        batch = obs_t.size(0)
        if hidden_states is None:
            hidden_states = th.zeros((batch, self.policy.hidden_size), device=obs_t.device)
        if masks is None:
            masks = th.ones((batch, 1), device=obs_t.device)
        _, action, _, _ = self.policy.act(obs_t, hidden_states, masks, deterministic=deterministic)
        return action

    # ------------------------------------------------------------------
    # Metrics helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _filter_scalar_metrics(metrics_any: Any, *, drop_non_finite: bool = True) -> Dict[str, float]:
        """
        Keep only scalar-like, finite entries of a metrics mapping, as floats.
        """
        metrics: Dict[str, Any] = dict(metrics_any) if isinstance(metrics_any, Mapping) else {}
        out: Dict[str, float] = {}
        for k, v in metrics.items():
            sv = _to_scalar(v)
            if sv is None:
                continue
            if drop_non_finite and not math.isfinite(sv):
                continue
            out[str(k)] = float(sv)
        return out

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self, path: str) -> None:
        """
        Save a checkpoint with policy weights, core state and metadata.

        The suffix ``.pt`` is appended if missing.
        """
        if not path.endswith(".pt"):
            path += ".pt"

        payload: Dict[str, Any] = {
            "meta": {
                "format_version": 1,
                "algorithm_class": self.__class__.__name__,
                "policy_class": type(self.policy).__name__,
                "core_class": type(self.core).__name__,
                "device": str(self.device),
                "env_steps": int(self._env_steps),
            },
            "policy_state_dict": self.policy.state_dict(),
            "core_state": self.core.state_dict(),
        }
        th.save(payload, path)

    def load(self, path: str) -> None:
        """
        Restore policy weights and core state saved by :meth:`save`.

        Raises
        ------
        ValueError
            If the file does not hold a checkpoint produced by :meth:`save`.
        """
        if not path.endswith(".pt"):
            path += ".pt"

        ckpt = th.load(path, map_location=self.device)
        if not isinstance(ckpt, dict) or "policy_state_dict" not in ckpt:
            raise ValueError(f"Unrecognized checkpoint format at: {path}")

        self.policy.load_state_dict(ckpt["policy_state_dict"])
        core_state = ckpt.get("core_state", None)
        if core_state is not None:
            self.core.load_state_dict(core_state)
        self._env_steps = int(ckpt.get("meta", {}).get("env_steps", 0))
