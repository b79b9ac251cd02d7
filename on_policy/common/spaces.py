from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple


SUPPORTED_ACTION_TYPES: Tuple[str, ...] = ("Discrete", "Box", "MultiBinary")


@dataclass(frozen=True)
class ActionSpace:
    """
    Action-space descriptor shared by the policy and the rollout storage.

    Parameters
    ----------
    type : str
        One of ``"Discrete"``, ``"Box"``, ``"MultiBinary"``.
    shape : Tuple[int, ...]
        - Discrete    : ``(n,)`` where ``n`` is the number of actions.
        - Box         : ``(action_dim,)``.
        - MultiBinary : ``(n,)`` independent binary actions.

    Notes
    -----
    Storage layout follows the kind: a Discrete action occupies a single long
    slot, Box/MultiBinary actions occupy ``shape[0]`` float slots.
    """

    type: str
    shape: Tuple[int, ...]

    def __post_init__(self) -> None:
        if self.type not in SUPPORTED_ACTION_TYPES:
            raise ValueError(
                f"Unsupported action space type: {self.type!r} "
                f"(expected one of {SUPPORTED_ACTION_TYPES})"
            )
        shape = tuple(int(d) for d in self.shape)
        if len(shape) != 1 or shape[0] <= 0:
            raise ValueError(f"ActionSpace.shape must be a single positive size, got {shape}")
        object.__setattr__(self, "shape", shape)

    @property
    def n(self) -> int:
        """Number of actions (Discrete), action dim (Box), or bit count (MultiBinary)."""
        return int(self.shape[0])

    @property
    def storage_dim(self) -> int:
        """Trailing dimension of the stored action tensor."""
        return 1 if self.type == "Discrete" else self.n

    @property
    def is_discrete(self) -> bool:
        return self.type == "Discrete"

    @classmethod
    def from_gym(cls, space: Any) -> "ActionSpace":
        """
        Build a descriptor from a gymnasium space.

        Dispatches on the class name so both ``gymnasium.spaces`` and the
        legacy ``gym.spaces`` classes are accepted.
        """
        kind = type(space).__name__
        if kind == "Discrete":
            return cls("Discrete", (int(space.n),))
        if kind == "Box":
            shape = tuple(space.shape)
            if len(shape) != 1:
                raise ValueError(f"Only flat Box action spaces are supported, got shape {shape}")
            return cls("Box", (int(shape[0]),))
        if kind == "MultiBinary":
            n = space.n if isinstance(space.n, int) else int(space.shape[0])
            return cls("MultiBinary", (int(n),))
        raise ValueError(f"Unsupported gym action space: {space!r}")
