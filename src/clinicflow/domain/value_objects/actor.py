"""Authenticated caller identity."""

from dataclasses import dataclass

from ..enums.workflow import ActorRole


@dataclass(frozen=True)
class Actor:
    """User id and role resolved by the identity layer."""

    user_id: str
    role: ActorRole

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("Actor user_id cannot be empty")

    def has_role(self, *roles: ActorRole) -> bool:
        return self.role in roles

    @classmethod
    def system(cls) -> "Actor":
        """Actor used by background sweeps."""
        return cls(user_id="system", role=ActorRole.SYSTEM)
