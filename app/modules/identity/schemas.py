"""Identity value objects passed explicitly into engine calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from app.core.enums import RoleEnum


@dataclass(frozen=True, slots=True)
class HolderRef:
    """User or sub-profile that holds an enrollment."""

    user_id: UUID
    sub_profile_id: UUID | None = None

    @property
    def key(self) -> str:
        if self.sub_profile_id is not None:
            return f"sub_profile:{self.sub_profile_id}"
        return f"user:{self.user_id}"


@dataclass(frozen=True, slots=True)
class Claims:
    """Authenticated capabilities of the caller."""

    user_id: UUID
    role: RoleEnum = RoleEnum.VISITOR
    studio_ids: frozenset[UUID] = field(default_factory=frozenset)
    sub_profile_ids: frozenset[UUID] = field(default_factory=frozenset)

    def can_act_for(self, holder: HolderRef) -> bool:
        """Return True if the caller may act on behalf of the holder."""
        if holder.user_id != self.user_id:
            return False
        return holder.sub_profile_id is None or holder.sub_profile_id in self.sub_profile_ids

    def administers(self, studio_id: UUID) -> bool:
        """Return True for platform admins and admins of the given studio."""
        if self.role == RoleEnum.ADMIN:
            return True
        return self.role == RoleEnum.STUDIO_ADMIN and studio_id in self.studio_ids

    def holder(self, sub_profile_id: UUID | None = None) -> HolderRef:
        return HolderRef(user_id=self.user_id, sub_profile_id=sub_profile_id)
