from enum import Enum

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    super_admin = "super_admin"
    school_admin = "school_admin"
    teacher = "teacher"


ADMIN_ROLES = (UserRole.super_admin, UserRole.school_admin)


class CurrentUser(BaseModel):
    """Caller identity taken from a verified bearer token."""

    id: str = Field(min_length=1)
    school_id: str = Field(min_length=1)
    role: UserRole
    teacher_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
