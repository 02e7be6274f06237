from fastapi import Depends

from classjournal.auth.dependencies import get_current_user
from classjournal.auth.schemas import CurrentUser
from classjournal.core.enums import Role
from classjournal.core.exceptions import NotAllowed


def is_admin(role: str) -> bool:
    return role == Role.ADMINISTRATOR.value


def is_teacher(role: str) -> bool:
    return role == Role.TEACHER.value


def is_parent(role: str) -> bool:
    return role == Role.PARENT.value


def is_student(role: str) -> bool:
    return role == Role.STUDENT.value


async def require_administrator(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require the administrator role. Used for user, class, taxonomy and log management."""
    if not is_admin(current_user.role):
        raise NotAllowed()
    return current_user


async def require_teacher(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require at least the teacher role (administrators pass too)."""
    if not is_admin(current_user.role) and not is_teacher(current_user.role):
        raise NotAllowed()
    return current_user
