"""Caller identity endpoint."""

from fastapi import APIRouter

from hr_payroll.api.dependencies import CurrentUser
from hr_payroll.api.schemas import UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def who_am_i(user: CurrentUser) -> UserResponse:
    """The caller behind X-User-ID with its roles and effective permissions."""
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        is_active=user.is_active,
        roles=sorted(role.name for role in user.roles),
        permissions=sorted(user.permission_names),
    )
