from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.users.service import get_user
from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import is_admin
from classjournal.auth.schemas import CurrentUser, LoginRequest, LoginResponse, SessionResponse
from classjournal.auth.services import get_session, list_sessions, login_user, remove_all_sessions, remove_session
from classjournal.core.exceptions import NotAllowed
from classjournal.db.session import get_db

router = APIRouter(prefix="/api/v1", tags=["sessions"])


def _ensure_self_or_admin(current_user: CurrentUser, user_id: int) -> None:
    if not is_admin(current_user.role) and current_user.id != user_id:
        raise NotAllowed()


@router.post("/sessions", response_model=LoginResponse, status_code=status.HTTP_202_ACCEPTED)
async def login(
    payload: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Exchange email and password for a bearer token."""
    login_ip = request.client.host if request.client else None
    return await login_user(db, payload, login_ip=login_ip, login_browser=request.headers.get("user-agent"))


@router.get("/users/{user_id}/sessions")
async def get_user_sessions(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    _ensure_self_or_admin(current_user, user_id)
    await get_user(db, user_id)
    sessions = await list_sessions(db, user_id)
    return {"sessions": [SessionResponse.model_validate(s) for s in sessions]}


@router.delete("/users/{user_id}/sessions")
async def delete_user_sessions(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    _ensure_self_or_admin(current_user, user_id)
    await get_user(db, user_id)
    removed = await remove_all_sessions(db, user_id)
    return {"message": f"{removed} sessions removed"}


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    session = await get_session(db, session_id)
    _ensure_self_or_admin(current_user, session.user_id)
    await remove_session(db, session_id)
    return {"message": "session removed"}
