from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.schemas import CurrentUser
from classjournal.auth.services import resolve_session_token, split_authorization_header
from classjournal.core.exceptions import AuthenticationRequired, InvalidToken
from classjournal.db.session import get_db


async def get_optional_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[CurrentUser]:
    """Resolve the session user from `Authorization: Bearer <token>`.

    No header means an anonymous request (None). A header that is malformed or
    names an unknown or expired session is rejected with InvalidToken.
    """
    if authorization is None:
        return None
    scheme, token = split_authorization_header(authorization)
    if scheme != "Bearer" or not token:
        raise InvalidToken()
    return await resolve_session_token(db, token)


async def get_current_user(
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
) -> CurrentUser:
    if current_user is None:
        raise AuthenticationRequired()
    return current_user
