from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.permissions import is_owner
from app.crud import sessions as session_crud
from app.schemas.user import SessionUser
from app.utils.auth import decode_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _request_token(request: Request, bearer: Optional[str]) -> Optional[str]:
    # Browsers send the cookie; API clients may send the same token as a Bearer header
    return bearer or request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_current_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> Optional[SessionUser]:
    token = _request_token(request, token)
    if not token:
        return None

    payload = decode_token(token)
    if not payload:
        return None

    record = await session_crud.get_session(db, payload["sid"])
    if record is None or record.user_id != payload["sub"]:
        return None

    return SessionUser.model_validate(record.data)


async def get_current_active_user(
    current_user: Optional[SessionUser] = Depends(get_current_session),
) -> SessionUser:
    if current_user is None:
        raise AuthenticationError()
    return current_user


async def require_owner_role(
    current_user: SessionUser = Depends(get_current_active_user),
) -> SessionUser:
    if not is_owner(current_user):
        raise AuthorizationError("Only accounts with the owner role can publish properties.")
    return current_user
