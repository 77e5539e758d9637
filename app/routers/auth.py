import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_session
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.crud import sessions as session_crud
from app.crud import users as user_crud
from app.schemas.user import LoginRequest, RegisterRequest, SessionUser
from app.utils.auth import create_access_token, decode_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user_data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await user_crud.register(
        db,
        username=user_data.username,
        password=user_data.password,
        role=user_data.role,
        email=user_data.email,
        phone=user_data.phone,
        moderator_username=settings.MODERATOR_USERNAME,
    )
    return {
        "message": "User registered successfully.",
        "user": SessionUser.from_user(user).model_dump(by_alias=True),
    }


@router.post("/login")
async def login(user_data: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    user = await user_crud.authenticate(db, user_data.username, user_data.password)
    session_user = SessionUser.from_user(user)
    record = await session_crud.create_session(db, session_user)

    access_token = create_access_token(data={"sub": session_user.id, "sid": record.sid})
    _set_session_cookie(response, access_token)
    logger.info("User %s logged in", session_user.username)

    return {
        "message": "Login successful.",
        "user": session_user.model_dump(by_alias=True),
        "accessToken": access_token,
        "tokenType": "bearer",
    }


@router.post("/logout")
async def logout(request: Request, response: Response, db: AsyncSession = Depends(get_db)):
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    auth_header = request.headers.get("Authorization", "")
    if not token and auth_header.lower().startswith("bearer "):
        token = auth_header[7:]

    payload = decode_token(token) if token else None
    if payload:
        await session_crud.destroy_session(db, payload["sid"])

    response.delete_cookie(settings.SESSION_COOKIE_NAME, httponly=True, samesite="lax", secure=settings.COOKIE_SECURE)
    return {"message": "Logged out."}


@router.get("/session")
async def current_session(current_user: Optional[SessionUser] = Depends(get_current_session)):
    if current_user is None:
        raise NotFoundError("No active session.")
    return {"user": current_user.model_dump(by_alias=True)}
