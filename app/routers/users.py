import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_user
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthorizationError
from app.core.permissions import can_delete_account, can_manage_account
from app.crud import users as user_crud
from app.schemas.user import (
    ChangeEmailRequest, ChangeNameRequest, ChangePasswordRequest, ChangePhoneRequest, SessionUser
)
from app.utils.file_storage import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _ensure_self(current_user: SessionUser, user_id: str) -> None:
    # Account self-service has no moderator override
    if not can_manage_account(current_user, user_id):
        raise AuthorizationError("You can only change your own account.")


@router.put("/{user_id}/name")
async def change_name(
    user_id: str,
    body: ChangeNameRequest,
    db: AsyncSession = Depends(get_db),
    current_user: SessionUser = Depends(get_current_active_user),
):
    """Rename the account. Every listing the user owns shows the new name right away."""
    _ensure_self(current_user, user_id)
    new_name = await user_crud.change_username(db, user_id, body.new_name)
    user = current_user.model_copy(update={"username": new_name})
    return {"message": "Username updated successfully.", "user": user.model_dump(by_alias=True)}


@router.put("/{user_id}/email")
async def change_email(
    user_id: str,
    body: ChangeEmailRequest,
    db: AsyncSession = Depends(get_db),
    current_user: SessionUser = Depends(get_current_active_user),
):
    _ensure_self(current_user, user_id)
    new_email = await user_crud.change_email(db, user_id, body.new_email)
    user = current_user.model_copy(update={"email": new_email})
    return {"message": "Email updated successfully.", "user": user.model_dump(by_alias=True)}


@router.put("/{user_id}/phone")
async def change_phone(
    user_id: str,
    body: ChangePhoneRequest,
    db: AsyncSession = Depends(get_db),
    current_user: SessionUser = Depends(get_current_active_user),
):
    _ensure_self(current_user, user_id)
    new_phone = await user_crud.change_phone(db, user_id, body.new_phone)
    return {"message": "Phone number updated successfully.", "phone": new_phone}


@router.put("/{user_id}/password")
async def change_password(
    user_id: str,
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: SessionUser = Depends(get_current_active_user),
):
    _ensure_self(current_user, user_id)
    await user_crud.change_password(db, user_id, body.current_password, body.new_password)
    return {"message": "Password updated successfully."}


@router.delete("/{user_id}")
async def delete_account(
    user_id: str,
    response: Response,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    current_user: SessionUser = Depends(get_current_active_user),
):
    """
    Delete the account together with every listing it owns and all of its
    sessions. Image blobs are removed after the database commit; a failed
    blob deletion is logged and does not undo the account deletion.
    """
    if not can_delete_account(current_user, user_id):
        if current_user.is_moderator and can_manage_account(current_user, user_id):
            raise AuthorizationError("The moderator account cannot be deleted.")
        raise AuthorizationError("You can only delete your own account.")

    images = await user_crud.delete_user_and_content(db, user_id)
    await store.delete_many(images)

    response.delete_cookie(settings.SESSION_COOKIE_NAME, httponly=True, samesite="lax", secure=settings.COOKIE_SECURE)
    return {"message": "Account and all associated properties deleted."}
