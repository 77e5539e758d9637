"""
Credential store: registration, login and account self-service.

Uniqueness is checked twice: once up front to produce a friendly error, and
again by the database's functional unique indexes. A violation caught at
commit time (two registrations racing) is rolled back and reported as the
same ConflictError the pre-check would have raised.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.crud import sessions as session_crud
from app.models.property import Property, PropertyImage
from app.models.user import User, UserRole
from app.schemas.user import PASSWORD_MIN_LENGTH, USERNAME_MIN_LENGTH, SessionUser
from app.utils import content_filter
from app.utils.auth import hash_password_async, verify_password_async

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password."


def _as_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


async def get_user(db: AsyncSession, user_id) -> Optional[User]:
    uid = _as_uuid(user_id)
    if uid is None:
        return None
    return await db.get(User, uid)


async def _require_user(db: AsyncSession, user_id) -> User:
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


async def find_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.username) == username.lower()))
    return result.scalar_one_or_none()


async def find_by_identifier(db: AsyncSession, identifier: str) -> Optional[User]:
    """Match a username or email (both case-insensitive) or an exact phone number."""
    lowered = identifier.lower()
    result = await db.execute(
        select(User).where(
            or_(
                func.lower(User.username) == lowered,
                func.lower(User.email) == lowered,
                User.phone == identifier,
            )
        )
    )
    # The username match wins if the identifier happens to hit two accounts
    users = result.scalars().all()
    for user in users:
        if user.username.lower() == lowered:
            return user
    return users[0] if users else None


async def _find_conflict(
    db: AsyncSession,
    username: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    exclude_id: Optional[UUID] = None,
) -> Optional[str]:
    """Return a message describing the first identity already taken, or None."""
    checks = []
    if username:
        checks.append((func.lower(User.username) == username.lower(), "Username is already taken."))
    if email:
        checks.append((func.lower(User.email) == email.lower(), "Email is already registered."))
    if phone:
        checks.append((User.phone == phone, "Phone number is already registered."))

    for condition, message in checks:
        stmt = select(User.id).where(condition)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await db.execute(stmt.limit(1))).first() is not None:
            return message
    return None


async def _commit_or_conflict(db: AsyncSession, **identity) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Uniqueness violation caught at commit time")
        message = await _find_conflict(db, **identity)
        raise ConflictError(message or "Username, email or phone is already in use.")


def _moderator_claim(username: str, moderator_username: Optional[str]) -> bool:
    return bool(moderator_username) and username.lower() == moderator_username.lower()


async def register(
    db: AsyncSession,
    username: str,
    password: str,
    role: UserRole,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    moderator_username: Optional[str] = None,
) -> User:
    content_filter.ensure_clean(username=username)

    conflict = await _find_conflict(db, username=username, email=email, phone=phone)
    if conflict:
        raise ConflictError(conflict)

    user = User(
        username=username,
        password_hash=await hash_password_async(password),
        email=email,
        phone=phone,
        role=UserRole(role).value,
        is_moderator=_moderator_claim(username, moderator_username),
    )
    db.add(user)
    await _commit_or_conflict(db, username=username, email=email, phone=phone)
    logger.info("Registered user %s (role=%s)", user.username, user.role)
    return user


async def authenticate(db: AsyncSession, identifier: str, password: str) -> User:
    user = await find_by_identifier(db, identifier.strip())
    # Always verify a hash so an unknown account costs as much as a wrong password
    ok = await verify_password_async(password, user.password_hash if user else None)
    if user is None or not ok:
        raise AuthenticationError(INVALID_CREDENTIALS)
    return user


async def change_username(db: AsyncSession, user_id, new_name: str) -> str:
    """
    Rename a user. The new name is copied into every listing the user owns and
    into the user's live sessions in the same transaction, so listings never
    show a name the account no longer has.
    """
    new_name = (new_name or "").strip()
    if len(new_name) < USERNAME_MIN_LENGTH:
        raise ValidationError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long.")
    content_filter.ensure_clean(username=new_name)

    user = await _require_user(db, user_id)
    conflict = await _find_conflict(db, username=new_name, exclude_id=user.id)
    if conflict:
        raise ConflictError(conflict)

    try:
        user.username = new_name
        await db.execute(
            update(Property).where(Property.owner_id == user.id).values(owner_username=new_name)
        )
        await session_crud.rewrite_user_sessions(db, SessionUser.from_user(user))
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username is already taken.")
    except Exception:
        await db.rollback()
        raise
    await _commit_or_conflict(db, username=new_name, exclude_id=user.id)
    return user.username


async def change_email(db: AsyncSession, user_id, new_email: str) -> str:
    user = await _require_user(db, user_id)
    conflict = await _find_conflict(db, email=new_email, exclude_id=user.id)
    if conflict:
        raise ConflictError(conflict)

    try:
        user.email = new_email
        await session_crud.rewrite_user_sessions(db, SessionUser.from_user(user))
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email is already registered.")
    except Exception:
        await db.rollback()
        raise
    await _commit_or_conflict(db, email=new_email, exclude_id=user.id)
    return user.email


async def change_phone(db: AsyncSession, user_id, new_phone: str) -> str:
    user = await _require_user(db, user_id)
    conflict = await _find_conflict(db, phone=new_phone, exclude_id=user.id)
    if conflict:
        raise ConflictError(conflict)

    user.phone = new_phone
    await _commit_or_conflict(db, phone=new_phone, exclude_id=user.id)
    return user.phone


async def change_password(db: AsyncSession, user_id, current_password: str, new_password: str) -> None:
    user = await _require_user(db, user_id)
    if not await verify_password_async(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect.")
    if len(new_password or "") < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"New password must be at least {PASSWORD_MIN_LENGTH} characters long.")

    user.password_hash = await hash_password_async(new_password)
    await db.commit()


async def delete_user_and_content(db: AsyncSession, user_id) -> List[str]:
    """
    Delete a user, every property they own and all their sessions as one
    transaction. Returns the image references of the deleted properties so
    the caller can clean up blobs after the commit.
    """
    user = await _require_user(db, user_id)
    owned = select(Property.id).where(Property.owner_id == user.id)

    try:
        result = await db.execute(
            select(PropertyImage.image_url).where(PropertyImage.property_id.in_(owned))
        )
        images = [url for url in result.scalars().all() if url]

        await db.execute(delete(PropertyImage).where(PropertyImage.property_id.in_(owned)))
        await db.execute(delete(Property).where(Property.owner_id == user.id))
        await session_crud.delete_user_sessions(db, user.id)
        await db.execute(delete(User).where(User.id == user.id))
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Rolled back deletion of user %s", user_id)
        raise

    logger.info("Deleted user %s, %d images queued for cleanup", user_id, len(images))
    return images


async def ensure_moderator(db: AsyncSession, moderator_username: Optional[str]) -> Optional[User]:
    """Grant the moderator claim to the configured account, if it exists."""
    if not moderator_username:
        return None
    user = await find_by_username(db, moderator_username)
    if user is None:
        logger.warning("Moderator account '%s' is not registered yet", moderator_username)
        return None
    if not user.is_moderator:
        user.is_moderator = True
        await db.commit()
        logger.info("Granted moderator claim to %s", user.username)
    return user
