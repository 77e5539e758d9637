"""Server-side session store backed by the `user_sessions` table."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.session import UserSession
from app.schemas.user import SessionUser
from app.utils.auth import new_session_id

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_expired(record: UserSession) -> bool:
    expires_at = record.expires_at
    # SQLite hands back naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= _now()


async def create_session(db: AsyncSession, user: SessionUser) -> UserSession:
    record = UserSession(
        sid=new_session_id(),
        user_id=user.id,
        data=user.to_session_data(),
        expires_at=_now() + timedelta(hours=settings.SESSION_EXPIRE_HOURS),
    )
    db.add(record)
    await db.commit()
    return record


async def get_session(db: AsyncSession, sid: str) -> Optional[UserSession]:
    """Return the live session, or None. Expired rows are removed on sight."""
    record = await db.get(UserSession, sid)
    if record is None:
        return None
    if _is_expired(record):
        await db.delete(record)
        await db.commit()
        return None
    return record


async def destroy_session(db: AsyncSession, sid: str) -> None:
    await db.execute(delete(UserSession).where(UserSession.sid == sid))
    await db.commit()


async def _sessions_for_user(db: AsyncSession, user_id):
    result = await db.execute(select(UserSession).where(UserSession.user_id == str(user_id)))
    return list(result.scalars().all())


async def rewrite_user_sessions(db: AsyncSession, user: SessionUser) -> int:
    """Replace the snapshot in every session of `user`. Does not commit."""
    records = await _sessions_for_user(db, user.id)
    for record in records:
        record.data = user.to_session_data()
    return len(records)


async def delete_user_sessions(db: AsyncSession, user_id) -> int:
    """Delete every session belonging to `user_id`. Does not commit."""
    result = await db.execute(delete(UserSession).where(UserSession.user_id == str(user_id)))
    return result.rowcount or 0


async def purge_expired(db: AsyncSession) -> int:
    result = await db.execute(delete(UserSession).where(UserSession.expires_at <= _now()))
    await db.commit()
    if result.rowcount:
        logger.info("Purged %d expired sessions", result.rowcount)
    return result.rowcount or 0
