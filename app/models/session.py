from sqlalchemy import JSON, Column, DateTime, String

from app.core.database import Base


class UserSession(Base):
    __tablename__ = "user_sessions"

    sid = Column(String(64), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    # Snapshot of the logged-in identity: id, username, role, isModerator, email
    data = Column(JSON, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
