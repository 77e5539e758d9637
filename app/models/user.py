import enum

from sqlalchemy import Boolean, Column, Index, String, func
from sqlalchemy.orm import relationship

from app.models.base import BaseModel


class UserRole(str, enum.Enum):
    OWNER = "owner"
    USER = "user"


class User(BaseModel):
    __tablename__ = "users"

    username = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), unique=True, nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    # Granted to the configured moderator account, copied into the session at login
    is_moderator = Column(Boolean, nullable=False, default=False)

    properties = relationship(
        "Property",
        back_populates="owner",
        foreign_keys="Property.owner_id",
        passive_deletes=True,
    )


# "Alice" and "alice" are the same account, at the storage level too
Index("uq_users_username_lower", func.lower(User.username), unique=True)
Index("uq_users_email_lower", func.lower(User.email), unique=True)
