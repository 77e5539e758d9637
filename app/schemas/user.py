import re
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.models.user import UserRole
from app.schemas.common import CamelModel, blank_to_none

USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 6


def validate_phone(phone: str) -> str:
    phone = re.sub(r"[\s\-().]", "", phone)

    if not re.match(r"^\+?\d{8,15}$", phone):
        raise ValueError("Invalid phone number")

    return phone


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=USERNAME_MIN_LENGTH, max_length=100)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    role: UserRole
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        return blank_to_none(v)

    @field_validator("phone", mode="before")
    @classmethod
    def check_phone(cls, v):
        v = blank_to_none(v)
        return validate_phone(v) if v is not None else None


class LoginRequest(CamelModel):
    # Username, email or phone number
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SessionUser(CamelModel):
    """Identity snapshot stored in the session and returned to the client."""

    id: str
    username: str
    role: UserRole
    is_moderator: bool = False
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "SessionUser":
        return cls(
            id=str(user.id),
            username=user.username,
            role=user.role,
            is_moderator=bool(user.is_moderator),
            email=user.email,
        )

    def to_session_data(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ChangeNameRequest(CamelModel):
    new_name: str = Field(..., min_length=USERNAME_MIN_LENGTH, max_length=100)

    @field_validator("new_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class ChangeEmailRequest(CamelModel):
    new_email: EmailStr


class ChangePhoneRequest(CamelModel):
    new_phone: str

    @field_validator("new_phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return validate_phone(v)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
