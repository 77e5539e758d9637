from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    DATABASE_URL: str

    # Sessions
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    SESSION_EXPIRE_HOURS: int = 24
    SESSION_COOKIE_NAME: str = "sid"
    COOKIE_SECURE: bool = False

    # Moderation
    MODERATOR_USERNAME: Optional[str] = None

    # Image storage
    STORAGE_BACKEND: Literal["local", "cloudinary"] = "local"
    MEDIA_ROOT: str = "media"
    BASE_URL: str = "http://localhost:8000"
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "imoveis"

    # App
    APP_NAME: str = "Imoveis Map API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    @field_validator("SECRET_KEY")
    @classmethod
    def secret_key_must_be_strong(cls, v: str) -> str:
        if len(v.strip()) < 16:
            raise ValueError("SECRET_KEY must be at least 16 characters")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("DATABASE_URL must not be empty")
        # Hosting providers hand out plain postgres:// URLs
        for prefix in ("postgres://", "postgresql://"):
            if v.startswith(prefix):
                return "postgresql+asyncpg://" + v[len(prefix):]
        return v

    @field_validator("MODERATOR_USERNAME")
    @classmethod
    def blank_moderator_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def cloudinary_credentials_present(self):
        if self.STORAGE_BACKEND == "cloudinary":
            missing = [
                name for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"STORAGE_BACKEND=cloudinary requires {', '.join(missing)}")
        return self

    @property
    def SESSION_MAX_AGE(self) -> int:
        return self.SESSION_EXPIRE_HOURS * 3600


settings = Settings()
