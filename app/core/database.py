import logging

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_size": 8,
        "max_overflow": 12,
        "pool_timeout": 25,
    }


def build_engine(url: str):
    return create_async_engine(url, echo=False, **_engine_options(url))


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# Columns added after the first release. Each entry is (table, column, DDL type);
# rows created before the column existed keep NULL there.
ADDITIVE_COLUMNS = [
    ("properties", "neighborhood", "VARCHAR(100)"),
    ("properties", "contact_method", "VARCHAR(20) NOT NULL DEFAULT 'whatsapp'"),
    ("users", "phone", "VARCHAR(20)"),
    ("users", "is_moderator", "BOOLEAN NOT NULL DEFAULT FALSE"),
]


def _apply_additive_migrations(sync_conn) -> None:
    inspector = inspect(sync_conn)
    for table, column, ddl in ADDITIVE_COLUMNS:
        if not inspector.has_table(table):
            continue
        existing = {c["name"] for c in inspector.get_columns(table)}
        if column not in existing:
            logger.info("Adding missing column %s.%s", table, column)
            sync_conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")


async def init_db(bind=None) -> None:
    """Create missing tables, then add columns that older schemas lack."""
    # Models must be imported so their tables are registered on Base.metadata
    import app.models.property  # noqa: F401
    import app.models.session  # noqa: F401
    import app.models.user  # noqa: F401

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(_apply_additive_migrations)


async def close_db() -> None:
    await engine.dispose()
