import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.core.database import AsyncSessionLocal, close_db, init_db
from app.core.exceptions import AppError, validation_message
from app.crud import sessions as session_crud
from app.crud import users as user_crud
from app.routers import auth, properties, users

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (storage=%s)", settings.APP_NAME, settings.STORAGE_BACKEND)
    await init_db()
    async with AsyncSessionLocal() as db:
        await user_crud.ensure_moderator(db, settings.MODERATOR_USERNAME)
        await session_crud.purge_expired(db)
    yield
    await close_db()
    logger.info("Shut down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Map-based property classifieds",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Locally stored images are served from here
if settings.STORAGE_BACKEND == "local":
    os.makedirs(os.path.join(settings.MEDIA_ROOT, "properties"), exist_ok=True)
    app.mount("/media", StaticFiles(directory=settings.MEDIA_ROOT), name="media")


# CORS middleware; credentials are needed for the session cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Error handlers ───────────────────────────────────────────────────────────

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": validation_message(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error."},
    )


# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(properties.router, prefix="/api")
app.include_router(users.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "timestamp": datetime.now(timezone.utc),
    }
