"""FastAPI application entry point."""
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from event_manager.config import settings
from event_manager.database import Base, engine
from event_manager.errors import AppError
from event_manager.schemas.common import format_validation_errors

# Import routers
from event_manager.routers import events, users

# Import all models so Base.metadata knows about them
from event_manager.models.user import User, UserSession        # noqa: F401
from event_manager.models.event import Event                   # noqa: F401
from event_manager.models.rsvp import RSVP                     # noqa: F401
from event_manager.models.attendance import Attendance         # noqa: F401
from event_manager.models.notification import InAppNotification  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Event Manager",
    description="Event management: accounts, events, RSVPs, attendance, reminders and notifications",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


# Centralized error translation: every failure leaves as {"success": false, "message": ...}
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": format_validation_errors(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "An unexpected error occurred!"},
    )


# Register routers
app.include_router(users.router, prefix="/api/v1/user", tags=["Users"])
app.include_router(events.router, prefix="/api/v1/event", tags=["Events"])

app.mount(settings.MEDIA_URL, StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False), name="media")


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/v1/health")
def health_check():
    return {"success": True, "status": "ok"}
