"""Structured application errors.

Every service raises one of these; ``main.py`` translates them into
``{"success": false, "message": ...}`` responses with the matching status.
"""
import functools
import inspect
import logging
from typing import Optional

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base error carrying a client-facing message and an HTTP status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _session_of(args, kwargs) -> Optional[Session]:
    """Service functions take the session as ``db``, first positional argument."""
    db = kwargs.get("db")
    if db is None and args and isinstance(args[0], Session):
        db = args[0]
    return db


def _fail(message: str, db: Optional[Session]) -> InternalError:
    logger.exception("%s", message)
    if db is not None:
        db.rollback()
    return InternalError(message)


def translate_persistence_errors(message: str):
    """Re-raise database failures from a service function as InternalError.

    The session's transaction is rolled back first so the caller can keep
    using it. ``AppError`` subclasses pass through untouched. Works on both
    plain and coroutine functions.
    """

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except SQLAlchemyError as exc:
                    raise _fail(message, _session_of(args, kwargs)) from exc

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SQLAlchemyError as exc:
                raise _fail(message, _session_of(args, kwargs)) from exc

        return wrapper

    return decorator
