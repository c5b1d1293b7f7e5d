"""
Error taxonomy shared by every controller.

Controllers raise these; the HTTP layer maps them to status codes in
``asclepius.main``. Nothing here is fatal to the process: each error is
scoped to the single user action that triggered it.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class AsclepiusError(Exception):
    """Base class; ``message`` is safe to show to the user."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AsclepiusError):
    """Missing or invalid required input."""

    status_code = 400


class AuthenticationError(AsclepiusError):
    status_code = 401


class PermissionDeniedError(AsclepiusError):
    status_code = 403


class NotFoundError(AsclepiusError):
    status_code = 404


class PreconditionError(AsclepiusError):
    """Action attempted before a required prior step."""

    status_code = 409


class TransportError(AsclepiusError):
    """Directory or blob store failure. Never retried automatically."""

    status_code = 502


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """
    Translate directory-store driver failures into TransportError.

        with store_errors("save symptom log"):
            await db.symptom_logs.insert_one(doc)
    """
    try:
        yield
    except PyMongoError as exc:
        logger.error("Directory store failure during %s: %s", action, exc)
        raise TransportError(f"Could not {action}. Please try again.") from exc
