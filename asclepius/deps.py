# asclepius/deps.py
"""FastAPI dependencies: who is calling, and controllers wired to the live stores."""
from __future__ import annotations

from typing import Optional

from fastapi import Request, WebSocket

from asclepius.auth import IdentityProvider
from asclepius.context import SessionContext
from asclepius.db import get_db
from asclepius.errors import AuthenticationError
from asclepius.services import accounts
from asclepius.services.exercises import ExerciseWorkflow
from asclepius.services.symptoms import SymptomLogService
from asclepius.storage import backend


def _bearer(headers) -> Optional[str]:
    auth_header = headers.get("Authorization") or ""
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def get_identity() -> IdentityProvider:
    return IdentityProvider(get_db())


async def get_session(request: Request) -> SessionContext:
    """
    Pull token from Authorization header (Bearer) OR from 'token' cookie.
    """
    token = _bearer(request.headers) or request.cookies.get("token")
    if not token:
        raise AuthenticationError("Missing authentication token")
    return await accounts.session_for(get_db(), get_identity(), token)


async def get_ws_session(websocket: WebSocket) -> SessionContext:
    """Header, then ``?token=`` (browsers can't set WS headers), then cookie."""
    token = (
        _bearer(websocket.headers)
        or websocket.query_params.get("token")
        or websocket.cookies.get("token")
    )
    if not token:
        raise AuthenticationError("Missing authentication token")
    return await accounts.session_for(get_db(), get_identity(), token)


def get_exercise_workflow(request: Request) -> ExerciseWorkflow:
    return ExerciseWorkflow(get_db(), backend.get_blob_store(), request.app.state.countdowns)


def get_symptom_service() -> SymptomLogService:
    return SymptomLogService(get_db(), backend.get_blob_store())
