# asclepius/security/access.py
"""Ownership rules applied inside the controllers."""
from __future__ import annotations

from asclepius.context import SessionContext
from asclepius.errors import PermissionDeniedError


def require_self(ctx: SessionContext, athlete_id: str) -> None:
    """Athlete-owned writes: the caller must be that athlete."""
    if not ctx.is_athlete or not athlete_id or ctx.uid != athlete_id:
        raise PermissionDeniedError("You can only change your own records.")


def require_physio(ctx: SessionContext) -> None:
    if not ctx.is_physio:
        raise PermissionDeniedError("Only physiotherapists can do that.")


def require_self_or_physio(ctx: SessionContext, athlete_id: str) -> None:
    if ctx.is_physio:
        return
    if ctx.uid != athlete_id:
        raise PermissionDeniedError("You can only view your own records.")
