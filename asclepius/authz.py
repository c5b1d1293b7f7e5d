# asclepius/authz.py
from __future__ import annotations

from typing import Callable

from fastapi import Depends

from asclepius.context import SessionContext
from asclepius.deps import get_session
from asclepius.errors import PermissionDeniedError


def require_role(*allowed_roles: str) -> Callable:
    """
    Usage:
        @router.get("/athletes")
        async def athletes(ctx: SessionContext = Depends(require_role("physio"))):
            ...
    """
    allowed = set(r.strip().lower() for r in allowed_roles if r)

    async def _dep(ctx: SessionContext = Depends(get_session)) -> SessionContext:
        if (ctx.role or "").lower() not in allowed:
            raise PermissionDeniedError("Insufficient role")
        return ctx

    return _dep
