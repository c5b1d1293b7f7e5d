# asclepius/services/accounts.py
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from asclepius.auth import IdentityProvider, normalize_email
from asclepius.context import ATHLETE, PHYSIO, SessionContext
from asclepius.db import ATHLETES, PHYSIOS
from asclepius.errors import AuthenticationError, NotFoundError, TransportError, ValidationError, store_errors
from asclepius.schemas.directory import AthleteProfile, Me, PhysioProfile
from asclepius.security.access import require_physio
from asclepius.utils.clock import utcnow
from asclepius.utils.logger import log_activity

logger = logging.getLogger(__name__)

_COLLECTIONS = {ATHLETE: ATHLETES, PHYSIO: PHYSIOS}


def _required(*values) -> None:
    if any(v is None or str(v).strip() == "" for v in values):
        raise ValidationError("Please fill out all fields.")


async def _register(db, identity: IdentityProvider, role: str, email: str, password: str, record: dict) -> str:
    uid = await identity.sign_up(email, password, role=role)
    doc = {"_id": uid, "email": normalize_email(email), "created_at": utcnow(), **record}
    try:
        with store_errors("save profile"):
            await db[_COLLECTIONS[role]].insert_one(doc)
    except TransportError:
        # an account without a profile would hold the email forever
        try:
            await identity.remove(uid)
        except TransportError:
            logger.error("Could not roll back account %s after a failed profile write", uid)
        raise
    await log_activity(db, uid, f"register_{role}", {"email": doc["email"]})
    logger.info("Registered %s %s", role, uid)
    return uid


async def register_athlete(db, identity: IdentityProvider, name, email, password, age, sport) -> str:
    _required(name, email, password, age, sport)
    age_raw = str(age).strip()
    if not age_raw.isdigit():
        raise ValidationError("Age must be a whole number.")
    return await _register(db, identity, ATHLETE, email, password, {
        "name": name.strip(),
        "age": int(age_raw),
        "sport": sport.strip(),
    })


async def register_physio(db, identity: IdentityProvider, name, email, password, specialization, license_number) -> str:
    _required(name, email, password, specialization, license_number)
    return await _register(db, identity, PHYSIO, email, password, {
        "name": name.strip(),
        "specialization": specialization.strip(),
        "license_number": str(license_number).strip(),
    })


async def resolve_role(db, uid: str) -> Optional[str]:
    """Athlete record wins over physio record; None when neither exists."""
    with store_errors("load profile"):
        if await db[ATHLETES].find_one({"_id": uid}, {"_id": 1}):
            return ATHLETE
        if await db[PHYSIOS].find_one({"_id": uid}, {"_id": 1}):
            return PHYSIO
    return None


async def session_for(db, identity: IdentityProvider, token: Optional[str]) -> SessionContext:
    uid = await identity.current_user(token)
    if uid is None:
        raise AuthenticationError("Invalid or expired token")
    role = await resolve_role(db, uid)
    if role is None:
        raise AuthenticationError("Account does not exist or user type is unrecognized.")
    return SessionContext(uid=uid, role=role, token=token or "")


async def login(db, identity: IdentityProvider, email: str, password: str) -> Tuple[SessionContext, str]:
    if not (email or "").strip() or not password:
        raise ValidationError("Please enter email and password.")
    uid = await identity.sign_in(email, password)
    role = await resolve_role(db, uid)
    if role is None:
        raise AuthenticationError("Account does not exist or user type is unrecognized.")

    token = identity.issue_token(uid)
    await log_activity(db, uid, "login", {"role": role})
    return SessionContext(uid=uid, role=role, token=token), token


async def logout(db, identity: IdentityProvider, ctx: SessionContext) -> None:
    await identity.sign_out(ctx.token)
    await log_activity(db, ctx.uid, "logout")


async def profile(db, ctx: SessionContext) -> Me:
    with store_errors("load profile"):
        doc = await db[_COLLECTIONS[ctx.role]].find_one({"_id": ctx.uid})
    doc = doc or {}
    name = (doc.get("name") or "").strip()
    fallback = "A" if ctx.role == ATHLETE else "P"
    return Me(
        uid=ctx.uid,
        role=ctx.role,
        initial=name[0].upper() if name else fallback,
        name=doc.get("name"),
        email=doc.get("email"),
        age=doc.get("age"),
        sport=doc.get("sport"),
        specialization=doc.get("specialization"),
        license_number=doc.get("license_number"),
    )


async def list_athletes(db, ctx: SessionContext) -> List[AthleteProfile]:
    require_physio(ctx)
    with store_errors("load athletes"):
        docs = await db[ATHLETES].find({}).sort("name", 1).to_list(length=None)
    return [AthleteProfile.from_doc(d) for d in docs]


async def list_physios(db, ctx: SessionContext) -> List[PhysioProfile]:
    with store_errors("load physiotherapists"):
        docs = await db[PHYSIOS].find({}).sort("name", 1).to_list(length=None)
    return [PhysioProfile.from_doc(d) for d in docs]


async def get_athlete(db, athlete_id: str) -> AthleteProfile:
    with store_errors("load athlete"):
        doc = await db[ATHLETES].find_one({"_id": athlete_id})
    if not doc:
        raise NotFoundError("Athlete not found.")
    return AthleteProfile.from_doc(doc)
