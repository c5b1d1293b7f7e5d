# asclepius/auth.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from asclepius import settings
from asclepius.db import REVOKED_TOKENS, USERS
from asclepius.errors import AuthenticationError, ValidationError, store_errors

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# --- password utils ----------------------------------------------------------
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


# --- JWT helpers -------------------------------------------------------------
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _create_jwt(sub: str, token_type: str, expires_delta: timedelta) -> str:
    iat = _now_utc()
    exp = iat + expires_delta
    payload = {
        "sub": sub,
        "type": token_type,
        "jti": str(uuid.uuid4()),
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALG)


def create_access_token(sub: str) -> str:
    return _create_jwt(sub, "access", timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MIN))


def decode_token(raw: str) -> dict:
    try:
        return jwt.decode(raw, settings.SECRET_KEY, algorithms=[settings.JWT_ALG])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


class IdentityProvider:
    """
    Credential sign-up / sign-in over the ``users`` collection.

    uids are the string form of the user's ObjectId and double as the key
    of the athlete/physio directory record.
    """

    def __init__(self, db):
        self._users = db[USERS]
        self._revoked = db[REVOKED_TOKENS]

    async def sign_up(self, email: str, password: str, role: Optional[str] = None) -> str:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError("Email and password are required.")

        with store_errors("create account"):
            if await self._users.find_one({"email": email}):
                raise ValidationError("Email already registered")
            try:
                res = await self._users.insert_one({
                    "email": email,
                    "password": get_password_hash(password),
                    "role": role,
                    "created_at": _now_utc(),
                })
            except DuplicateKeyError:
                raise ValidationError("Email already registered")
        return str(res.inserted_id)

    async def remove(self, uid: str) -> None:
        """Delete an account, e.g. one whose registration could not be finished."""
        with store_errors("remove account"):
            await self._users.delete_one({"_id": ObjectId(uid)})

    async def sign_in(self, email: str, password: str) -> str:
        with store_errors("sign in"):
            user = await self._users.find_one({"email": normalize_email(email)})
        if not user or not user.get("password") or not verify_password(password or "", user["password"]):
            raise AuthenticationError("Invalid credentials")
        return str(user["_id"])

    def issue_token(self, uid: str) -> str:
        return create_access_token(uid)

    async def sign_out(self, token: str) -> None:
        """Revoke the token. Unknown or already-dead tokens are ignored."""
        try:
            payload = decode_token(token)
        except AuthenticationError:
            return
        # upsert so double-logout is harmless
        with store_errors("sign out"):
            await self._revoked.update_one(
                {"jti": payload["jti"]},
                {"$set": {
                    "jti": payload["jti"],
                    "sub": payload.get("sub"),
                    "exp": payload.get("exp"),
                    "reason": "logout",
                }},
                upsert=True,
            )

    async def current_user(self, token: Optional[str]) -> Optional[str]:
        """uid behind a live access token, else None."""
        if not token:
            return None
        try:
            payload = decode_token(token)
        except AuthenticationError:
            return None
        if payload.get("type") != "access" or not payload.get("jti"):
            return None

        with store_errors("check session"):
            if await self._revoked.find_one({"jti": payload["jti"]}):
                return None
            try:
                user = await self._users.find_one({"_id": ObjectId(payload.get("sub"))})
            except (InvalidId, TypeError):
                return None
        return str(user["_id"]) if user else None
