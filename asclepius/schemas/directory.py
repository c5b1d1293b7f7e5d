# asclepius/schemas/directory.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AthleteProfile(BaseModel):
    id: str
    name: str
    email: str
    age: Optional[int] = None
    sport: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "AthleteProfile":
        return cls(
            id=str(doc["_id"]),
            name=doc.get("name", ""),
            email=doc.get("email", ""),
            age=doc.get("age"),
            sport=doc.get("sport"),
        )


class PhysioProfile(BaseModel):
    id: str
    name: str
    email: str
    specialization: Optional[str] = None
    license_number: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "PhysioProfile":
        return cls(
            id=str(doc["_id"]),
            name=doc.get("name", ""),
            email=doc.get("email", ""),
            specialization=doc.get("specialization"),
            license_number=doc.get("license_number"),
        )


class Me(BaseModel):
    uid: str
    role: str
    initial: str
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    sport: Optional[str] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    uid: str
