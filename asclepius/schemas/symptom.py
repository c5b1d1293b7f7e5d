# asclepius/schemas/symptom.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from asclepius.utils.clock import as_utc


class SymptomLog(BaseModel):
    id: str
    athlete_id: str
    symptom_description: str
    pain_level: int
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_doc(cls, doc: dict) -> "SymptomLog":
        return cls(
            id=str(doc["_id"]),
            athlete_id=doc["athlete_id"],
            symptom_description=doc.get("symptom_description", ""),
            pain_level=int(doc.get("pain_level") or 0),
            media_url=doc.get("media_url"),
            media_type=doc.get("media_type"),
            timestamp=as_utc(doc["timestamp"]),
        )
