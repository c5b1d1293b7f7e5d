# asclepius/schemas/exercise.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel

from asclepius.security.policy import policy
from asclepius.utils.clock import as_utc

UPCOMING = "upcoming"
COMPLETED = "completed"


class Exercise(BaseModel):
    id: str
    athlete_id: str
    title: str
    timer_minutes: int
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    completion_date: Optional[datetime] = None
    status: Literal["upcoming", "completed"] = UPCOMING
    feedback: Optional[str] = None
    pain_level: Optional[int] = None
    rating: Optional[int] = None
    # derived at read time; None once completed
    expired: Optional[bool] = None

    @classmethod
    def from_doc(cls, doc: dict, **overrides) -> "Exercise":
        media_url = doc.get("media_url")
        media_type = doc.get("media_type")
        if media_url and not media_type:
            media_type = "video" if policy.is_video_url(media_url) else "image"

        fields = {
            "id": str(doc["_id"]),
            "athlete_id": doc["athlete_id"],
            "title": doc.get("title", ""),
            "timer_minutes": int(doc.get("timer_minutes") or 0),
            "media_url": media_url,
            "media_type": media_type,
            "completion_date": as_utc(doc.get("completion_date")),
            # records written before status was persisted read as upcoming
            "status": doc.get("status") or UPCOMING,
            "feedback": doc.get("feedback"),
            "pain_level": doc.get("pain_level"),
            "rating": doc.get("rating"),
        }
        fields.update(overrides)
        return cls(**fields)


class ExerciseListing(BaseModel):
    """Exercises bucketed by status, then by YYYY-MM-DD day."""
    upcoming: Dict[str, List[Exercise]] = {}
    completed: Dict[str, List[Exercise]] = {}


class CountdownState(BaseModel):
    started: bool
    remaining_seconds: int
    display: str
    time_up: bool
