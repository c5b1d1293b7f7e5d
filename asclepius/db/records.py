# asclepius/db/records.py
"""
Filters and new-document builders for the per-athlete collections
(exercises, symptom logs). Chat messages are keyed by room instead.
"""
from __future__ import annotations

from typing import Any, Dict

from bson import ObjectId

from asclepius.errors import ValidationError
from asclepius.schemas.exercise import COMPLETED

UNCOMPLETED = "uncompleted"


def new_id() -> str:
    """Push-style key: lexicographic order matches creation order."""
    return str(ObjectId())


def athlete_records(athlete_id: str) -> Dict[str, Any]:
    """Everything one athlete owns in a collection."""
    if not athlete_id:
        raise ValidationError("An athlete must be selected.")
    return {"athlete_id": athlete_id}


def athlete_record(athlete_id: str, record_id: str) -> Dict[str, Any]:
    """One record, matched only when it belongs to athlete_id."""
    return {"_id": record_id, **athlete_records(athlete_id)}


def exercises_in_view(athlete_id: str, view: str) -> Dict[str, Any]:
    """Client-progress filter: completed, or anything not yet completed (incl. status-less records)."""
    if view == COMPLETED:
        status: Any = COMPLETED
    elif view == UNCOMPLETED:
        status = {"$ne": COMPLETED}
    else:
        raise ValidationError("View must be 'completed' or 'uncompleted'.")
    return {**athlete_records(athlete_id), "status": status}


def new_record(athlete_id: str, **fields: Any) -> Dict[str, Any]:
    doc = {"_id": new_id(), **fields}
    doc.update(athlete_records(athlete_id))
    return doc
