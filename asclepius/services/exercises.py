# asclepius/services/exercises.py
from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Union

from pymongo import ReturnDocument

from asclepius.context import SessionContext
from asclepius.db import ATHLETES, EXERCISES
from asclepius.db.records import athlete_record, athlete_records, exercises_in_view, new_record
from asclepius.errors import NotFoundError, PreconditionError, ValidationError, store_errors
from asclepius.schemas.exercise import (
    COMPLETED,
    UPCOMING,
    CountdownState,
    Exercise,
    ExerciseListing,
)
from asclepius.security.access import require_physio, require_self, require_self_or_physio
from asclepius.security.policy import MediaPolicy, policy as media_policy
from asclepius.services.countdown import Countdown, CountdownRegistry
from asclepius.storage.backend import BlobStore
from asclepius.storage.files import MediaUpload, exercise_key, save_upload, with_fresh_url
from asclepius.utils.clock import as_utc, day_key, to_datetime, utcnow
from asclepius.utils.logger import log_activity

logger = logging.getLogger(__name__)

PLACEHOLDER_FEEDBACK = "No feedback provided"
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_leading_int(value) -> Optional[int]:
    """
    Integer at the start of the input ("7", " 7 ", "7/10" -> 7), else None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    m = _LEADING_INT.match(str(value))
    return int(m.group(1)) if m else None


def is_expired(status: Optional[str], completion_date: Optional[datetime], now: datetime) -> bool:
    """
    An upcoming exercise whose date is before today. Day granularity;
    never true for completed exercises.
    """
    if status == COMPLETED or completion_date is None:
        return False
    return as_utc(completion_date).date() < as_utc(now).date()


class ExerciseWorkflow:
    """
    Exercise lifecycle: a physio uploads it (upcoming), the athlete runs the
    countdown, then submits feedback (completed) and may edit it later.
    """

    def __init__(
        self,
        db,
        blobs: BlobStore,
        countdowns: CountdownRegistry,
        now: Callable[[], datetime] = utcnow,
        policy: MediaPolicy = media_policy,
    ):
        self._db = db
        self._exercises = db[EXERCISES]
        self._blobs = blobs
        self._countdowns = countdowns
        self._now = now
        self._policy = policy

    async def _get(self, athlete_id: str, exercise_id: str) -> dict:
        with store_errors("load exercise"):
            doc = await self._exercises.find_one(athlete_record(athlete_id, exercise_id))
        if not doc:
            raise NotFoundError("Exercise not found.")
        return doc

    # ------------------------------------------------------------------ create
    async def create_exercise(
        self,
        ctx: SessionContext,
        athlete_id: str,
        title: str,
        timer_minutes: Union[int, str, None],
        media: Optional[MediaUpload],
        due_date: Union[date, datetime, str, None],
    ) -> Exercise:
        require_physio(ctx)

        title = (title or "").strip()
        timer_raw = "" if timer_minutes is None else str(timer_minutes).strip()
        if not athlete_id or not title or not timer_raw or media is None or not due_date:
            raise ValidationError("Please fill out all fields and select a patient.")

        if not timer_raw.isdigit() or int(timer_raw) <= 0:
            raise ValidationError("Timer must be a positive whole number of minutes.")
        minutes = int(timer_raw)

        try:
            due = to_datetime(due_date)
        except ValueError:
            raise ValidationError("Due date must be a date (YYYY-MM-DD).")

        self._policy.check(media.data)

        with store_errors("look up athlete"):
            athlete = await self._db[ATHLETES].find_one({"_id": athlete_id})
        if not athlete:
            raise ValidationError("Selected patient does not exist.")

        moment = self._now()
        key, url = await save_upload(self._blobs, exercise_key(athlete_id, moment), media)

        doc = new_record(
            athlete_id,
            title=title,
            timer_minutes=minutes,
            media_url=url,
            media_path=key,
            media_type=self._policy.classify(media.filename, media.content_type),
            completion_date=due,
            status=UPCOMING,
            feedback=None,
            pain_level=None,
            rating=None,
            created_by=ctx.uid,
            created_at=moment,
        )
        with store_errors("save exercise"):
            await self._exercises.insert_one(doc)

        await log_activity(self._db, ctx.uid, "exercise_created", {"athlete_id": athlete_id, "exercise_id": doc["_id"]})
        logger.info("Exercise %s created for athlete %s", doc["_id"], athlete_id)
        return Exercise.from_doc(doc, expired=is_expired(UPCOMING, due, moment))

    # -------------------------------------------------------------------- read
    async def list_exercises(self, ctx: SessionContext, athlete_id: str) -> ExerciseListing:
        require_self_or_physio(ctx, athlete_id)

        with store_errors("load exercises"):
            docs = await self._exercises.find(athlete_records(athlete_id)).sort("_id", 1).to_list(length=None)

        now = self._now()
        listing: Dict[str, Dict[str, List[Exercise]]] = {UPCOMING: {}, COMPLETED: {}}
        for doc in docs:
            doc = await with_fresh_url(self._blobs, doc)
            status = doc.get("status") or UPCOMING
            moment = as_utc(doc.get("completion_date") or doc.get("created_at"))
            day = day_key(moment) if moment else "unscheduled"

            if status == COMPLETED:
                item = Exercise.from_doc(doc, expired=None)
            else:
                item = Exercise.from_doc(doc, expired=is_expired(status, moment, now))
            listing[status].setdefault(day, []).append(item)

        return ExerciseListing(upcoming=listing[UPCOMING], completed=listing[COMPLETED])

    async def client_progress(self, ctx: SessionContext, athlete_id: str, view: str = COMPLETED) -> List[Exercise]:
        require_physio(ctx)
        query = exercises_in_view(athlete_id, view)

        with store_errors("load client progress"):
            docs = await self._exercises.find(query).to_list(length=None)

        now = self._now()
        items = []
        for doc in docs:
            doc = await with_fresh_url(self._blobs, doc)
            status = doc.get("status") or UPCOMING
            expired = None if status == COMPLETED else is_expired(status, doc.get("completion_date"), now)
            items.append(Exercise.from_doc(doc, expired=expired))

        # newest first; undated last
        items.sort(key=lambda e: (e.completion_date is not None, e.completion_date or now), reverse=True)
        return items

    # --------------------------------------------------------------- countdown
    async def start_countdown(self, ctx: SessionContext, athlete_id: str, exercise_id: str) -> Countdown:
        require_self(ctx, athlete_id)
        doc = await self._get(athlete_id, exercise_id)

        def _time_up(_: Countdown) -> None:
            logger.info("Time is up for exercise %s (athlete %s)", exercise_id, athlete_id)

        return self._countdowns.start(athlete_id, exercise_id, int(doc["timer_minutes"]), on_time_up=_time_up)

    async def countdown_state(self, ctx: SessionContext, athlete_id: str, exercise_id: str) -> CountdownState:
        require_self_or_physio(ctx, athlete_id)
        countdown = self._countdowns.get(athlete_id, exercise_id)
        if countdown is None:
            doc = await self._get(athlete_id, exercise_id)
            countdown = Countdown(int(doc["timer_minutes"]))
        return CountdownState(
            started=countdown.started,
            remaining_seconds=countdown.remaining,
            display=countdown.display(),
            time_up=countdown.time_up,
        )

    # ---------------------------------------------------------------- feedback
    async def submit_feedback(
        self,
        ctx: SessionContext,
        athlete_id: str,
        exercise_id: str,
        feedback_text: Optional[str],
        pain_level,
    ) -> Exercise:
        require_self(ctx, athlete_id)
        if not self._countdowns.was_started(athlete_id, exercise_id):
            # countdowns are dropped once submitted; a completed exercise may be resubmitted
            with store_errors("load exercise"):
                done = await self._exercises.find_one(
                    {**athlete_record(athlete_id, exercise_id), "status": COMPLETED}, {"_id": 1}
                )
            if not done:
                raise PreconditionError("Start the exercise timer before submitting feedback.")

        pain = parse_leading_int(pain_level)
        update = {
            "feedback": (feedback_text or "").strip() or PLACEHOLDER_FEEDBACK,
            "pain_level": pain if pain is not None else 0,
            "status": COMPLETED,
            "completion_date": self._now(),
        }
        with store_errors("submit feedback"):
            doc = await self._exercises.find_one_and_update(
                athlete_record(athlete_id, exercise_id),
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise NotFoundError("Exercise not found.")

        await self._countdowns.discard(athlete_id, exercise_id)
        await log_activity(self._db, ctx.uid, "exercise_completed", {"exercise_id": exercise_id})
        return Exercise.from_doc(await with_fresh_url(self._blobs, doc), expired=None)

    async def save_feedback(
        self,
        ctx: SessionContext,
        athlete_id: str,
        exercise_id: str,
        feedback_text: Optional[str],
        rating,
    ) -> Exercise:
        require_self(ctx, athlete_id)

        if rating is None or str(rating).strip() == "":
            value = None
        else:
            value = parse_leading_int(rating)
            if value is None or not 0 <= value <= 10:
                raise ValidationError("Rating must be a number between 0 and 10.")

        update = {
            "feedback": (feedback_text or "").strip() or PLACEHOLDER_FEEDBACK,
            "rating": value,
        }
        with store_errors("save feedback"):
            doc = await self._exercises.find_one_and_update(
                athlete_record(athlete_id, exercise_id),
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise NotFoundError("Exercise not found.")

        await log_activity(self._db, ctx.uid, "feedback_saved", {"exercise_id": exercise_id})
        status = doc.get("status") or UPCOMING
        expired = None if status == COMPLETED else is_expired(status, doc.get("completion_date"), self._now())
        return Exercise.from_doc(await with_fresh_url(self._blobs, doc), expired=expired)
