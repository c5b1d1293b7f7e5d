# asclepius/services/symptoms.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from pymongo import ReturnDocument

from asclepius.context import SessionContext
from asclepius.db import SYMPTOM_LOGS
from asclepius.db.records import athlete_record, athlete_records, new_record
from asclepius.errors import NotFoundError, ValidationError, store_errors
from asclepius.schemas.symptom import SymptomLog
from asclepius.security.access import require_self, require_self_or_physio
from asclepius.security.policy import MediaPolicy, policy as media_policy
from asclepius.services.exercises import parse_leading_int
from asclepius.storage.backend import BlobStore
from asclepius.storage.files import MediaUpload, discard_upload, save_upload, symptom_key, with_fresh_url
from asclepius.utils.clock import utcnow
from asclepius.utils.logger import log_activity

logger = logging.getLogger(__name__)


def _validated(description: Optional[str], pain_level) -> tuple:
    description = (description or "").strip()
    pain_raw = "" if pain_level is None else str(pain_level).strip()
    if not description or not pain_raw:
        raise ValidationError("Please fill out all fields.")
    pain = parse_leading_int(pain_raw)
    if pain is None:
        raise ValidationError("Pain level must be a number.")
    return description, pain


class SymptomLogService:
    """Per-athlete symptom journal; newest entry first."""

    def __init__(
        self,
        db,
        blobs: BlobStore,
        now: Callable[[], datetime] = utcnow,
        policy: MediaPolicy = media_policy,
    ):
        self._db = db
        self._logs = db[SYMPTOM_LOGS]
        self._blobs = blobs
        self._now = now
        self._policy = policy

    async def _get(self, athlete_id: str, log_id: str) -> dict:
        with store_errors("load symptom log"):
            doc = await self._logs.find_one(athlete_record(athlete_id, log_id))
        if not doc:
            raise NotFoundError("Symptom log not found.")
        return doc

    async def _store_media(self, athlete_id: str, media: MediaUpload, moment: datetime) -> dict:
        self._policy.check(media.data)
        key, url = await save_upload(self._blobs, symptom_key(athlete_id, moment), media)
        return {
            "media_url": url,
            "media_path": key,
            "media_type": self._policy.classify(media.filename, media.content_type),
        }

    async def _present(self, doc: dict) -> SymptomLog:
        return SymptomLog.from_doc(await with_fresh_url(self._blobs, doc))

    async def _discard_media(self, doc: dict) -> None:
        await discard_upload(self._blobs, doc.get("media_path") or doc.get("media_url"))

    async def create(
        self,
        ctx: SessionContext,
        athlete_id: str,
        description: Optional[str],
        pain_level,
        media: Optional[MediaUpload] = None,
    ) -> SymptomLog:
        require_self(ctx, athlete_id)
        description, pain = _validated(description, pain_level)

        moment = self._now()
        doc = new_record(
            athlete_id,
            symptom_description=description,
            pain_level=pain,
            media_url=None,
            media_path=None,
            media_type=None,
            timestamp=moment,
        )
        if media is not None:
            doc.update(await self._store_media(athlete_id, media, moment))

        with store_errors("save symptom log"):
            await self._logs.insert_one(doc)

        await log_activity(self._db, ctx.uid, "symptom_logged", {"log_id": doc["_id"], "pain_level": pain})
        return SymptomLog.from_doc(doc)

    async def list(self, ctx: SessionContext, athlete_id: str) -> List[SymptomLog]:
        require_self_or_physio(ctx, athlete_id)
        with store_errors("load symptom logs"):
            docs = await self._logs.find(athlete_records(athlete_id)).sort([("timestamp", -1), ("_id", -1)]).to_list(length=None)
        return [await self._present(d) for d in docs]

    async def update(
        self,
        ctx: SessionContext,
        athlete_id: str,
        log_id: str,
        description: Optional[str],
        pain_level,
    ) -> SymptomLog:
        require_self(ctx, athlete_id)
        description, pain = _validated(description, pain_level)

        # an edit counts as the newest event
        with store_errors("update symptom log"):
            doc = await self._logs.find_one_and_update(
                athlete_record(athlete_id, log_id),
                {"$set": {"symptom_description": description, "pain_level": pain, "timestamp": self._now()}},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise NotFoundError("Symptom log not found.")

        await log_activity(self._db, ctx.uid, "symptom_updated", {"log_id": log_id})
        return await self._present(doc)

    async def replace_media(
        self,
        ctx: SessionContext,
        athlete_id: str,
        log_id: str,
        media: Optional[MediaUpload],
    ) -> SymptomLog:
        require_self(ctx, athlete_id)
        if media is None:
            raise ValidationError("Please choose a file to upload.")

        old = await self._get(athlete_id, log_id)
        fields = await self._store_media(athlete_id, media, self._now())

        with store_errors("update symptom media"):
            doc = await self._logs.find_one_and_update(
                athlete_record(athlete_id, log_id),
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            # removed while we were uploading
            await discard_upload(self._blobs, fields["media_path"])
            raise NotFoundError("Symptom log not found.")

        if old.get("media_path") != fields["media_path"]:
            await self._discard_media(old)

        await log_activity(self._db, ctx.uid, "symptom_media_replaced", {"log_id": log_id})
        return SymptomLog.from_doc(doc)

    async def delete(self, ctx: SessionContext, athlete_id: str, log_id: str) -> None:
        require_self(ctx, athlete_id)
        doc = await self._get(athlete_id, log_id)

        await self._discard_media(doc)
        with store_errors("delete symptom log"):
            await self._logs.delete_one(athlete_record(athlete_id, log_id))

        await log_activity(self._db, ctx.uid, "symptom_deleted", {"log_id": log_id})
