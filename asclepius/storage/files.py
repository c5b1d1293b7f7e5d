# asclepius/storage/files.py
from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from asclepius.errors import TransportError
from asclepius.storage.backend import BlobStore
from asclepius.utils.clock import epoch_millis

logger = logging.getLogger(__name__)


@dataclass
class MediaUpload:
    """Bytes plus the metadata the client sent with them."""
    data: bytes
    filename: str = ""
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    async def from_upload_file(cls, upload) -> Optional["MediaUpload"]:
        """Read a FastAPI UploadFile; an absent or nameless part counts as no media."""
        if upload is None or not upload.filename:
            return None
        data = await upload.read()
        return cls(data=data, filename=upload.filename, content_type=upload.content_type)


def _safe_name(filename: str) -> str:
    name = posixpath.basename((filename or "").replace("\\", "/")).strip()
    return name or "file"


# --- key builders: one per media kind --------------------------------------
def exercise_key(athlete_id: str, moment: datetime) -> str:
    return f"exercises/{athlete_id}/{epoch_millis(moment)}"


def symptom_key(athlete_id: str, moment: datetime) -> str:
    return f"symptoms/{athlete_id}/{epoch_millis(moment)}"


def chat_file_key(room_id: str, moment: datetime, filename: str) -> str:
    return f"chatFiles/{room_id}/{epoch_millis(moment)}_{_safe_name(filename)}"


def chat_voice_key(room_id: str, moment: datetime) -> str:
    return f"chatVoices/{room_id}/{epoch_millis(moment)}.m4a"


async def save_upload(blobs: BlobStore, storage_key: str, upload: MediaUpload) -> Tuple[str, str]:
    """
    Store the bytes, then resolve a fetchable URL.
    Returns (storage_key, url); raises TransportError before anything
    referencing the blob could be written.
    """
    await blobs.upload(storage_key, upload.data, content_type=upload.content_type)
    url = await blobs.url_for(storage_key)
    return storage_key, url


async def discard_upload(blobs: BlobStore, path_or_url: Optional[str]) -> bool:
    """Best-effort delete of a stale blob. Failures are logged, never raised."""
    if not path_or_url:
        return False
    try:
        key = blobs.key_for(path_or_url)
        await blobs.delete(key)
    except (TransportError, ValueError) as exc:
        logger.warning("Could not delete stale media %s: %s", path_or_url, exc)
        return False
    return True


async def with_fresh_url(blobs: BlobStore, doc: dict) -> dict:
    """
    Copy of a stored record with its media URL signed again.

    Signed URLs expire, so the stored key wins over the URL saved next to
    it. Older records that kept only a relative path resolve from that.
    """
    key = doc.get("media_path")
    url = doc.get("media_url")
    if not key and url and not url.startswith(("http://", "https://")):
        key = url
    if not key:
        return doc
    return dict(doc, media_url=await blobs.url_for(key))
