# asclepius/security/policy.py
from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from asclepius import settings
from asclepius.errors import ValidationError

_VIDEO_EXTS = (".mp4", ".mov")
_AUDIO_EXTS = (".m4a", ".mp3", ".wav", ".aac", ".ogg")
_IMAGE_EXTS = (".jpg", ".jpeg", ".png", ".gif", ".heic", ".webp")


@dataclass(frozen=True)
class MediaPolicy:
    """
    Central knobs for uploaded media (exercise demos, symptom photos,
    chat attachments and voice notes).
    """
    max_mb: int = settings.MAX_UPLOAD_MB

    @property
    def max_bytes(self) -> int:
        return self.max_mb * 1024 * 1024

    def check(self, data: bytes) -> None:
        if not data:
            raise ValidationError("Uploaded file is empty.")
        if len(data) > self.max_bytes:
            raise ValidationError(f"File exceeds the {self.max_mb} MB limit.")

    def classify(self, filename: str = "", content_type: Optional[str] = None) -> str:
        """image | video | audio | file, from content type first, then extension."""
        ct = (content_type or "").split(";")[0].strip().lower()
        if not ct or ct == "application/octet-stream":
            ct = mimetypes.guess_type(filename or "")[0] or ""

        major = ct.split("/", 1)[0]
        if major in ("image", "video", "audio"):
            return major

        ext = os.path.splitext((filename or "").lower())[1]
        if ext in _VIDEO_EXTS:
            return "video"
        if ext in _AUDIO_EXTS:
            return "audio"
        if ext in _IMAGE_EXTS:
            return "image"
        return "file"

    def is_video_url(self, url: Optional[str]) -> bool:
        if not url:
            return False
        path = urlparse(url).path.lower()
        return path.endswith(_VIDEO_EXTS)


policy = MediaPolicy()
