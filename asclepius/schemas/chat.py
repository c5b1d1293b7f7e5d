# asclepius/schemas/chat.py
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, model_validator

from asclepius.utils.clock import as_utc

# payload fields that must be present for each message type
_PAYLOAD = {
    "text": ("text",),
    "file": ("file_url", "file_name"),
    "voice": ("voice_url",),
}


class ChatMessage(BaseModel):
    id: str
    room_id: str
    sender_id: str
    timestamp: datetime
    type: Literal["text", "file", "voice"]
    text: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    voice_url: Optional[str] = None

    @model_validator(mode="after")
    def _one_payload(self):
        wanted = _PAYLOAD[self.type]
        for name in ("text", "file_url", "file_name", "voice_url"):
            present = getattr(self, name) is not None
            if name in wanted and not present:
                raise ValueError(f"{self.type} message requires {name}")
            if name not in wanted and present:
                raise ValueError(f"{self.type} message cannot carry {name}")
        return self

    @classmethod
    def from_doc(cls, doc: dict) -> "ChatMessage":
        return cls(
            id=str(doc["_id"]),
            room_id=doc["room_id"],
            sender_id=doc["sender_id"],
            timestamp=as_utc(doc["timestamp"]),
            type=doc["type"],
            text=doc.get("text"),
            file_url=doc.get("file_url"),
            file_name=doc.get("file_name"),
            voice_url=doc.get("voice_url"),
        )
