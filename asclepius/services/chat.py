# asclepius/services/chat.py
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Set, Union

from asclepius.context import SessionContext
from asclepius.db import CHATS
from asclepius.db.records import new_id
from asclepius.errors import (
    AsclepiusError,
    NotFoundError,
    PreconditionError,
    ValidationError,
    store_errors,
)
from asclepius.schemas.chat import ChatMessage
from asclepius.security.policy import MediaPolicy, policy as media_policy
from asclepius.storage.backend import BlobStore
from asclepius.storage.files import MediaUpload, chat_file_key, chat_voice_key, save_upload
from asclepius.utils.clock import utcnow
from asclepius.utils.logger import log_activity

logger = logging.getLogger(__name__)

OnUpdate = Callable[[List[ChatMessage]], Union[None, Awaitable[None]]]
OnError = Callable[[AsclepiusError], Union[None, Awaitable[None]]]


def room_id_for(user_a: str, user_b: str) -> str:
    """Same room whichever side opens it."""
    if not user_a or not user_b:
        raise ValidationError("Both chat participants are required.")
    return "_".join(sorted([user_a, user_b]))


class VoiceRecording:
    """Clip buffer for one voice note, filled chunk by chunk by the client."""

    def __init__(self):
        self._chunks: List[bytes] = []
        self.active = True

    def append(self, chunk: bytes) -> None:
        self._chunks.append(bytes(chunk))

    def release(self) -> bytes:
        self.active = False
        clip = b"".join(self._chunks)
        self._chunks = []
        return clip

    def discard(self) -> None:
        self.active = False
        self._chunks = []


async def _invoke(callback: Callable, arg) -> None:
    result = callback(arg)
    if inspect.isawaitable(result):
        await result


class Subscription:
    """
    Live room snapshots pushed to a callback until ``unsubscribe()``.

    If the change feed itself breaks, the subscription ends on its own:
    ``closed`` turns true, ``error`` holds the cause and ``on_error`` (when
    given) is told once.
    """

    def __init__(
        self,
        session: "ChatSession",
        listener,
        on_update: OnUpdate,
        on_error: Optional[OnError] = None,
    ):
        self._session = session
        self._listener = listener
        self._on_update = on_update
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self.closed = False
        self.error: Optional[AsclepiusError] = None

    async def _deliver(self, snapshot: List[ChatMessage]) -> None:
        if self.closed:
            return
        await _invoke(self._on_update, snapshot)

    async def _run(self) -> None:
        room_id = self._session.room_id
        while not self.closed:
            try:
                await self._listener.wait()
            except AsclepiusError as exc:
                logger.error("Chat feed for %s failed: %s", room_id, exc.message)
                await self._stop(exc)
                return
            try:
                snapshot = await self._session.snapshot()
            except AsclepiusError as exc:
                logger.warning("Chat snapshot for %s failed: %s", room_id, exc.message)
                continue
            try:
                await self._deliver(snapshot)
            except Exception:
                logger.exception("Chat listener for %s failed; unsubscribing", room_id)
                await self._stop()
                return

    async def _stop(self, error: Optional[AsclepiusError] = None) -> None:
        # runs inside the task, so there is nothing left for unsubscribe() to cancel
        self.closed = True
        self.error = error
        self._task = None
        self._session._subscriptions.discard(self)
        try:
            await self._listener.close()
        except AsclepiusError as exc:
            logger.warning("Closing chat feed for %s failed: %s", self._session.room_id, exc.message)
        if error is not None and self._on_error is not None:
            try:
                await _invoke(self._on_error, error)
            except Exception:
                logger.exception("Chat error callback for %s failed", self._session.room_id)

    async def unsubscribe(self) -> None:
        if self.closed and self._task is None:
            return
        self.closed = True
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self._listener.close()
        self._session._subscriptions.discard(self)


class ChatSession:
    """
    One participant's view of a two-party room.

    Messages are ordered by (timestamp, id); snapshots are handed out
    most-recent-first.
    """

    def __init__(
        self,
        db,
        blobs: BlobStore,
        feed,
        ctx: SessionContext,
        peer_id: str,
        now: Callable = utcnow,
        policy: MediaPolicy = media_policy,
    ):
        self.ctx = ctx
        self.room_id = room_id_for(ctx.uid, peer_id)
        self.peer_id = peer_id
        self._db = db
        self._chats = db[CHATS]
        self._blobs = blobs
        self._feed = feed
        self._now = now
        self._policy = policy
        self._subscriptions: Set[Subscription] = set()
        self._recording: Optional[VoiceRecording] = None

    # ----------------------------------------------------------------- reading
    async def snapshot(self) -> List[ChatMessage]:
        with store_errors("load messages"):
            docs = await (
                self._chats.find({"room_id": self.room_id})
                .sort([("timestamp", 1), ("_id", 1)])
                .to_list(length=None)
            )
        messages = [ChatMessage.from_doc(d) for d in docs]
        messages.reverse()
        return messages

    async def snapshots(self) -> AsyncIterator[List[ChatMessage]]:
        """Current contents now, then again after every change. Stop with aclose()."""
        listener = await self._feed.listen(self.room_id)
        try:
            yield await self.snapshot()
            while True:
                await listener.wait()
                yield await self.snapshot()
        finally:
            await listener.close()

    async def subscribe(self, on_update: OnUpdate, on_error: Optional[OnError] = None) -> Subscription:
        # listen before the first read so an append in between still wakes us
        listener = await self._feed.listen(self.room_id)
        sub = Subscription(self, listener, on_update, on_error)
        self._subscriptions.add(sub)
        try:
            await sub._deliver(await self.snapshot())
        except BaseException:
            await sub.unsubscribe()
            raise
        sub._task = asyncio.get_running_loop().create_task(sub._run())
        return sub

    # ----------------------------------------------------------------- writing
    async def _append(self, kind: str, payload: dict, moment=None) -> ChatMessage:
        doc = {
            "_id": new_id(),
            "room_id": self.room_id,
            "sender_id": self.ctx.uid,
            "timestamp": moment or self._now(),
            "type": kind,
            **payload,
        }
        message = ChatMessage.from_doc(doc)
        with store_errors("send message"):
            await self._chats.insert_one(doc)
        await self._feed.publish(self.room_id)
        return message

    async def send_text(self, text: Optional[str]) -> ChatMessage:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Please enter a message.")
        return await self._append("text", {"text": text})

    async def send_file(self, upload: Optional[MediaUpload]) -> ChatMessage:
        if upload is None:
            raise ValidationError("Please choose a file to send.")
        self._policy.check(upload.data)

        moment = self._now()
        key, url = await save_upload(self._blobs, chat_file_key(self.room_id, moment, upload.filename), upload)
        message = await self._append(
            "file",
            {"file_url": url, "file_name": upload.filename or "file", "file_path": key},
            moment,
        )
        await log_activity(self._db, self.ctx.uid, "chat_file_sent", {"room_id": self.room_id, "file_name": upload.filename})
        return message

    # ------------------------------------------------------------------- voice
    @property
    def recording(self) -> bool:
        return self._recording is not None

    def start_voice_capture(self) -> None:
        if self._recording is not None:
            logger.info("Discarding unfinished voice note in %s", self.room_id)
            self._recording.discard()
        self._recording = VoiceRecording()

    def append_voice_chunk(self, chunk: bytes) -> None:
        if self._recording is None:
            raise PreconditionError("No voice recording in progress.")
        self._recording.append(chunk)

    async def stop_voice_capture(self) -> Optional[ChatMessage]:
        recording, self._recording = self._recording, None
        if recording is None:
            return None
        clip = recording.release()
        if not clip:
            return None
        self._policy.check(clip)

        moment = self._now()
        upload = MediaUpload(data=clip, filename="voice.m4a", content_type="audio/mp4")
        key, url = await save_upload(self._blobs, chat_voice_key(self.room_id, moment), upload)
        return await self._append("voice", {"voice_url": url, "voice_path": key}, moment)

    # ---------------------------------------------------------------- playback
    async def media_url(self, message_id: str) -> str:
        with store_errors("load message"):
            doc = await self._chats.find_one({"_id": message_id, "room_id": self.room_id})
        if not doc:
            raise NotFoundError("Message not found.")
        if doc.get("type") == "file":
            url, path = doc.get("file_url"), doc.get("file_path")
        elif doc.get("type") == "voice":
            url, path = doc.get("voice_url"), doc.get("voice_path")
        else:
            raise ValidationError("Message has no attachment.")

        # stored URLs may carry an expired signature; re-sign from the path
        if path:
            return await self._blobs.url_for(path)
        if url and not url.startswith(("http://", "https://")):
            return await self._blobs.url_for(url)
        if not url:
            raise NotFoundError("Attachment not found.")
        return url

    # ---------------------------------------------------------------- teardown
    async def close(self) -> None:
        for sub in list(self._subscriptions):
            await sub.unsubscribe()
        if self._recording is not None:
            self._recording.discard()
            self._recording = None
