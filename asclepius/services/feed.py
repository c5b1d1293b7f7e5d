# asclepius/services/feed.py
"""
Change feeds for chat rooms.

A feed hands out listeners per room. ``await listener.wait()`` returns once
the room has changed since the previous wait; bursts of changes collapse
into one wake-up.

LocalChangeFeed fans out inside this process and is fed by ``publish``.
MongoChangeFeed tails a change stream and needs a replica set.
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Set

from asclepius import settings
from asclepius.db import CHATS
from asclepius.errors import store_errors

logger = logging.getLogger(__name__)


class _LocalListener:
    def __init__(self, feed: "LocalChangeFeed", room_id: str):
        self._feed = feed
        self.room_id = room_id
        self._changed = asyncio.Event()

    def notify(self) -> None:
        self._changed.set()

    async def wait(self) -> None:
        await self._changed.wait()
        self._changed.clear()

    async def close(self) -> None:
        self._feed._drop(self)


class LocalChangeFeed:
    def __init__(self):
        self._listeners: Dict[str, Set[_LocalListener]] = defaultdict(set)

    async def listen(self, room_id: str) -> _LocalListener:
        listener = _LocalListener(self, room_id)
        self._listeners[room_id].add(listener)
        return listener

    async def publish(self, room_id: str) -> None:
        for listener in list(self._listeners.get(room_id, ())):
            listener.notify()

    def _drop(self, listener: _LocalListener) -> None:
        room = self._listeners.get(listener.room_id)
        if room is None:
            return
        room.discard(listener)
        if not room:
            del self._listeners[listener.room_id]

    def listener_count(self, room_id: str) -> int:
        return len(self._listeners.get(room_id, ()))


class _StreamListener:
    def __init__(self, stream):
        self._stream = stream
        self._pending = False

    async def prime(self) -> None:
        # opens the server-side cursor so nothing after this point is missed
        with store_errors("subscribe to chat"):
            if await self._stream.try_next() is not None:
                self._pending = True

    async def wait(self) -> None:
        if self._pending:
            self._pending = False
            return
        with store_errors("receive chat updates"):
            await self._stream.next()
            while await self._stream.try_next() is not None:
                pass

    async def close(self) -> None:
        with store_errors("stop chat updates"):
            await self._stream.close()


class MongoChangeFeed:
    def __init__(self, collection):
        self._collection = collection

    async def listen(self, room_id: str) -> _StreamListener:
        stream = self._collection.watch([
            {"$match": {"operationType": "insert", "fullDocument.room_id": room_id}},
        ])
        listener = _StreamListener(stream)
        await listener.prime()
        return listener

    async def publish(self, room_id: str) -> None:
        # the change stream reports inserts itself
        return None


def build_feed(db):
    if settings.CHAT_FEED == "mongo":
        logger.info("Chat updates via MongoDB change streams")
        return MongoChangeFeed(db[CHATS])
    return LocalChangeFeed()
