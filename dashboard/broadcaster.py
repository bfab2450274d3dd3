from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator


class EventBroadcaster:
    """Fans log lines and membership snapshots out to SSE subscribers."""

    def __init__(self, *, queue_size: int = 256) -> None:
        self.queue_size = int(queue_size)
        self._subscribers: list[asyncio.Queue] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        try:
            self._subscribers.remove(q)
        except ValueError:
            pass

    def broadcast(self, event: str, data) -> None:
        payload = {"event": event, "data": json.dumps(data)}
        dead: list[asyncio.Queue] = []
        for q in self._subscribers:
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                dead.append(q)
        for q in dead:
            self._close(q)

    def _close(self, q: asyncio.Queue) -> None:
        # None ends the subscriber stream
        self.unsubscribe(q)
        while not q.empty():
            q.get_nowait()
        q.put_nowait(None)

    # sinks
    def log_sink(self, line: str) -> None:
        self.broadcast("botlog", line)

    def groups_sink(self, conversation_ids: list[str]) -> None:
        self.broadcast("groupsUpdate", list(conversation_ids))

    async def iter_events(self, initial: list[dict] | None = None) -> AsyncIterator[dict]:
        q = self.subscribe()
        try:
            for payload in initial or []:
                yield payload
            while True:
                payload = await q.get()
                if payload is None:
                    return
                yield payload
        finally:
            self.unsubscribe(q)
