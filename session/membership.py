from __future__ import annotations

from typing import Callable, Iterable

from misc.botlog import emit_log

MembershipListener = Callable[[list[str]], None]


class JoinedConversations:
    """Ordered set of conversations the bot is in; listeners get a snapshot on every change."""

    def __init__(self) -> None:
        self._ids: dict[str, None] = {}
        self._listeners: list[MembershipListener] = []

    def subscribe(self, listener: MembershipListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def snapshot(self) -> list[str]:
        return list(self._ids)

    def __contains__(self, conversation_id: object) -> bool:
        return str(conversation_id) in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def replace(self, conversation_ids: Iterable[str]) -> None:
        self._ids = {str(cid): None for cid in conversation_ids if str(cid or "").strip()}
        self._notify()

    def add(self, conversation_id: str) -> bool:
        cid = str(conversation_id)
        added = cid not in self._ids
        self._ids[cid] = None
        self._notify()
        return added

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                emit_log("Membership", f"listener failed: {e}", error=True)
