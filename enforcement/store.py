from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class LockKind(str, Enum):
    TITLE = "title"
    NICKNAME = "nickname"
    PHOTO = "photo"


class LockStore(ABC):
    """Per-conversation lock records and auto-remove flags."""

    @abstractmethod
    def set_lock(self, conversation_id: str, kind: LockKind, value: str) -> None:
        ...

    @abstractmethod
    def clear_lock(self, conversation_id: str, kind: LockKind) -> bool:
        """Remove the lock; returns whether one existed."""

    @abstractmethod
    def get_lock(self, conversation_id: str, kind: LockKind) -> str | None:
        ...

    @abstractmethod
    def set_auto_remove(self, conversation_id: str, kind: LockKind, enabled: bool) -> None:
        ...

    @abstractmethod
    def is_auto_remove(self, conversation_id: str, kind: LockKind) -> bool:
        ...

    def snapshot(self, conversation_id: str) -> dict[str, object]:
        cid = str(conversation_id)
        return {
            "title_lock": self.get_lock(cid, LockKind.TITLE),
            "title_auto_remove": self.is_auto_remove(cid, LockKind.TITLE),
            "nickname_lock": self.get_lock(cid, LockKind.NICKNAME),
            "nickname_auto_remove": self.is_auto_remove(cid, LockKind.NICKNAME),
            "photo_lock": self.get_lock(cid, LockKind.PHOTO),
        }


class InMemoryLockStore(LockStore):
    def __init__(self) -> None:
        self._locks: dict[tuple[str, LockKind], str] = {}
        self._auto_remove: set[tuple[str, LockKind]] = set()

    def set_lock(self, conversation_id: str, kind: LockKind, value: str) -> None:
        self._locks[(str(conversation_id), LockKind(kind))] = str(value)

    def clear_lock(self, conversation_id: str, kind: LockKind) -> bool:
        return self._locks.pop((str(conversation_id), LockKind(kind)), None) is not None

    def get_lock(self, conversation_id: str, kind: LockKind) -> str | None:
        return self._locks.get((str(conversation_id), LockKind(kind)))

    def set_auto_remove(self, conversation_id: str, kind: LockKind, enabled: bool) -> None:
        key = (str(conversation_id), LockKind(kind))
        if enabled:
            self._auto_remove.add(key)
        else:
            self._auto_remove.discard(key)

    def is_auto_remove(self, conversation_id: str, kind: LockKind) -> bool:
        return (str(conversation_id), LockKind(kind)) in self._auto_remove
