from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable


class EventKind(str, Enum):
    MESSAGE = "message"
    MESSAGE_REPLY = "message_reply"
    THREAD_NAME = "log:thread-name"
    USER_NICKNAME = "log:user-nickname"
    THREAD_IMAGE = "log:thread-image"
    SUBSCRIBE = "log:subscribe"
    OTHER = "other"


@dataclass(slots=True)
class Mention:
    tag: str
    id: str
    from_index: int


@dataclass(slots=True)
class OutboundMessage:
    body: str
    mentions: list[Mention] = field(default_factory=list)


@dataclass(slots=True)
class PlatformEvent:
    """One decoded inbound event.

    Message events fill ``sender_id``/``body``/``mentions``; log events fill
    ``author_id`` plus the field that changed.
    """

    kind: EventKind
    conversation_id: str
    sender_id: str = ""
    author_id: str = ""
    body: str = ""
    mentions: dict[str, str] = field(default_factory=dict)
    participant_id: str = ""
    new_nickname: str | None = None
    new_title: str | None = None
    image_ref: str | None = None
    added_participant_ids: list[str] = field(default_factory=list)
    raw: Any = None


@dataclass(slots=True)
class ThreadInfo:
    conversation_id: str
    name: str = ""
    participant_ids: list[str] = field(default_factory=list)
    nicknames: dict[str, str] = field(default_factory=dict)
    image_src: str | None = None


class PlatformError(RuntimeError):
    """Raised by adapters when a platform call fails."""


EventCallback = Callable[[PlatformEvent], Awaitable[None]]
Message = str | OutboundMessage


class PlatformClient(ABC):
    """Contract the engine depends on; adapters wrap a concrete platform library."""

    @abstractmethod
    async def authenticate(self, credentials: list[dict]) -> None:
        ...

    @abstractmethod
    def has_session(self) -> bool:
        ...

    @abstractmethod
    def current_user_id(self) -> str:
        ...

    @abstractmethod
    def get_app_state(self) -> list[dict]:
        ...

    @abstractmethod
    async def send_message(self, message: Message, conversation_id: str) -> None:
        ...

    @abstractmethod
    async def change_nickname(self, name: str, conversation_id: str, user_id: str) -> None:
        ...

    @abstractmethod
    async def set_title(self, name: str, conversation_id: str) -> None:
        ...

    @abstractmethod
    async def set_image(self, image_ref: str, conversation_id: str) -> str | None:
        """Apply the photo and return the reference it now has, when the platform issues a new one."""
        ...

    @abstractmethod
    async def get_thread_list(self, limit: int = 100) -> list[str]:
        ...

    @abstractmethod
    async def get_thread_info(self, conversation_id: str) -> ThreadInfo:
        ...

    @abstractmethod
    async def get_user_info(self, user_ids: list[str]) -> dict[str, str]:
        """Map each resolvable participant id to its display name."""

    @abstractmethod
    async def listen(self, callback: EventCallback) -> None:
        """Deliver events to ``callback`` one at a time; raise on listener failure."""

    @abstractmethod
    async def stop_listening(self) -> None:
        ...


def credentials_token(credentials: list[dict], key: str = "token") -> str | None:
    for entry in credentials or []:
        if not isinstance(entry, dict):
            continue
        if str(entry.get("key") or "").strip().lower() == key:
            value = str(entry.get("value") or "").strip()
            return value or None
    return None
