from __future__ import annotations

import asyncio

from adapters.base import PlatformClient
from adapters.base import ThreadInfo


class FakePlatformClient(PlatformClient):
    """In-memory platform that records every outbound call."""

    def __init__(self, *, bot_id: str = "bot", names: dict | None = None, threads: list | None = None):
        self.bot_id = bot_id
        self.names = dict(names or {})
        self.threads = list(threads or [])
        self.thread_info: dict[str, ThreadInfo] = {}
        self.app_state: list[dict] = []
        self.logged_in = False

        self.auth_calls: list[list[dict]] = []
        self.auth_errors: list[Exception] = []
        self.listen_errors: list[Exception] = []
        self.listen_calls = 0
        self.stop_calls = 0

        self.sent: list[tuple[object, str]] = []
        self.nicknames: list[tuple[str, str, str]] = []
        self.titles: list[tuple[str, str]] = []
        self.images: list[tuple[str, str]] = []

        self.user_lookup_error: Exception | None = None
        self.title_error: Exception | None = None
        self.plain_send_error: Exception | None = None
        self.reissued_image_refs: list[str] = []

    # session
    async def authenticate(self, credentials):
        self.auth_calls.append(list(credentials))
        if self.auth_errors:
            self.logged_in = False
            raise self.auth_errors.pop(0)
        self.logged_in = True
        self.app_state = [dict(c) for c in credentials]

    def has_session(self):
        return self.logged_in

    def current_user_id(self):
        return self.bot_id

    def get_app_state(self):
        return list(self.app_state)

    # outbound
    async def send_message(self, message, conversation_id):
        if isinstance(message, str) and self.plain_send_error is not None:
            raise self.plain_send_error
        self.sent.append((message, conversation_id))

    async def change_nickname(self, name, conversation_id, user_id):
        self.nicknames.append((name, conversation_id, user_id))

    async def set_title(self, name, conversation_id):
        if self.title_error is not None:
            raise self.title_error
        self.titles.append((name, conversation_id))

    async def set_image(self, image_ref, conversation_id):
        self.images.append((image_ref, conversation_id))
        return self.reissued_image_refs.pop(0) if self.reissued_image_refs else None

    # lookups
    async def get_thread_list(self, limit=100):
        return list(self.threads)[:limit]

    async def get_thread_info(self, conversation_id):
        return self.thread_info.get(conversation_id) or ThreadInfo(conversation_id=conversation_id)

    async def get_user_info(self, user_ids):
        if self.user_lookup_error is not None:
            raise self.user_lookup_error
        return {uid: self.names[uid] for uid in user_ids if uid in self.names}

    # listening
    async def listen(self, callback):
        self.listen_calls += 1
        if self.listen_errors:
            raise self.listen_errors.pop(0)
        await asyncio.Event().wait()

    async def stop_listening(self):
        self.stop_calls += 1

    # helpers
    def sent_texts(self) -> list[str]:
        return [getattr(message, "body", message) for message, _ in self.sent]
