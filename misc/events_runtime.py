from __future__ import annotations

from typing import Awaitable, Callable

from adapters.base import EventKind
from adapters.base import PlatformEvent
from enforcement.store import LockKind
from misc.botlog import emit_log
from misc.runtime_deps import RuntimeDeps

EventHandler = Callable[[PlatformEvent], Awaitable[None]]


class EventDispatcher:
    """Routes each platform event to its handler; never lets a handler error escape."""

    def __init__(
        self,
        *,
        deps: RuntimeDeps,
        on_message: EventHandler,
    ) -> None:
        self.deps = deps
        self._handlers: dict[EventKind, EventHandler] = {
            EventKind.MESSAGE: on_message,
            EventKind.MESSAGE_REPLY: on_message,
            EventKind.THREAD_NAME: self.on_title_changed,
            EventKind.USER_NICKNAME: self.on_nickname_changed,
            EventKind.THREAD_IMAGE: self.on_photo_changed,
            EventKind.SUBSCRIBE: self.on_bot_added,
        }

    def _is_self_authored(self, event: PlatformEvent) -> bool:
        bot_id = self.deps.client.current_user_id()
        if not bot_id:
            return False
        if event.kind in (EventKind.MESSAGE, EventKind.MESSAGE_REPLY):
            return event.sender_id == bot_id
        return event.author_id == bot_id

    async def dispatch(self, event: PlatformEvent) -> None:
        handler = self._handlers.get(event.kind)
        if handler is None:
            return
        try:
            if self._is_self_authored(event):
                return
            await handler(event)
        except Exception as e:
            emit_log(
                "Events",
                f"handler error kind={event.kind.value} conversation={event.conversation_id}: {e}",
                error=True,
            )

    async def _scold(self, conversation_id: str, author_id: str, text: str) -> None:
        if author_id:
            await self.deps.send_reply(conversation_id, author_id, text)
        else:
            await self.deps.client.send_message(text, conversation_id)

    async def on_title_changed(self, event: PlatformEvent) -> None:
        settings = self.deps.settings
        store = self.deps.lock_store
        cid = event.conversation_id
        new_title = event.new_title or ""
        if settings.is_admin(event.author_id):
            return

        locked = store.get_lock(cid, LockKind.TITLE)
        if locked is not None:
            if new_title == locked:
                return
            await self.deps.client.set_title(locked, cid)
            emit_log("Locks", f"action=title_revert conversation={cid} author={event.author_id or 'unknown'}")
            await self._scold(cid, event.author_id, self.deps.persona.title_scold)
            return

        if store.is_auto_remove(cid, LockKind.TITLE) and new_title.strip():
            await self.deps.client.set_title("", cid)
            emit_log("Locks", f"action=title_clear conversation={cid} author={event.author_id or 'unknown'}")
            await self._scold(cid, event.author_id, self.deps.persona.title_remove_scold)

    async def on_nickname_changed(self, event: PlatformEvent) -> None:
        settings = self.deps.settings
        store = self.deps.lock_store
        client = self.deps.client
        persona = self.deps.persona
        cid = event.conversation_id
        participant = event.participant_id
        new_nickname = event.new_nickname or ""
        if settings.is_admin(event.author_id):
            return

        bot_id = client.current_user_id()
        if bot_id and participant == bot_id and new_nickname != settings.bot_nickname:
            await client.change_nickname(settings.bot_nickname, cid, bot_id)
            emit_log("Locks", f"action=bot_nick_revert conversation={cid} author={event.author_id or 'unknown'}")
            await self._scold(cid, event.author_id, persona.bot_nick_scold)

        locked = store.get_lock(cid, LockKind.NICKNAME)
        if locked is not None:
            if new_nickname != locked:
                await client.change_nickname(locked, cid, participant)
                emit_log("Locks", f"action=nickname_revert conversation={cid} participant={participant}")
                await self._scold(cid, event.author_id, persona.nickname_scold)
            return

        if store.is_auto_remove(cid, LockKind.NICKNAME) and new_nickname.strip():
            await client.change_nickname("", cid, participant)
            emit_log("Locks", f"action=nickname_clear conversation={cid} participant={participant}")
            await self._scold(cid, event.author_id, persona.nickname_remove_scold)

    async def on_photo_changed(self, event: PlatformEvent) -> None:
        cid = event.conversation_id
        locked = self.deps.lock_store.get_lock(cid, LockKind.PHOTO)
        if locked is None or self.deps.settings.is_admin(event.author_id):
            return
        if event.image_ref == locked:
            return
        new_ref = await self.deps.client.set_image(locked, cid)
        if new_ref and new_ref != locked:
            self.deps.lock_store.set_lock(cid, LockKind.PHOTO, new_ref)
        emit_log("Locks", f"action=photo_revert conversation={cid} author={event.author_id or 'unknown'}")
        await self._scold(cid, event.author_id, self.deps.persona.photo_scold)

    async def on_bot_added(self, event: PlatformEvent) -> None:
        client = self.deps.client
        settings = self.deps.settings
        cid = event.conversation_id
        bot_id = client.current_user_id()
        if not bot_id or bot_id not in (event.added_participant_ids or []):
            return

        try:
            await client.change_nickname(settings.bot_nickname, cid, bot_id)
        except Exception as e:
            emit_log("Events", f"persona nickname failed conversation={cid}: {e}", error=True)

        welcome = self.deps.persona.render(self.deps.persona.welcome_message, prefix=settings.prefix)
        try:
            await client.send_message(welcome, cid)
        finally:
            self.deps.joined.add(cid)
        emit_log("Events", f"added to conversation={cid}")
