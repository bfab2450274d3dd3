from __future__ import annotations

from adapters.base import PlatformClient
from enforcement.store import LockKind
from enforcement.store import LockStore
from misc.botlog import emit_log


class EnforcementService:
    """Command-side lock changes. Methods return (ok, message) for the reply."""

    def __init__(self, *, client: PlatformClient, store: LockStore) -> None:
        self.client = client
        self.store = store

    # ----- title -----
    async def lock_title(self, conversation_id: str, name: str) -> tuple[bool, str]:
        name = str(name or "").strip()
        if not name:
            return (False, "missing group name")
        self.store.set_lock(conversation_id, LockKind.TITLE, name)
        self.store.set_auto_remove(conversation_id, LockKind.TITLE, False)
        await self.client.set_title(name, conversation_id)
        emit_log("Locks", f"action=title_lock result=ok conversation={conversation_id}")
        return (True, f"Group name locked to: {name}")

    def unlock_title(self, conversation_id: str) -> tuple[bool, str]:
        if not self.store.clear_lock(conversation_id, LockKind.TITLE):
            return (False, "The group name is not locked.")
        emit_log("Locks", f"action=title_unlock result=ok conversation={conversation_id}")
        return (True, "Group name lock removed.")

    async def remove_title(self, conversation_id: str) -> tuple[bool, str]:
        self.store.clear_lock(conversation_id, LockKind.TITLE)
        self.store.set_auto_remove(conversation_id, LockKind.TITLE, True)
        await self.client.set_title("", conversation_id)
        emit_log("Locks", f"action=title_remove result=ok conversation={conversation_id}")
        return (True, "Group name removed. It will be kept empty.")

    # ----- nicknames -----
    async def _rename_all(self, conversation_id: str, name: str, *, skip_ids: set[str]) -> tuple[int, int]:
        info = await self.client.get_thread_info(conversation_id)
        renamed = 0
        failed = 0
        for participant_id in info.participant_ids:
            if participant_id in skip_ids:
                continue
            try:
                await self.client.change_nickname(name, conversation_id, participant_id)
                renamed += 1
            except Exception as e:
                failed += 1
                emit_log(
                    "Locks",
                    f"rename failed conversation={conversation_id} participant={participant_id}: {e}",
                    error=True,
                )
        return (renamed, failed)

    async def lock_nicknames(
        self,
        conversation_id: str,
        name: str,
        *,
        skip_ids: set[str] | None = None,
        clear_auto_remove: bool = False,
    ) -> tuple[bool, str]:
        name = str(name or "").strip()
        if not name:
            return (False, "missing nickname")
        self.store.set_lock(conversation_id, LockKind.NICKNAME, name)
        if clear_auto_remove:
            self.store.set_auto_remove(conversation_id, LockKind.NICKNAME, False)
        renamed, failed = await self._rename_all(conversation_id, name, skip_ids=set(skip_ids or set()))
        emit_log(
            "Locks",
            f"action=nickname_lock result=ok conversation={conversation_id} renamed={renamed} failed={failed}",
        )
        suffix = f" ({failed} could not be changed)" if failed else ""
        return (True, f"Nicknames locked to: {name}{suffix}")

    def unlock_nicknames(self, conversation_id: str) -> tuple[bool, str]:
        if not self.store.clear_lock(conversation_id, LockKind.NICKNAME):
            return (False, "Nicknames are not locked.")
        emit_log("Locks", f"action=nickname_unlock result=ok conversation={conversation_id}")
        return (True, "Nickname lock removed.")

    async def remove_all_nicknames(self, conversation_id: str) -> tuple[bool, str]:
        self.store.clear_lock(conversation_id, LockKind.NICKNAME)
        self.store.set_auto_remove(conversation_id, LockKind.NICKNAME, True)
        renamed, failed = await self._rename_all(conversation_id, "", skip_ids=set())
        emit_log(
            "Locks",
            f"action=nickname_remove result=ok conversation={conversation_id} cleared={renamed} failed={failed}",
        )
        return (True, "All nicknames removed. New nicknames will be cleared automatically.")

    def stop_nickname_removal(self, conversation_id: str) -> tuple[bool, str]:
        if not self.store.is_auto_remove(conversation_id, LockKind.NICKNAME):
            return (False, "Automatic nickname removal is not on.")
        self.store.set_auto_remove(conversation_id, LockKind.NICKNAME, False)
        return (True, "Automatic nickname removal turned off.")

    # ----- photo -----
    async def lock_photo(self, conversation_id: str) -> tuple[bool, str]:
        info = await self.client.get_thread_info(conversation_id)
        if not info.image_src:
            return (False, "Set a group photo first, then lock it.")
        self.store.set_lock(conversation_id, LockKind.PHOTO, info.image_src)
        emit_log("Locks", f"action=photo_lock result=ok conversation={conversation_id}")
        return (True, "Group photo locked.")

    def unlock_photo(self, conversation_id: str) -> tuple[bool, str]:
        if not self.store.clear_lock(conversation_id, LockKind.PHOTO):
            return (False, "The group photo is not locked.")
        emit_log("Locks", f"action=photo_unlock result=ok conversation={conversation_id}")
        return (True, "Group photo lock removed.")
