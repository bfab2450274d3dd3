from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from config.defaults import DEFAULT_BOT_NICKNAME
from config.defaults import DEFAULT_PREFIX


@dataclass(slots=True)
class BotSettings:
    # mutated by the dashboard (prefix/admin) and by botnick
    prefix: str = DEFAULT_PREFIX
    admin_id: str = ""
    bot_nickname: str = DEFAULT_BOT_NICKNAME

    def is_admin(self, user_id: str | None) -> bool:
        return bool(self.admin_id) and str(user_id or "") == self.admin_id


@dataclass(frozen=True)
class RuntimeDeps:
    # core
    client: Any
    settings: BotSettings
    persona: Any

    # state
    lock_store: Any
    joined: Any

    # replies
    send_reply: Callable[[str, str, str], Awaitable[None]]
