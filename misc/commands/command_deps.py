from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Callable


def _default_false(*args, **kwargs) -> bool:
    return False


async def _noop_save() -> None:
    return None


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    client: Any = None
    settings: Any = None
    persona: Any = None
    send_reply: Callable | None = None

    # Enforcement + sessions
    lock_store: Any = None
    sessions: Any = None
    enforcement: Any = None

    # Persistence
    save_config: Callable = _noop_save


@dataclass(frozen=True)
class CommandGates:
    user_is_admin: Callable[[Any], bool] = _default_false
