from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from misc.botlog import emit_log


async def credential_persistence_loop(
    *,
    save: Callable[[], Awaitable[None]],
    interval_seconds: int = 600,
) -> None:
    while True:
        await asyncio.sleep(max(1, int(interval_seconds)))
        try:
            await save()
        except Exception as e:
            emit_log("Persist", f"loop error: {e}", error=True)
