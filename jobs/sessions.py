from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable

from config.defaults import TARGET_FILE_TEMPLATE
from config.defaults import TARGET_INTERVAL_SECONDS
from misc.botlog import emit_log

SendFn = Callable[[str, str], Awaitable[None]]
FailureFn = Callable[["TargetSession", Exception], Awaitable[None]]
SleepFn = Callable[[float], Awaitable[None]]


class SessionKind(str, Enum):
    FIGHT = "fight"
    TARGET = "target"


class CatalogueError(Exception):
    pass


class CatalogueNotFound(CatalogueError):
    pass


class CatalogueEmpty(CatalogueError):
    pass


def catalogue_path(directory: str | Path, file_number: str) -> Path:
    return Path(directory) / TARGET_FILE_TEMPLATE.format(number=str(file_number).strip())


def load_target_catalogue(directory: str | Path, file_number: str) -> list[str]:
    number = str(file_number or "").strip()
    if not number or any(sep in number for sep in ("/", "\\")) or number in (".", ".."):
        raise CatalogueNotFound(f"invalid file number {file_number!r}")
    path = catalogue_path(directory, number)
    if not path.is_file():
        raise CatalogueNotFound(f"{path.name} not found")
    lines = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        raise CatalogueEmpty(f"{path.name} has no messages")
    return lines


@dataclass(slots=True)
class TargetSession:
    conversation_id: str
    target_label: str
    message_cycle: list[str]
    started_by: str = ""
    cursor: int = 0
    active: bool = True
    task: asyncio.Task | None = field(default=None, repr=False)

    def next_message(self) -> str:
        text = f"{self.target_label} {self.message_cycle[self.cursor]}"
        self.cursor = (self.cursor + 1) % len(self.message_cycle)
        return text

    def cancel(self) -> None:
        self.active = False
        task = self.task
        if task is not None and not task.done():
            task.cancel()


class TimedSessionManager:
    """Fight flags and Target message loops, at most one of each per conversation."""

    def __init__(
        self,
        *,
        send: SendFn,
        catalogue_dir: str | Path = ".",
        interval_seconds: float = TARGET_INTERVAL_SECONDS,
        on_failure: FailureFn | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._send = send
        self.catalogue_dir = Path(catalogue_dir)
        self.interval_seconds = max(0.0, float(interval_seconds))
        self._on_failure = on_failure
        self._sleep = sleep
        self._targets: dict[str, TargetSession] = {}
        self._fights: set[str] = set()

    def is_fight_active(self, conversation_id: str) -> bool:
        return str(conversation_id) in self._fights

    def target(self, conversation_id: str) -> TargetSession | None:
        return self._targets.get(str(conversation_id))

    def start_fight(self, conversation_id: str) -> bool:
        cid = str(conversation_id)
        if cid in self._fights:
            return False
        self._fights.add(cid)
        emit_log("Sessions", f"action=fight_on conversation={cid}")
        return True

    def stop_fight(self, conversation_id: str) -> bool:
        cid = str(conversation_id)
        if cid not in self._fights:
            return False
        self._fights.discard(cid)
        emit_log("Sessions", f"action=fight_off conversation={cid}")
        return True

    async def start_target(
        self,
        conversation_id: str,
        file_number: str,
        target_label: str,
        *,
        started_by: str = "",
    ) -> bool:
        """Arm a repeating Target loop; returns whether an earlier one was replaced.

        Raises CatalogueNotFound / CatalogueEmpty before touching any running session.
        """
        cid = str(conversation_id)
        cycle = await asyncio.to_thread(load_target_catalogue, self.catalogue_dir, file_number)
        replaced = self.stop_target(cid)
        session = TargetSession(
            conversation_id=cid,
            target_label=str(target_label).strip(),
            message_cycle=cycle,
            started_by=str(started_by or ""),
        )
        self._targets[cid] = session
        session.task = asyncio.create_task(self._run_target(session))
        emit_log(
            "Sessions",
            f"action=target_on conversation={cid} file={file_number} lines={len(cycle)} replaced={replaced}",
        )
        return replaced

    def stop_target(self, conversation_id: str) -> bool:
        cid = str(conversation_id)
        session = self._targets.get(cid)
        if session is None:
            return False
        session.cancel()
        self.remove(cid, session)
        emit_log("Sessions", f"action=target_off conversation={cid}")
        return True

    def remove(self, conversation_id: str, session: TargetSession | None = None) -> None:
        cid = str(conversation_id)
        current = self._targets.get(cid)
        if current is None:
            return
        if session is not None and current is not session:
            return
        del self._targets[cid]

    def stop(self, conversation_id: str) -> SessionKind | None:
        if self.stop_fight(conversation_id):
            return SessionKind.FIGHT
        if self.stop_target(conversation_id):
            return SessionKind.TARGET
        return None

    def stop_all(self) -> None:
        for cid in list(self._targets):
            self.stop_target(cid)
        self._fights.clear()

    async def _run_target(self, session: TargetSession) -> None:
        cid = session.conversation_id
        while True:
            await self._sleep(self.interval_seconds)
            if not session.active or self._targets.get(cid) is not session:
                return
            text = session.next_message()
            try:
                await self._send(cid, text)
            except Exception as e:
                session.active = False
                self.remove(cid, session)
                emit_log("Sessions", f"action=target_tick result=error conversation={cid} error={e}", error=True)
                if self._on_failure is not None:
                    try:
                        await self._on_failure(session, e)
                    except Exception as cb_err:
                        emit_log("Sessions", f"failure callback error conversation={cid}: {cb_err}", error=True)
                return
