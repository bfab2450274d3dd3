from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from adapters.base import PlatformEvent
from controller.triggers import select_trigger_reply
from misc.botlog import emit_log
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates


@dataclass(slots=True)
class CommandContext:
    event: PlatformEvent
    command: str
    args: list[str]
    deps: CommandDeps
    is_admin: bool = False

    @property
    def conversation_id(self) -> str:
        return self.event.conversation_id

    @property
    def sender_id(self) -> str:
        return self.event.sender_id

    @property
    def prefix(self) -> str:
        return self.deps.settings.prefix

    async def send(self, text: str) -> None:
        await self.deps.send_reply(self.conversation_id, self.sender_id, text)


CommandHandler = Callable[[CommandContext], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class RegisteredCommand:
    name: str
    handler: CommandHandler
    admin_only: bool = True


@dataclass(slots=True)
class ParsedCommand:
    name: str
    args: list[str] = field(default_factory=list)


def parse_command(body: str, prefix: str) -> ParsedCommand | None:
    text = str(body or "")
    if not prefix or not text.startswith(prefix):
        return None
    tokens = text[len(prefix):].split()
    if not tokens:
        return ParsedCommand(name="")
    return ParsedCommand(name=tokens[0].lower(), args=tokens[1:])


class CommandRouter:
    """Admin-mention replies, then the trigger table, then prefixed commands."""

    def __init__(
        self,
        *,
        deps: CommandDeps,
        gates: CommandGates,
        choice: Callable[[Sequence[str]], str] = random.choice,
    ) -> None:
        self.deps = deps
        self.gates = gates
        self._choice = choice
        self._commands: dict[str, RegisteredCommand] = {}

    def command(self, name: str, *, admin_only: bool = True):
        def decorator(handler: CommandHandler) -> CommandHandler:
            key = str(name).strip().lower()
            if key in self._commands:
                raise ValueError(f"command {key!r} registered twice")
            self._commands[key] = RegisteredCommand(name=key, handler=handler, admin_only=admin_only)
            return handler

        return decorator

    def command_names(self) -> list[str]:
        return sorted(self._commands)

    async def _reply(self, event: PlatformEvent, text: str) -> None:
        try:
            await self.deps.send_reply(event.conversation_id, event.sender_id, text)
        except Exception as e:
            emit_log("Commands", f"reply failed conversation={event.conversation_id}: {e}", error=True)

    async def handle(self, event: PlatformEvent) -> None:
        settings = self.deps.settings
        persona = self.deps.persona
        body = event.body or ""

        if settings.admin_id and settings.admin_id in (event.mentions or {}):
            await self._reply(event, self._choice(persona.admin_mention_replies))
            return

        trigger_reply = select_trigger_reply(body, persona.triggers, self._choice)
        if trigger_reply is not None:
            await self._reply(event, trigger_reply)
            return

        parsed = parse_command(body, settings.prefix)
        if parsed is None:
            return

        is_admin = bool(self.gates.user_is_admin(event.sender_id))
        entry = self._commands.get(parsed.name)
        if entry is None:
            text = persona.unknown_command if is_admin else persona.refusal
            await self._reply(event, persona.render(text, prefix=settings.prefix))
            return
        if entry.admin_only and not is_admin:
            emit_log("Commands", f"command={entry.name} result=refused user={event.sender_id}")
            await self._reply(event, persona.refusal)
            return

        ctx = CommandContext(event=event, command=entry.name, args=list(parsed.args), deps=self.deps, is_admin=is_admin)
        try:
            await entry.handler(ctx)
            emit_log("Commands", f"command={entry.name} result=ok user={event.sender_id} conversation={event.conversation_id}")
        except Exception as e:
            emit_log(
                "Commands",
                f"command={entry.name} result=error user={event.sender_id} conversation={event.conversation_id} error={e}",
                error=True,
            )
            await self._reply(event, persona.apology)
