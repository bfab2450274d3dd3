from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from adapters.base import PlatformClient
from config.defaults import SAVE_INTERVAL_SECONDS
from config.defaults import TARGET_INTERVAL_SECONDS
from controller.formatting import format_message
from controller.persona import Persona
from enforcement.service import EnforcementService
from enforcement.store import InMemoryLockStore
from enforcement.store import LockStore
from jobs.sessions import TargetSession
from jobs.sessions import TimedSessionManager
from misc.botlog import emit_log
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_info import register as register_info
from misc.commands.commands_locks import register as register_locks
from misc.commands.commands_sessions import register as register_sessions
from misc.commands.router import CommandRouter
from misc.events_runtime import EventDispatcher
from misc.runtime_deps import BotSettings
from misc.runtime_deps import RuntimeDeps
from session.membership import JoinedConversations
from session.supervisor import SessionSupervisor


@dataclass(frozen=True)
class BotRuntime:
    client: PlatformClient
    settings: BotSettings
    persona: Persona
    lock_store: LockStore
    joined: JoinedConversations
    sessions: TimedSessionManager
    router: CommandRouter
    dispatcher: EventDispatcher
    supervisor: SessionSupervisor


def wire_bot_runtime(
    client: PlatformClient,
    *,
    settings: BotSettings,
    persona: Persona,
    config_path: str | Path,
    catalogue_dir: str | Path,
    target_interval_seconds: float = TARGET_INTERVAL_SECONDS,
    save_interval_seconds: int = SAVE_INTERVAL_SECONDS,
    lock_store: LockStore | None = None,
    supervisor_options: dict | None = None,
) -> BotRuntime:
    store = lock_store if lock_store is not None else InMemoryLockStore()
    joined = JoinedConversations()

    async def send_reply(conversation_id: str, sender_id: str, text: str) -> None:
        message = await format_message(client, sender_id, text, persona)
        await client.send_message(message, conversation_id)

    async def send_plain(conversation_id: str, text: str) -> None:
        await client.send_message(text, conversation_id)

    async def on_target_failure(session: TargetSession, error: Exception) -> None:
        cid = session.conversation_id
        emit_log("Sessions", f"target session ended after send failure conversation={cid}: {error}")
        try:
            await send_reply(cid, session.started_by, persona.target_failed)
        except Exception as e:
            emit_log("Sessions", f"target failure reply failed conversation={cid}: {e}", error=True)

    sessions = TimedSessionManager(
        send=send_plain,
        catalogue_dir=catalogue_dir,
        interval_seconds=target_interval_seconds,
        on_failure=on_target_failure,
    )

    supervisor: SessionSupervisor | None = None

    async def save_config() -> None:
        if supervisor is not None:
            await supervisor.save_config()

    command_deps = CommandDeps(
        client=client,
        settings=settings,
        persona=persona,
        send_reply=send_reply,
        lock_store=store,
        sessions=sessions,
        enforcement=EnforcementService(client=client, store=store),
        save_config=save_config,
    )
    command_gates = CommandGates(user_is_admin=settings.is_admin)

    router = CommandRouter(deps=command_deps, gates=command_gates)
    register_info(router, deps=command_deps, gates=command_gates)
    register_locks(router, deps=command_deps, gates=command_gates)
    register_sessions(router, deps=command_deps, gates=command_gates)

    dispatcher = EventDispatcher(
        deps=RuntimeDeps(
            client=client,
            settings=settings,
            persona=persona,
            lock_store=store,
            joined=joined,
            send_reply=send_reply,
        ),
        on_message=router.handle,
    )

    supervisor = SessionSupervisor(
        client=client,
        settings=settings,
        persona=persona,
        joined=joined,
        dispatch=dispatcher.dispatch,
        config_path=config_path,
        save_interval_seconds=save_interval_seconds,
        **(supervisor_options or {}),
    )

    return BotRuntime(
        client=client,
        settings=settings,
        persona=persona,
        lock_store=store,
        joined=joined,
        sessions=sessions,
        router=router,
        dispatcher=dispatcher,
        supervisor=supervisor,
    )
