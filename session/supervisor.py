from __future__ import annotations

import asyncio
import contextlib
from dataclasses import replace
from pathlib import Path
from typing import Awaitable, Callable

from adapters.base import EventCallback
from adapters.base import PlatformClient
from config.defaults import LISTENER_RETRY_SECONDS
from config.defaults import LOGIN_RETRY_SECONDS
from config.defaults import RECONNECT_CEILING
from config.defaults import SAVE_INTERVAL_SECONDS
from config.defaults import STARTUP_PAUSE_SECONDS
from config.defaults import STARTUP_SETTLE_SECONDS
from config.defaults import THREAD_LIST_LIMIT
from controller.persona import Persona
from jobs.persistence import credential_persistence_loop
from misc.botlog import emit_log
from misc.runtime_deps import BotSettings
from session.membership import JoinedConversations
from session.state_machine import ReconnectState
from session.state_machine import SessionAction
from session.state_machine import SessionEvent
from session.state_machine import SessionState
from session.state_machine import next_state
from storage.config_store import save_config

SleepFn = Callable[[float], Awaitable[None]]


class SessionSupervisor:
    """Owns the login/listen lifecycle of the single platform session.

    Every transition goes through ``session.state_machine.next_state``; this
    class only performs the action it returns.
    """

    def __init__(
        self,
        *,
        client: PlatformClient,
        settings: BotSettings,
        persona: Persona,
        joined: JoinedConversations,
        dispatch: EventCallback,
        config_path: str | Path,
        save_interval_seconds: int = SAVE_INTERVAL_SECONDS,
        login_retry_seconds: float = LOGIN_RETRY_SECONDS,
        listener_retry_seconds: float = LISTENER_RETRY_SECONDS,
        settle_seconds: float = STARTUP_SETTLE_SECONDS,
        pause_seconds: float = STARTUP_PAUSE_SECONDS,
        ceiling: int = RECONNECT_CEILING,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.client = client
        self.settings = settings
        self.persona = persona
        self.joined = joined
        self.dispatch = dispatch
        self.config_path = Path(config_path)
        self.save_interval_seconds = int(save_interval_seconds)
        self.login_retry_seconds = float(login_retry_seconds)
        self.listener_retry_seconds = float(listener_retry_seconds)
        self.settle_seconds = float(settle_seconds)
        self.pause_seconds = float(pause_seconds)
        self.ceiling = int(ceiling)
        self._sleep = sleep

        self.state = SessionState.LOGGED_OUT
        self.reconnect = ReconnectState()

        self._start_task: asyncio.Task | None = None
        self._retry_task: asyncio.Task | None = None
        self._listen_task: asyncio.Task | None = None
        self._persist_task: asyncio.Task | None = None

    # ----- status -----
    @property
    def is_running(self) -> bool:
        return self.state in (SessionState.LISTENING, SessionState.RECONNECTING)

    def status_text(self) -> str:
        if self.state == SessionState.LISTENING:
            return "Bot is running."
        if self.state == SessionState.RECONNECTING:
            return f"Bot is reconnecting (attempt {self.reconnect.attempt_count})."
        return "Bot is not started."

    # ----- entry points -----
    def configure(self, credentials: list[dict], *, prefix: str, admin_id: str) -> asyncio.Task:
        """Record prefix/admin, then (re)start the session in the background."""
        self.settings.prefix = str(prefix or "").strip() or self.settings.prefix
        self.settings.admin_id = str(admin_id or "").strip()
        emit_log("Session", f"configured prefix={self.settings.prefix} admin={self.settings.admin_id}")
        return self.launch(credentials)

    def launch(self, credentials: list[dict]) -> asyncio.Task:
        _cancel(self._retry_task)
        _cancel(self._start_task)
        self._start_task = asyncio.create_task(self.start(credentials))
        return self._start_task

    async def start(self, credentials: list[dict]) -> bool:
        self.reconnect = replace(self.reconnect, last_credentials=tuple(dict(c) for c in credentials))
        emit_log("Session", "logging in")
        try:
            await self.client.authenticate([dict(c) for c in credentials])
        except Exception as e:
            emit_log("Session", f"login failed: {e}", error=True)
            await self._handle(SessionEvent.LOGIN_FAILED)
            return False

        emit_log("Session", f"logged in as {self.client.current_user_id() or 'unknown'}")
        await self._handle(SessionEvent.LOGIN_SUCCEEDED)
        return True

    async def shutdown(self) -> None:
        tasks = [self._start_task, self._retry_task, self._listen_task, self._persist_task]
        current = asyncio.current_task()
        for task in tasks:
            if task is not None and task is not current:
                _cancel(task)
        for task in tasks:
            if task is not None and task is not current:
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
        try:
            await self.client.stop_listening()
        except Exception as e:
            emit_log("Session", f"stop listening failed during shutdown: {e}", error=True)
        self.state = SessionState.LOGGED_OUT

    # ----- persistence -----
    async def save_config(self) -> None:
        cookies = self.client.get_app_state() or [dict(c) for c in self.reconnect.last_credentials]
        await save_config(self.config_path, bot_nickname=self.settings.bot_nickname, cookies=cookies)
        emit_log("Persist", f"saved config to {self.config_path}")

    def _arm_persistence(self) -> None:
        _cancel(self._persist_task)
        self._persist_task = asyncio.create_task(
            credential_persistence_loop(save=self.save_config, interval_seconds=self.save_interval_seconds)
        )

    # ----- transitions -----
    async def _handle(self, event: SessionEvent) -> None:
        transition = next_state(
            self.state,
            event,
            self.reconnect,
            self.client.has_session(),
            self.ceiling,
        )
        self.state = transition.state
        self.reconnect = transition.reconnect
        emit_log(
            "Session",
            f"event={event.value} state={self.state.value} action={transition.action.value} "
            f"attempts={self.reconnect.attempt_count}",
        )

        action = transition.action
        if action == SessionAction.START_LISTENING:
            self._arm_persistence()
            await self._boot_and_listen()
        elif action == SessionAction.RETRY_LOGIN:
            self._retry_task = asyncio.create_task(self._retry_login_after(self.login_retry_seconds))
        elif action == SessionAction.WAIT_AND_RESUME:
            self._retry_task = asyncio.create_task(self._resume_after(self.listener_retry_seconds))
        elif action == SessionAction.RESUME_LISTENING:
            self._start_listener()
        elif action == SessionAction.FULL_RELOGIN:
            self.launch(list(self.reconnect.last_credentials))

    async def _retry_login_after(self, delay: float) -> None:
        await self._sleep(delay)
        emit_log("Session", "retrying login")
        await self.start(list(self.reconnect.last_credentials))

    async def _resume_after(self, delay: float) -> None:
        await self._sleep(delay)
        await self._handle(SessionEvent.RETRY_ELAPSED)

    # ----- startup -----
    async def refresh_joined(self) -> list[str]:
        try:
            ids = await self.client.get_thread_list(THREAD_LIST_LIMIT)
        except Exception as e:
            emit_log("Session", f"thread list failed: {e}", error=True)
            return self.joined.snapshot()
        self.joined.replace(ids)
        emit_log("Session", f"joined conversations={len(self.joined)}")
        return self.joined.snapshot()

    async def _boot_and_listen(self) -> None:
        await self.refresh_joined()
        await self._sleep(self.settle_seconds)
        await self._assert_persona_and_announce()
        self._start_listener()

    async def _assert_persona_and_announce(self) -> None:
        bot_id = self.client.current_user_id()
        nickname = self.settings.bot_nickname
        announcement = self.persona.render(self.persona.startup_message, prefix=self.settings.prefix)

        for index, cid in enumerate(self.joined.snapshot()):
            if index:
                await self._sleep(self.pause_seconds)
            try:
                info = await self.client.get_thread_info(cid)
                if info.nicknames.get(bot_id, "") != nickname:
                    await self.client.change_nickname(nickname, cid, bot_id)
                    emit_log("Session", f"persona nickname set conversation={cid}")
            except Exception as e:
                emit_log("Session", f"persona nickname failed conversation={cid}: {e}", error=True)
            try:
                await self.client.send_message(announcement, cid)
            except Exception as e:
                emit_log("Session", f"startup announcement failed conversation={cid}: {e}", error=True)

    # ----- listening -----
    def _start_listener(self) -> None:
        old = self._listen_task
        if old is not None and old is not asyncio.current_task():
            _cancel(old)
        self._listen_task = asyncio.create_task(self._listen())

    async def _listen(self) -> None:
        emit_log("Session", "listening for events")
        try:
            await self.client.listen(self.dispatch)
            emit_log("Session", "listener stopped", error=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            emit_log("Session", f"listener failed: {e}", error=True)

        try:
            await self.client.stop_listening()
        except Exception as e:
            emit_log("Session", f"stop listening failed: {e}", error=True)
        await self._handle(SessionEvent.LISTENER_FAILED)


def _cancel(task: asyncio.Task | None) -> None:
    if task is not None and not task.done() and task is not asyncio.current_task():
        task.cancel()
