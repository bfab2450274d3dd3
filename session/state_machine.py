from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from config.defaults import RECONNECT_CEILING


class SessionState(str, Enum):
    LOGGED_OUT = "logged_out"
    LISTENING = "listening"
    RECONNECTING = "reconnecting"


class SessionEvent(str, Enum):
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LISTENER_FAILED = "listener_failed"
    RETRY_ELAPSED = "retry_elapsed"


class SessionAction(str, Enum):
    START_LISTENING = "start_listening"
    RETRY_LOGIN = "retry_login"
    FULL_RELOGIN = "full_relogin"
    WAIT_AND_RESUME = "wait_and_resume"
    RESUME_LISTENING = "resume_listening"
    NONE = "none"


@dataclass(slots=True, frozen=True)
class ReconnectState:
    attempt_count: int = 0
    last_credentials: tuple = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class Transition:
    state: SessionState
    reconnect: ReconnectState
    action: SessionAction


def next_state(
    state: SessionState,
    event: SessionEvent,
    reconnect: ReconnectState,
    has_session: bool,
    ceiling: int = RECONNECT_CEILING,
) -> Transition:
    """Pure reconnect policy; the supervisor performs the returned action."""
    if event == SessionEvent.LOGIN_SUCCEEDED:
        return Transition(SessionState.LISTENING, replace(reconnect, attempt_count=0), SessionAction.START_LISTENING)

    if event == SessionEvent.LOGIN_FAILED:
        return Transition(SessionState.LOGGED_OUT, reconnect, SessionAction.RETRY_LOGIN)

    if event == SessionEvent.LISTENER_FAILED and state in (SessionState.LISTENING, SessionState.RECONNECTING):
        bumped = replace(reconnect, attempt_count=reconnect.attempt_count + 1)
        if bumped.attempt_count > int(ceiling):
            return Transition(SessionState.LOGGED_OUT, replace(bumped, attempt_count=0), SessionAction.FULL_RELOGIN)
        return Transition(SessionState.RECONNECTING, bumped, SessionAction.WAIT_AND_RESUME)

    if event == SessionEvent.RETRY_ELAPSED and state == SessionState.RECONNECTING:
        if has_session:
            return Transition(SessionState.LISTENING, reconnect, SessionAction.RESUME_LISTENING)
        return Transition(SessionState.LOGGED_OUT, reconnect, SessionAction.FULL_RELOGIN)

    return Transition(state, reconnect, SessionAction.NONE)
