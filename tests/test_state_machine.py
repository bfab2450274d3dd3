from __future__ import annotations

import unittest

from session.state_machine import ReconnectState
from session.state_machine import SessionAction
from session.state_machine import SessionEvent
from session.state_machine import SessionState
from session.state_machine import next_state


class ReconnectStateMachineTests(unittest.TestCase):
    def test_login_success_resets_counter_from_any_state(self):
        for state in SessionState:
            t = next_state(state, SessionEvent.LOGIN_SUCCEEDED, ReconnectState(attempt_count=4), False, 5)
            self.assertEqual(t.state, SessionState.LISTENING)
            self.assertEqual(t.reconnect.attempt_count, 0)
            self.assertEqual(t.action, SessionAction.START_LISTENING)

    def test_login_failure_schedules_retry_without_touching_counter(self):
        t = next_state(SessionState.LISTENING, SessionEvent.LOGIN_FAILED, ReconnectState(attempt_count=2), False, 5)
        self.assertEqual(t.state, SessionState.LOGGED_OUT)
        self.assertEqual(t.action, SessionAction.RETRY_LOGIN)
        self.assertEqual(t.reconnect.attempt_count, 2)

    def test_listener_failure_waits_then_resumes_until_ceiling(self):
        t = next_state(SessionState.LISTENING, SessionEvent.LISTENER_FAILED, ReconnectState(), True, 5)
        self.assertEqual(t.state, SessionState.RECONNECTING)
        self.assertEqual(t.action, SessionAction.WAIT_AND_RESUME)
        self.assertEqual(t.reconnect.attempt_count, 1)

        t = next_state(t.state, SessionEvent.RETRY_ELAPSED, t.reconnect, True, 5)
        self.assertEqual(t.state, SessionState.LISTENING)
        self.assertEqual(t.action, SessionAction.RESUME_LISTENING)
        self.assertEqual(t.reconnect.attempt_count, 1)

    def test_retry_without_session_forces_full_relogin(self):
        t = next_state(SessionState.RECONNECTING, SessionEvent.RETRY_ELAPSED, ReconnectState(attempt_count=1), False, 5)
        self.assertEqual(t.state, SessionState.LOGGED_OUT)
        self.assertEqual(t.action, SessionAction.FULL_RELOGIN)

    def test_counter_never_passes_ceiling_without_full_relogin(self):
        state = SessionState.LISTENING
        reconnect = ReconnectState(last_credentials=({"key": "token", "value": "x"},))
        actions = []
        for _ in range(6):
            t = next_state(state, SessionEvent.LISTENER_FAILED, reconnect, True, 5)
            actions.append(t.action)
            state, reconnect = t.state, t.reconnect
            if t.action == SessionAction.WAIT_AND_RESUME:
                t = next_state(state, SessionEvent.RETRY_ELAPSED, reconnect, True, 5)
                state, reconnect = t.state, t.reconnect

        self.assertEqual(actions[:5], [SessionAction.WAIT_AND_RESUME] * 5)
        self.assertEqual(actions[5], SessionAction.FULL_RELOGIN)
        self.assertEqual(state, SessionState.LOGGED_OUT)
        self.assertEqual(reconnect.attempt_count, 0)
        self.assertEqual(reconnect.last_credentials, ({"key": "token", "value": "x"},))

        t = next_state(state, SessionEvent.LOGIN_SUCCEEDED, reconnect, True, 5)
        self.assertEqual(t.reconnect.attempt_count, 0)

    def test_unrelated_events_are_ignored(self):
        t = next_state(SessionState.LOGGED_OUT, SessionEvent.LISTENER_FAILED, ReconnectState(), False, 5)
        self.assertEqual((t.state, t.action), (SessionState.LOGGED_OUT, SessionAction.NONE))
        self.assertEqual(t.reconnect.attempt_count, 0)

        t = next_state(SessionState.LISTENING, SessionEvent.RETRY_ELAPSED, ReconnectState(), True, 5)
        self.assertEqual((t.state, t.action), (SessionState.LISTENING, SessionAction.NONE))


if __name__ == "__main__":
    unittest.main()
