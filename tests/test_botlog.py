from __future__ import annotations

import unittest
from unittest import mock

from misc import botlog


class BotLogTests(unittest.TestCase):
    def test_format_log_line(self):
        self.assertEqual(
            botlog.format_log_line("Session", "logged in", ts="2026-01-01T00:00:00+00:00"),
            "[2026-01-01T00:00:00+00:00] [Session] INFO: logged in",
        )
        self.assertIn("] ERROR: boom", botlog.format_log_line("Session", "boom", error=True))

    def test_sinks_receive_lines_and_failures_are_contained(self):
        seen: list[str] = []

        def broken(line):
            raise RuntimeError("sink down")

        botlog.add_sink(broken)
        botlog.add_sink(seen.append)
        try:
            with mock.patch("builtins.print"):
                line = botlog.emit_log("Test", "hello")
        finally:
            botlog.remove_sink(broken)
            botlog.remove_sink(seen.append)

        self.assertEqual(seen, [line])
        self.assertTrue(line.endswith("[Test] INFO: hello"))

    def test_remove_unknown_sink_is_noop(self):
        botlog.remove_sink(lambda line: None)


if __name__ == "__main__":
    unittest.main()
