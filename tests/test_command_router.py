from __future__ import annotations

import asyncio
import json
import tempfile
import unittest
from pathlib import Path

from adapters.base import EventKind
from adapters.base import PlatformError
from adapters.base import PlatformEvent
from adapters.base import ThreadInfo
from controller.persona import Persona
from controller.triggers import TriggerRule
from enforcement.store import LockKind
from misc.commands.router import parse_command
from misc.runtime_deps import BotSettings
from misc.runtime_wiring import wire_bot_runtime
from tests.fake_platform import FakePlatformClient


def _persona() -> Persona:
    return Persona(
        admin_mention_replies=["The admin will be with you shortly."],
        triggers=[
            TriggerRule(match="contains", phrases=("good morning",), replies=("Morning to you too.",)),
            TriggerRule(match="exact", phrases=("hi",), replies=("Hello!",)),
        ],
        help_text="Commands:\n{prefix}tid\n{prefix}uid",
    )


class ParseCommandTests(unittest.TestCase):
    def test_prefix_and_tokenizing(self):
        parsed = parse_command("/Group   on  My Family", "/")
        self.assertEqual(parsed.name, "group")
        self.assertEqual(parsed.args, ["on", "My", "Family"])
        self.assertIsNone(parse_command("group on", "/"))
        self.assertEqual(parse_command("/", "/").name, "")
        self.assertEqual(parse_command("!!tid", "!!").name, "tid")


class CommandRouterTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.client = FakePlatformClient(names={"admin": "Boss", "u2": "Rin"})
        self.client.app_state = [{"key": "token", "value": "abc"}]
        self.client.thread_info["g1"] = ThreadInfo(
            conversation_id="g1",
            name="Family",
            participant_ids=["admin", "u2", "bot"],
        )
        self.settings = BotSettings(prefix="/", admin_id="admin", bot_nickname="Warden")
        self.persona = _persona()
        self.runtime = wire_bot_runtime(
            self.client,
            settings=self.settings,
            persona=self.persona,
            config_path=self.dir / "config.json",
            catalogue_dir=self.dir,
            target_interval_seconds=3600,
        )
        self.store = self.runtime.lock_store

    async def asyncTearDown(self):
        self.runtime.sessions.stop_all()
        self._tmp.cleanup()

    async def _say(self, body: str, *, sender: str = "admin", mentions: dict | None = None) -> list[str]:
        before = len(self.client.sent)
        await self.runtime.router.handle(
            PlatformEvent(
                kind=EventKind.MESSAGE,
                conversation_id="g1",
                sender_id=sender,
                body=body,
                mentions=dict(mentions or {}),
            )
        )
        return self.client.sent_texts()[before:]

    async def test_admin_mention_short_circuits_command_parsing(self):
        replies = await self._say("/gclock Mine", sender="u2", mentions={"admin": "Boss"})

        self.assertEqual(len(replies), 1)
        self.assertIn("The admin will be with you shortly.", replies[0])
        self.assertEqual(self.client.titles, [])
        self.assertIsNone(self.store.get_lock("g1", LockKind.TITLE))

    async def test_triggers_match_in_table_order(self):
        self.assertIn("Morning to you too.", (await self._say("Good Morning all", sender="u2"))[0])
        self.assertIn("Hello!", (await self._say("  HI ", sender="u2"))[0])
        self.assertEqual(await self._say("hi there", sender="u2"), [])

    async def test_non_admin_gets_refusal_with_no_side_effects(self):
        for body in ("/gclock Mine", "/nickremoveall", "/target on 1 @x", "/fyt on", "/botnick Hacker"):
            replies = await self._say(body, sender="u2")
            self.assertEqual(len(replies), 1)
            self.assertIn(self.persona.refusal, replies[0])

        self.assertEqual(self.client.titles, [])
        self.assertEqual(self.client.nicknames, [])
        self.assertEqual(self.store.snapshot("g1")["title_lock"], None)
        self.assertFalse(self.runtime.sessions.is_fight_active("g1"))
        self.assertEqual(self.settings.bot_nickname, "Warden")

    async def test_unknown_command_depends_on_caller(self):
        admin_reply = await self._say("/dance")
        member_reply = await self._say("/dance", sender="u2")

        self.assertIn("Type /help", admin_reply[0])
        self.assertIn(self.persona.refusal, member_reply[0])

    async def test_public_commands(self):
        self.assertIn("Conversation ID: g1", (await self._say("/tid", sender="u2"))[0])
        self.assertIn("User ID: u2", (await self._say("/uid", sender="u2"))[0])
        self.assertIn("User ID: u7", (await self._say("/uid @x", sender="u2", mentions={"u7": "X"}))[0])
        self.assertIn("/tid\n/uid", (await self._say("/help", sender="u2"))[0])

    async def test_usage_replies_name_the_prefix(self):
        self.settings.prefix = "!"
        replies = await self._say("!group")
        self.assertIn("Usage: !group on <name> | !group off", replies[0])
        replies = await self._say("!target on 1")
        self.assertIn("Usage: !target on <fileNumber> <name>", replies[0])

    async def test_group_lock_and_unlock(self):
        await self._say("/group on My Family")
        self.assertEqual(self.store.get_lock("g1", LockKind.TITLE), "My Family")
        self.assertEqual(self.client.titles, [("My Family", "g1")])

        replies = await self._say("/group off")
        self.assertIn("Group name lock removed.", replies[0])
        self.assertIsNone(self.store.get_lock("g1", LockKind.TITLE))

    async def test_gcremove_then_gclock(self):
        await self._say("/gcremove")
        self.assertTrue(self.store.is_auto_remove("g1", LockKind.TITLE))
        self.assertEqual(self.client.titles, [("", "g1")])

        await self._say("/gclock Home")
        self.assertFalse(self.store.is_auto_remove("g1", LockKind.TITLE))
        self.assertEqual(self.store.get_lock("g1", LockKind.TITLE), "Home")

    async def test_nickname_on_skips_admin_and_nicklock_renames_everyone(self):
        await self._say("/nickname on Crew")
        self.assertEqual(self.client.nicknames, [("Crew", "g1", "u2"), ("Crew", "g1", "bot")])

        self.client.nicknames.clear()
        self.store.set_auto_remove("g1", LockKind.NICKNAME, True)
        await self._say("/nicklock Team")
        self.assertEqual([uid for _, _, uid in self.client.nicknames], ["admin", "u2", "bot"])
        self.assertEqual(self.store.get_lock("g1", LockKind.NICKNAME), "Team")
        self.assertFalse(self.store.is_auto_remove("g1", LockKind.NICKNAME))

    async def test_nickremoveall_and_off(self):
        self.store.set_lock("g1", LockKind.NICKNAME, "Crew")
        await self._say("/nickremoveall")

        self.assertIsNone(self.store.get_lock("g1", LockKind.NICKNAME))
        self.assertTrue(self.store.is_auto_remove("g1", LockKind.NICKNAME))
        self.assertEqual({name for name, _, _ in self.client.nicknames}, {""})

        await self._say("/nickremoveoff")
        self.assertFalse(self.store.is_auto_remove("g1", LockKind.NICKNAME))

    async def test_photolock_requires_a_photo(self):
        replies = await self._say("/photolock on")
        self.assertIn("Set a group photo first", replies[0])
        self.assertIsNone(self.store.get_lock("g1", LockKind.PHOTO))

        self.client.thread_info["g1"].image_src = "https://cdn.example/icon.png"
        await self._say("/photolock on")
        self.assertEqual(self.store.get_lock("g1", LockKind.PHOTO), "https://cdn.example/icon.png")

        await self._say("/photolock off")
        self.assertIsNone(self.store.get_lock("g1", LockKind.PHOTO))

    async def test_botnick_updates_persists_and_applies(self):
        replies = await self._say("/botnick Night Watch")

        self.assertEqual(self.settings.bot_nickname, "Night Watch")
        self.assertEqual(self.client.nicknames, [("Night Watch", "g1", "bot")])
        payload = json.loads((self.dir / "config.json").read_text(encoding="utf-8"))
        self.assertEqual(payload["botNickname"], "Night Watch")
        self.assertEqual(payload["cookies"], [{"key": "token", "value": "abc"}])
        self.assertIn("Night Watch", replies[0])

    async def test_target_and_stop_commands(self):
        (self.dir / "np1.txt").write_text("hi\nbye\n", encoding="utf-8")

        replies = await self._say("/target on 7 @rival")
        self.assertIn("np7.txt was not found", replies[0])

        replies = await self._say("/target on 1 @rival")
        self.assertIn("Target session started for @rival.", replies[0])
        replies = await self._say("/target on 1 @other")
        self.assertIn("previous target session was replaced", replies[0])

        replies = await self._say("/stop")
        self.assertIn("Target session stopped.", replies[0])
        replies = await self._say("/stop")
        self.assertIn("Nothing is running here.", replies[0])

    async def test_target_send_failure_replies_to_starter(self):
        (self.dir / "np1.txt").write_text("hi\nbye\n", encoding="utf-8")
        runtime = wire_bot_runtime(
            self.client,
            settings=self.settings,
            persona=self.persona,
            config_path=self.dir / "config.json",
            catalogue_dir=self.dir,
            target_interval_seconds=0,
        )
        self.client.plain_send_error = PlatformError("send blocked")
        before = len(self.client.sent)

        await runtime.router.handle(
            PlatformEvent(kind=EventKind.MESSAGE, conversation_id="g1", sender_id="admin", body="/target on 1 @rival")
        )
        task = runtime.sessions.target("g1").task
        await asyncio.wait_for(task, timeout=1)

        replies = self.client.sent_texts()[before:]
        self.assertIsNone(runtime.sessions.target("g1"))
        self.assertEqual(len(replies), 2)
        self.assertIn("Target session started for @rival.", replies[0])
        self.assertIn(self.persona.target_failed, replies[1])
        self.assertTrue(replies[1].startswith("[ Boss ]"))

    async def test_bare_prefix_is_an_unknown_command(self):
        replies = await self._say("/")
        self.assertIn("Unknown command. Type /help", replies[0])

        replies = await self._say("/  ", sender="u2")
        self.assertIn(self.persona.refusal, replies[0])

    async def test_fyt_and_status(self):
        await self._say("/fyt on")
        self.store.set_lock("g1", LockKind.TITLE, "Family")

        status = (await self._say("/status"))[0]
        self.assertIn("Group name lock: Family", status)
        self.assertIn("Fight mode: on", status)
        self.assertIn("Target session: off", status)

        replies = await self._say("/fyt off")
        self.assertIn("Fight mode is off.", replies[0])

    async def test_handler_failure_becomes_apology(self):
        self.client.title_error = PlatformError("missing permission")

        replies = await self._say("/gclock Home")

        self.assertEqual(len(replies), 1)
        self.assertIn(self.persona.apology, replies[0])

    async def test_reply_lookup_failure_uses_generic_name(self):
        self.client.user_lookup_error = PlatformError("lookup down")

        replies = await self._say("/tid", sender="u2")

        self.assertTrue(replies[0].startswith("[ User ]"))


if __name__ == "__main__":
    unittest.main()
