from __future__ import annotations

import unittest

from adapters.base import PlatformError
from controller.formatting import compose_message
from controller.formatting import format_message
from controller.persona import Persona
from tests.fake_platform import FakePlatformClient


class FormatMessageTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.persona = Persona(header_template=">> {name} <<", signature="-- W", separator="~~~")

    def test_compose_places_mention_on_header_name(self):
        message = compose_message("Rin", "u2", "Hello", self.persona)

        self.assertEqual(message.body, ">> Rin <<\n\nHello\n\n-- W\n~~~")
        self.assertEqual(len(message.mentions), 1)
        mention = message.mentions[0]
        self.assertEqual((mention.tag, mention.id, mention.from_index), ("Rin", "u2", 3))
        self.assertEqual(message.body[mention.from_index:mention.from_index + len(mention.tag)], "Rin")

    async def test_display_name_comes_from_platform(self):
        client = FakePlatformClient(names={"u2": "Rin"})
        message = await format_message(client, "u2", "Hi", self.persona)
        self.assertTrue(message.body.startswith(">> Rin <<"))

    async def test_lookup_failure_falls_back_to_generic_label(self):
        client = FakePlatformClient()
        client.user_lookup_error = PlatformError("down")

        message = await format_message(client, "u2", "Hi", self.persona)

        self.assertTrue(message.body.startswith(">> User <<"))
        self.assertEqual(message.mentions[0].id, "u2")

    async def test_unknown_user_falls_back_to_generic_label(self):
        message = await format_message(FakePlatformClient(), "u9", "Hi", self.persona)
        self.assertEqual(message.mentions[0].tag, "User")


if __name__ == "__main__":
    unittest.main()
