from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from controller.persona import default_persona
from controller.persona import load_persona
from controller.triggers import TriggerRule
from controller.triggers import parse_trigger_rules
from controller.triggers import select_trigger_reply

REPO_PERSONA = Path(__file__).resolve().parents[1] / "config" / "persona.yml"


class PersonaLoaderTests(unittest.TestCase):
    def test_bundled_persona_loads_cleanly(self):
        persona, warning = load_persona(REPO_PERSONA)

        self.assertIsNone(warning)
        self.assertEqual(persona.nickname, "Group Warden")
        self.assertIn("{name}", persona.header_template)
        self.assertGreaterEqual(len(persona.triggers), 3)
        self.assertGreaterEqual(len(persona.admin_mention_replies), 1)
        self.assertIn("/help", persona.render(persona.help_text, prefix="/"))

    def test_missing_file_uses_defaults(self):
        persona, warning = load_persona("/nonexistent/persona.yml")
        self.assertIn("not found", warning)
        self.assertEqual(persona, default_persona())

        persona, warning = load_persona(None)
        self.assertIsNotNone(warning)

    def test_invalid_yaml_and_bad_shape_use_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            broken = Path(tmp, "broken.yml")
            broken.write_text("nickname: [unclosed", encoding="utf-8")
            _, warning = load_persona(broken)
            self.assertIn("Failed to read persona", warning)

            listy = Path(tmp, "list.yml")
            listy.write_text("- a\n- b\n", encoding="utf-8")
            _, warning = load_persona(listy)
            self.assertIn("Invalid persona format", warning)

    def test_partial_file_keeps_defaults_for_missing_fields(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp, "persona.yml")
            path.write_text("nickname: Keeper\nheader_template: 'no placeholder'\n", encoding="utf-8")

            persona, warning = load_persona(path)

        self.assertIsNone(warning)
        self.assertEqual(persona.nickname, "Keeper")
        self.assertEqual(persona.header_template, default_persona().header_template)
        self.assertEqual(persona.refusal, default_persona().refusal)


class TriggerTableTests(unittest.TestCase):
    def test_first_matching_rule_wins(self):
        rules = [
            TriggerRule(match="contains", phrases=("morning",), replies=("first",)),
            TriggerRule(match="contains", phrases=("good morning",), replies=("second",)),
        ]
        self.assertEqual(select_trigger_reply("Good MORNING", rules), "first")
        self.assertIsNone(select_trigger_reply("evening", rules))

    def test_exact_rule_needs_whole_trimmed_body(self):
        rules = [TriggerRule(match="exact", phrases=("bot",), replies=("yes", "here"))]
        self.assertIn(select_trigger_reply("  Bot ", rules), ("yes", "here"))
        self.assertIsNone(select_trigger_reply("robot", rules))
        self.assertIsNone(select_trigger_reply("bot please", rules))

    def test_choice_is_injectable(self):
        rules = [TriggerRule(match="exact", phrases=("bot",), replies=("yes", "here"))]
        self.assertEqual(select_trigger_reply("bot", rules, choice=lambda pool: pool[-1]), "here")

    def test_malformed_rules_are_skipped(self):
        rules = parse_trigger_rules(
            [
                {"match": "contains", "phrases": ["Thanks"], "replies": ["np"]},
                {"match": "regex", "phrases": ["x"], "replies": ["y"]},
                {"match": "exact", "phrases": [], "replies": ["y"]},
                "not a mapping",
            ]
        )
        self.assertEqual(rules, [TriggerRule(match="contains", phrases=("thanks",), replies=("np",))])


if __name__ == "__main__":
    unittest.main()
