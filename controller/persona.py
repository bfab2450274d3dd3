from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from config.defaults import DEFAULT_BOT_NICKNAME
from controller.triggers import MATCH_CONTAINS
from controller.triggers import MATCH_EXACT
from controller.triggers import TriggerRule
from controller.triggers import parse_trigger_rules

NAME_PLACEHOLDER = "{name}"


@dataclass(slots=True)
class Persona:
    version: str = "persona_v1"
    nickname: str = DEFAULT_BOT_NICKNAME
    header_template: str = "[ {name} ]"
    signature: str = "- Group Warden"
    separator: str = "------------------------------"
    startup_message: str = "Group Warden is online. Type {prefix}help to see what I can do."
    welcome_message: str = "Thanks for adding me. Type {prefix}help to see what I can do."
    refusal: str = "Sorry, only the admin can use that command."
    unknown_command: str = "Unknown command. Type {prefix}help for the command list."
    apology: str = "Something went wrong while running that command. Please try again."
    title_scold: str = "The group name is locked. It has been changed back."
    title_remove_scold: str = "The group name is kept empty here. It has been cleared."
    nickname_scold: str = "Nicknames are locked in this group. Yours has been changed back."
    nickname_remove_scold: str = "Nicknames are kept empty here. Yours has been cleared."
    bot_nick_scold: str = "Please leave my nickname alone. It has been restored."
    photo_scold: str = "The group photo is locked. It has been changed back."
    target_failed: str = "The target session stopped because a message could not be sent."
    admin_mention_replies: list[str] = field(default_factory=lambda: ["The admin has been notified."])
    triggers: list[TriggerRule] = field(default_factory=list)
    help_text: str = "Commands:\n{prefix}help - show this list"

    def render(self, template: str, *, prefix: str) -> str:
        return str(template or "").replace("{prefix}", prefix)


def default_persona() -> Persona:
    return Persona(
        triggers=[
            TriggerRule(match=MATCH_CONTAINS, phrases=("good morning",), replies=("Good morning! Have a great day.",)),
            TriggerRule(match=MATCH_EXACT, phrases=("hi", "hello"), replies=("Hello there!",)),
        ],
    )


def _as_text(value: Any, fallback: str) -> str:
    text = str(value or "").strip("\n")
    return text if text.strip() else fallback


def _as_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        text = str(item or "").strip()
        if text:
            out.append(text)
    return out


def load_persona(path: str | Path | None) -> tuple[Persona, str | None]:
    """
    Returns (persona, warning_message). warning_message is None on clean load.
    """
    defaults = default_persona()
    if not path:
        return (defaults, "Persona path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Persona file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read persona from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid persona format in {p}; using built-in defaults.")

    header = _as_text(payload.get("header_template"), defaults.header_template)
    if NAME_PLACEHOLDER not in header:
        header = defaults.header_template

    persona = Persona(
        version=str(payload.get("version") or defaults.version),
        nickname=_as_text(payload.get("nickname"), defaults.nickname).strip(),
        header_template=header,
        signature=_as_text(payload.get("signature"), defaults.signature),
        separator=_as_text(payload.get("separator"), defaults.separator),
        startup_message=_as_text(payload.get("startup_message"), defaults.startup_message),
        welcome_message=_as_text(payload.get("welcome_message"), defaults.welcome_message),
        refusal=_as_text(payload.get("refusal"), defaults.refusal),
        unknown_command=_as_text(payload.get("unknown_command"), defaults.unknown_command),
        apology=_as_text(payload.get("apology"), defaults.apology),
        title_scold=_as_text(payload.get("title_scold"), defaults.title_scold),
        title_remove_scold=_as_text(payload.get("title_remove_scold"), defaults.title_remove_scold),
        nickname_scold=_as_text(payload.get("nickname_scold"), defaults.nickname_scold),
        nickname_remove_scold=_as_text(payload.get("nickname_remove_scold"), defaults.nickname_remove_scold),
        bot_nick_scold=_as_text(payload.get("bot_nick_scold"), defaults.bot_nick_scold),
        photo_scold=_as_text(payload.get("photo_scold"), defaults.photo_scold),
        target_failed=_as_text(payload.get("target_failed"), defaults.target_failed),
        admin_mention_replies=_as_list(payload.get("admin_mention_replies")) or defaults.admin_mention_replies,
        triggers=parse_trigger_rules(payload.get("triggers")) if "triggers" in payload else defaults.triggers,
        help_text=_as_text(payload.get("help_text"), defaults.help_text),
    )
    return (persona, None)
