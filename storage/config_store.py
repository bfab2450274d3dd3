from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class SavedConfig:
    bot_nickname: str | None = None
    cookies: list[dict] = field(default_factory=list)


def parse_credentials(raw: str) -> tuple[list[dict] | None, str | None]:
    """Returns (credentials, error). Credentials must be a non-empty JSON array."""
    try:
        payload = json.loads(raw or "")
    except (TypeError, ValueError) as e:
        return (None, f"cookies are not valid JSON: {e}")
    if not isinstance(payload, list):
        return (None, "cookies must be a JSON array")
    if not payload:
        return (None, "cookies array is empty")
    entries = [entry for entry in payload if isinstance(entry, dict)]
    if not entries:
        return (None, "cookies array has no key/value entries")
    return (entries, None)


def load_saved_config(path: str | Path | None) -> tuple[SavedConfig | None, str | None]:
    """
    Returns (config, warning_message). config is None when there is nothing to resume.
    """
    if not path:
        return (None, None)
    p = Path(path)
    if not p.exists():
        return (None, None)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (None, f"Failed to read saved config from {p}: {exc}")
    if not isinstance(payload, dict):
        return (None, f"Invalid saved config format in {p}")

    nickname = str(payload.get("botNickname") or "").strip() or None
    cookies = payload.get("cookies")
    if not isinstance(cookies, list):
        cookies = []
    return (SavedConfig(bot_nickname=nickname, cookies=[c for c in cookies if isinstance(c, dict)]), None)


def save_config_sync(path: str | Path, *, bot_nickname: str, cookies: list[dict]) -> None:
    p = Path(path)
    if p.parent and not p.parent.exists():
        p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(
        json.dumps({"botNickname": bot_nickname, "cookies": cookies}, indent=2),
        encoding="utf-8",
    )
    os.replace(tmp, p)


async def save_config(path: str | Path, *, bot_nickname: str, cookies: list[dict]) -> None:
    await asyncio.to_thread(save_config_sync, path, bot_nickname=bot_nickname, cookies=cookies)
