from __future__ import annotations

import asyncio
import importlib
import tempfile
from pathlib import Path


class _DummyClient:
    """Minimal platform stand-in: records outbound calls, never touches a network."""

    def __init__(self):
        self.sent: list[tuple[object, str]] = []
        self.titles: list[tuple[str, str]] = []

    async def authenticate(self, credentials):
        return None

    def has_session(self):
        return True

    def current_user_id(self):
        return "bot"

    def get_app_state(self):
        return [{"key": "token", "value": "smoke"}]

    async def send_message(self, message, conversation_id):
        self.sent.append((message, conversation_id))

    async def change_nickname(self, name, conversation_id, user_id):
        return None

    async def set_title(self, name, conversation_id):
        self.titles.append((name, conversation_id))

    async def set_image(self, image_ref, conversation_id):
        return None

    async def get_thread_list(self, limit=100):
        return ["g1"]

    async def get_thread_info(self, conversation_id):
        from adapters.base import ThreadInfo

        return ThreadInfo(conversation_id=conversation_id, participant_ids=["bot", "u1"])

    async def get_user_info(self, user_ids):
        return {uid: f"name-{uid}" for uid in user_ids}

    async def listen(self, callback):
        await asyncio.Event().wait()

    async def stop_listening(self):
        return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


async def _run() -> None:
    from adapters.base import EventKind
    from adapters.base import PlatformEvent
    from controller.persona import default_persona
    from misc.runtime_deps import BotSettings
    from misc.runtime_wiring import wire_bot_runtime

    client = _DummyClient()
    with tempfile.TemporaryDirectory() as tmp:
        runtime = wire_bot_runtime(
            client,
            settings=BotSettings(prefix="/", admin_id="admin"),
            persona=default_persona(),
            config_path=Path(tmp) / "config.json",
            catalogue_dir=tmp,
        )

        expected_commands = {
            "group",
            "gclock",
            "gcremove",
            "nickname",
            "nicklock",
            "nickremoveall",
            "nickremoveoff",
            "photolock",
            "botnick",
            "tid",
            "uid",
            "fyt",
            "stop",
            "target",
            "status",
            "help",
        }
        missing = sorted(expected_commands - set(runtime.router.command_names()))
        if missing:
            raise RuntimeError(f"Missing expected commands: {missing}")

        await runtime.dispatcher.dispatch(
            PlatformEvent(kind=EventKind.MESSAGE, conversation_id="g1", sender_id="admin", body="/gclock Family")
        )
        if client.titles != [("Family", "g1")]:
            raise RuntimeError(f"gclock did not set the title: {client.titles}")
        if not client.sent:
            raise RuntimeError("gclock did not reply")

        await runtime.supervisor.save_config()
        if not (Path(tmp) / "config.json").exists():
            raise RuntimeError("config file was not written")


def _main() -> int:
    if not _try_import_or_skip("yaml", "PyYAML"):
        return 0
    asyncio.run(_run())
    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
