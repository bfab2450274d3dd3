import os
import asyncio

import uvicorn

from adapters.discord_client import DiscordPlatformClient
from config.defaults import DEFAULT_CONFIG_PATH
from config.defaults import DEFAULT_HOST
from config.defaults import DEFAULT_PERSONA_FILENAME
from config.defaults import DEFAULT_PORT
from config.defaults import DEFAULT_PREFIX
from config.defaults import SAVE_INTERVAL_SECONDS
from config.defaults import TARGET_INTERVAL_SECONDS
from controller.persona import load_persona
from dashboard.api import create_app
from dashboard.broadcaster import EventBroadcaster
from misc.botlog import add_sink
from misc.botlog import emit_log
from misc.runtime_deps import BotSettings
from misc.runtime_wiring import wire_bot_runtime
from storage.config_store import load_saved_config

# =========================
# Config
# =========================

PORT = int(os.getenv("PORT", str(DEFAULT_PORT)).strip() or DEFAULT_PORT)
HOST = os.getenv("WARDEN_HOST", DEFAULT_HOST).strip() or DEFAULT_HOST
PREFIX = os.getenv("WARDEN_PREFIX", DEFAULT_PREFIX).strip() or DEFAULT_PREFIX
ADMIN_ID = os.getenv("WARDEN_ADMIN_ID", "").strip()
CONFIG_PATH = os.getenv("WARDEN_CONFIG_PATH", DEFAULT_CONFIG_PATH).strip() or DEFAULT_CONFIG_PATH
_RAW_PERSONA_PATH = os.getenv("WARDEN_PERSONA_PATH")
PERSONA_PATH = os.getenv(
    "WARDEN_PERSONA_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "config", DEFAULT_PERSONA_FILENAME),
)
TARGET_DIR = os.getenv("WARDEN_TARGET_DIR", os.getcwd()).strip() or os.getcwd()
try:
    TARGET_INTERVAL_SECONDS_CFG = float(
        os.getenv("WARDEN_TARGET_INTERVAL_SECONDS", str(TARGET_INTERVAL_SECONDS)).strip()
    )
except ValueError:
    print(f"[CFG] invalid WARDEN_TARGET_INTERVAL_SECONDS; defaulting to {TARGET_INTERVAL_SECONDS}")
    TARGET_INTERVAL_SECONDS_CFG = TARGET_INTERVAL_SECONDS
try:
    SAVE_INTERVAL_SECONDS_CFG = int(os.getenv("WARDEN_SAVE_INTERVAL_SECONDS", str(SAVE_INTERVAL_SECONDS)).strip())
except ValueError:
    print(f"[CFG] invalid WARDEN_SAVE_INTERVAL_SECONDS; defaulting to {SAVE_INTERVAL_SECONDS}")
    SAVE_INTERVAL_SECONDS_CFG = SAVE_INTERVAL_SECONDS

print(f"[CFG] host={HOST} port={PORT} prefix={PREFIX} admin_set={bool(ADMIN_ID)}")
print(
    f"[CFG] config_path={CONFIG_PATH} target_dir={TARGET_DIR} "
    f"target_interval_s={TARGET_INTERVAL_SECONDS_CFG} save_interval_s={SAVE_INTERVAL_SECONDS_CFG}"
)

PERSONA, PERSONA_WARNING = load_persona(PERSONA_PATH)
PERSONA_SOURCE = "env_override" if _RAW_PERSONA_PATH is not None else "file"
if PERSONA_WARNING:
    PERSONA_SOURCE = "fallback"
print(f"[CFG] persona={PERSONA.version} source={PERSONA_SOURCE} path={PERSONA_PATH}")
if PERSONA_WARNING:
    print(f"[CFG] {PERSONA_WARNING}")

SAVED_CONFIG, SAVED_CONFIG_WARNING = load_saved_config(CONFIG_PATH)
if SAVED_CONFIG_WARNING:
    print(f"[CFG] {SAVED_CONFIG_WARNING}")


async def main() -> None:
    broadcaster = EventBroadcaster()
    add_sink(broadcaster.log_sink)

    settings = BotSettings(
        prefix=PREFIX,
        admin_id=ADMIN_ID,
        bot_nickname=(SAVED_CONFIG.bot_nickname if SAVED_CONFIG and SAVED_CONFIG.bot_nickname else PERSONA.nickname),
    )
    runtime = wire_bot_runtime(
        DiscordPlatformClient(),
        settings=settings,
        persona=PERSONA,
        config_path=CONFIG_PATH,
        catalogue_dir=TARGET_DIR,
        target_interval_seconds=TARGET_INTERVAL_SECONDS_CFG,
        save_interval_seconds=SAVE_INTERVAL_SECONDS_CFG,
    )
    runtime.joined.subscribe(broadcaster.groups_sink)

    if SAVED_CONFIG and SAVED_CONFIG.cookies:
        if ADMIN_ID:
            emit_log("Boot", f"resuming saved session from {CONFIG_PATH}")
            runtime.supervisor.launch(SAVED_CONFIG.cookies)
        else:
            emit_log("Boot", "saved session found but WARDEN_ADMIN_ID is unset; waiting for dashboard configuration")
    else:
        emit_log("Boot", "no saved session; waiting for dashboard configuration")

    app = create_app(runtime.supervisor, broadcaster)
    server = uvicorn.Server(uvicorn.Config(app, host=HOST, port=PORT, log_level="info"))
    emit_log("Boot", f"dashboard listening on http://{HOST}:{PORT}")
    try:
        await server.serve()
    finally:
        runtime.sessions.stop_all()
        await runtime.supervisor.shutdown()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
