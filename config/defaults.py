from __future__ import annotations

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PREFIX = "/"
DEFAULT_BOT_NICKNAME = "Group Warden"
DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_PERSONA_FILENAME = "persona.yml"

# Session supervisor timings (seconds)
LOGIN_RETRY_SECONDS = 10.0
LISTENER_RETRY_SECONDS = 5.0
RECONNECT_CEILING = 5
STARTUP_SETTLE_SECONDS = 5.0
STARTUP_PAUSE_SECONDS = 0.5
SAVE_INTERVAL_SECONDS = 600

# Timed sessions
TARGET_INTERVAL_SECONDS = 10.0
TARGET_FILE_TEMPLATE = "np{number}.txt"

# Platform lookups
THREAD_LIST_LIMIT = 100
GENERIC_SENDER_NAME = "User"
