from __future__ import annotations

import json
from pathlib import Path

from fastapi import FastAPI, Form, HTTPException
from fastapi.responses import FileResponse, PlainTextResponse
from sse_starlette.sse import EventSourceResponse

from config.defaults import DEFAULT_PREFIX
from dashboard.broadcaster import EventBroadcaster
from misc.botlog import emit_log
from misc.botlog import format_log_line
from storage.config_store import parse_credentials

STATIC_DIR = Path(__file__).resolve().parent / "static"


def create_app(supervisor, broadcaster: EventBroadcaster, *, static_dir: str | Path = STATIC_DIR) -> FastAPI:
    app = FastAPI(title="groupwarden-dashboard", version="0.1.0")
    index_path = Path(static_dir) / "index.html"

    @app.get("/")
    async def index() -> FileResponse:
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="dashboard page missing")
        return FileResponse(index_path, media_type="text/html")

    @app.post("/configure", response_class=PlainTextResponse)
    async def configure(
        cookies: str = Form(default=""),
        prefix: str = Form(default=DEFAULT_PREFIX),
        adminID: str = Form(default=""),
    ) -> str:
        credentials, error = parse_credentials(cookies)
        if error is not None:
            emit_log("Dashboard", f"configure rejected: {error}", error=True)
            raise HTTPException(status_code=400, detail=error)
        admin_id = str(adminID or "").strip()
        if not admin_id:
            emit_log("Dashboard", "configure rejected: admin id missing", error=True)
            raise HTTPException(status_code=400, detail="adminID is required")

        supervisor.configure(credentials, prefix=str(prefix or "").strip() or DEFAULT_PREFIX, admin_id=admin_id)
        return "Configuration received. The bot is starting."

    @app.get("/events")
    async def events() -> EventSourceResponse:
        initial = [
            {"event": "botlog", "data": json.dumps(format_log_line("Dashboard", supervisor.status_text()))},
            {"event": "groupsUpdate", "data": json.dumps(supervisor.joined.snapshot())},
        ]
        return EventSourceResponse(broadcaster.iter_events(initial))

    @app.get("/status")
    async def status() -> dict:
        return {
            "running": bool(supervisor.is_running),
            "state": supervisor.state.value,
            "reconnectAttempts": supervisor.reconnect.attempt_count,
            "groups": supervisor.joined.snapshot(),
            "prefix": supervisor.settings.prefix,
        }

    return app
