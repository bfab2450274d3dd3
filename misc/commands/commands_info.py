from __future__ import annotations

from misc.botlog import emit_log
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.router import CommandContext
from misc.commands.router import CommandRouter


def _on_off(flag: bool) -> str:
    return "on" if flag else "off"


def render_status(snapshot: dict[str, object], *, fight_active: bool, target_label: str | None) -> str:
    title_lock = snapshot.get("title_lock")
    nickname_lock = snapshot.get("nickname_lock")
    lines = [
        "Status:",
        f"- Group name lock: {title_lock if title_lock is not None else 'off'}",
        f"- Group name auto-remove: {_on_off(bool(snapshot.get('title_auto_remove')))}",
        f"- Nickname lock: {nickname_lock if nickname_lock is not None else 'off'}",
        f"- Nickname auto-remove: {_on_off(bool(snapshot.get('nickname_auto_remove')))}",
        f"- Photo lock: {_on_off(snapshot.get('photo_lock') is not None)}",
        f"- Fight mode: {_on_off(fight_active)}",
        f"- Target session: {target_label if target_label else 'off'}",
    ]
    return "\n".join(lines)


def register(
    router: CommandRouter,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @router.command("tid", admin_only=False)
    async def tid(ctx: CommandContext):
        await ctx.send(f"Conversation ID: {ctx.conversation_id}")

    @router.command("uid", admin_only=False)
    async def uid(ctx: CommandContext):
        mentioned = list((ctx.event.mentions or {}).keys())
        user_id = mentioned[0] if mentioned else ctx.sender_id
        await ctx.send(f"User ID: {user_id}")

    @router.command("help", admin_only=False)
    async def help_(ctx: CommandContext):
        await ctx.send(deps.persona.render(deps.persona.help_text, prefix=ctx.prefix))

    @router.command("status")
    async def status(ctx: CommandContext):
        target = deps.sessions.target(ctx.conversation_id)
        await ctx.send(
            render_status(
                deps.lock_store.snapshot(ctx.conversation_id),
                fight_active=deps.sessions.is_fight_active(ctx.conversation_id),
                target_label=target.target_label if target is not None else None,
            )
        )

    @router.command("botnick")
    async def botnick(ctx: CommandContext):
        name = " ".join(ctx.args).strip()
        if not name:
            await ctx.send(f"Usage: {ctx.prefix}botnick <name>")
            return

        deps.settings.bot_nickname = name
        try:
            await deps.save_config()
        except Exception as e:
            emit_log("Persist", f"saving bot nickname failed: {e}", error=True)

        await deps.client.change_nickname(name, ctx.conversation_id, deps.client.current_user_id())
        await ctx.send(f"My nickname is now: {name}")
