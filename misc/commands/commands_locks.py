from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.router import CommandContext
from misc.commands.router import CommandRouter


def register(
    router: CommandRouter,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    service = deps.enforcement

    async def _send_result(ctx: CommandContext, ok: bool, msg: str) -> None:
        await ctx.send(msg if ok else f"Error: {msg}")

    @router.command("group")
    async def group(ctx: CommandContext):
        mode = ctx.args[0].lower() if ctx.args else ""
        if mode == "on" and len(ctx.args) > 1:
            ok, msg = await service.lock_title(ctx.conversation_id, " ".join(ctx.args[1:]))
            await _send_result(ctx, ok, msg)
            return
        if mode == "off":
            _, msg = service.unlock_title(ctx.conversation_id)
            await ctx.send(msg)
            return
        await ctx.send(f"Usage: {ctx.prefix}group on <name> | {ctx.prefix}group off")

    @router.command("gclock")
    async def gclock(ctx: CommandContext):
        if not ctx.args:
            await ctx.send(f"Usage: {ctx.prefix}gclock <name>")
            return
        ok, msg = await service.lock_title(ctx.conversation_id, " ".join(ctx.args))
        await _send_result(ctx, ok, msg)

    @router.command("gcremove")
    async def gcremove(ctx: CommandContext):
        ok, msg = await service.remove_title(ctx.conversation_id)
        await _send_result(ctx, ok, msg)

    @router.command("nickname")
    async def nickname(ctx: CommandContext):
        mode = ctx.args[0].lower() if ctx.args else ""
        if mode == "on" and len(ctx.args) > 1:
            admin_id = deps.settings.admin_id
            ok, msg = await service.lock_nicknames(
                ctx.conversation_id,
                " ".join(ctx.args[1:]),
                skip_ids={admin_id} if admin_id else set(),
            )
            await _send_result(ctx, ok, msg)
            return
        if mode == "off":
            _, msg = service.unlock_nicknames(ctx.conversation_id)
            await ctx.send(msg)
            return
        await ctx.send(f"Usage: {ctx.prefix}nickname on <name> | {ctx.prefix}nickname off")

    @router.command("nicklock")
    async def nicklock(ctx: CommandContext):
        if not ctx.args:
            await ctx.send(f"Usage: {ctx.prefix}nicklock <name>")
            return
        ok, msg = await service.lock_nicknames(
            ctx.conversation_id,
            " ".join(ctx.args),
            clear_auto_remove=True,
        )
        await _send_result(ctx, ok, msg)

    @router.command("nickremoveall")
    async def nickremoveall(ctx: CommandContext):
        ok, msg = await service.remove_all_nicknames(ctx.conversation_id)
        await _send_result(ctx, ok, msg)

    @router.command("nickremoveoff")
    async def nickremoveoff(ctx: CommandContext):
        _, msg = service.stop_nickname_removal(ctx.conversation_id)
        await ctx.send(msg)

    @router.command("photolock")
    async def photolock(ctx: CommandContext):
        mode = ctx.args[0].lower() if ctx.args else ""
        if mode == "on":
            _, msg = await service.lock_photo(ctx.conversation_id)
            await ctx.send(msg)
            return
        if mode == "off":
            _, msg = service.unlock_photo(ctx.conversation_id)
            await ctx.send(msg)
            return
        await ctx.send(f"Usage: {ctx.prefix}photolock on | {ctx.prefix}photolock off")
