from __future__ import annotations

from jobs.sessions import CatalogueEmpty
from jobs.sessions import CatalogueNotFound
from jobs.sessions import SessionKind
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
    sessions = deps.sessions

    @router.command("fyt")
    async def fyt(ctx: CommandContext):
        mode = ctx.args[0].lower() if ctx.args else ""
        if mode == "on":
            started = sessions.start_fight(ctx.conversation_id)
            await ctx.send("Fight mode is on." if started else "Fight mode is already on.")
            return
        if mode == "off":
            stopped = sessions.stop_fight(ctx.conversation_id)
            await ctx.send("Fight mode is off." if stopped else "Fight mode is not on.")
            return
        await ctx.send(f"Usage: {ctx.prefix}fyt on | {ctx.prefix}fyt off")

    @router.command("stop")
    async def stop(ctx: CommandContext):
        kind = sessions.stop(ctx.conversation_id)
        if kind == SessionKind.FIGHT:
            await ctx.send("Fight mode stopped.")
        elif kind == SessionKind.TARGET:
            await ctx.send("Target session stopped.")
        else:
            await ctx.send("Nothing is running here.")

    @router.command("target")
    async def target(ctx: CommandContext):
        mode = ctx.args[0].lower() if ctx.args else ""
        if mode == "off":
            stopped = sessions.stop_target(ctx.conversation_id)
            await ctx.send("Target session stopped." if stopped else "No target session is running.")
            return
        if mode != "on" or len(ctx.args) < 3:
            await ctx.send(f"Usage: {ctx.prefix}target on <fileNumber> <name> | {ctx.prefix}target off")
            return

        file_number = ctx.args[1]
        label = " ".join(ctx.args[2:])
        try:
            replaced = await sessions.start_target(
                ctx.conversation_id,
                file_number,
                label,
                started_by=ctx.sender_id,
            )
        except CatalogueNotFound:
            await ctx.send(f"Message file np{file_number}.txt was not found.")
            return
        except CatalogueEmpty:
            await ctx.send(f"Message file np{file_number}.txt has no messages.")
            return
        note = " The previous target session was replaced." if replaced else ""
        await ctx.send(f"Target session started for {label}.{note}")
