from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from datetime import datetime, timedelta
from typing import Awaitable, Callable

import aiohttp
import discord

from adapters.base import EventCallback
from adapters.base import EventKind
from adapters.base import Message
from adapters.base import PlatformClient
from adapters.base import PlatformError
from adapters.base import PlatformEvent
from adapters.base import ThreadInfo
from adapters.base import credentials_token
from misc.botlog import emit_log

BLANK_GUILD_NAME = "\u2800\u2800"
AUDIT_MAX_AGE_SECONDS = 10.0
AUDIT_RETRY_DELAY_SECONDS = 1.5
AUDIT_ATTEMPTS = 2
AUDIT_CLAIMED_LIMIT = 256


def default_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True
    return intents


def render_mentions(message: Message) -> str:
    """Swap each mention's tag for a Discord user mention at its recorded offset."""
    if isinstance(message, str):
        return message
    body = message.body
    for mention in sorted(message.mentions, key=lambda m: m.from_index, reverse=True):
        start = int(mention.from_index)
        end = start + len(mention.tag)
        if start < 0 or body[start:end] != mention.tag:
            continue
        body = f"{body[:start]}<@{mention.id}>{body[end:]}"
    return body


def message_event(message, self_user_id: int | None) -> PlatformEvent | None:
    guild = getattr(message, "guild", None)
    if guild is None:
        return None
    author = message.author
    if self_user_id is not None and int(author.id) == int(self_user_id):
        return None
    mentions = {
        str(user.id): str(getattr(user, "display_name", None) or user.name)
        for user in (getattr(message, "mentions", None) or [])
    }
    kind = EventKind.MESSAGE_REPLY if getattr(message, "reference", None) else EventKind.MESSAGE
    return PlatformEvent(
        kind=kind,
        conversation_id=str(guild.id),
        sender_id=str(author.id),
        body=message.content or "",
        mentions=mentions,
        raw=message,
    )


def guild_update_events(before, after, author_id: str) -> list[PlatformEvent]:
    events: list[PlatformEvent] = []
    cid = str(after.id)
    if before.name != after.name:
        events.append(
            PlatformEvent(
                kind=EventKind.THREAD_NAME,
                conversation_id=cid,
                author_id=author_id,
                new_title=after.name or "",
            )
        )
    before_icon = getattr(before.icon, "key", None) if before.icon else None
    after_icon = getattr(after.icon, "key", None) if after.icon else None
    if before_icon != after_icon:
        events.append(
            PlatformEvent(
                kind=EventKind.THREAD_IMAGE,
                conversation_id=cid,
                author_id=author_id,
                image_ref=str(after.icon.url) if after.icon else None,
            )
        )
    return events


def member_update_event(before, after, author_id: str) -> PlatformEvent | None:
    if before.nick == after.nick:
        return None
    return PlatformEvent(
        kind=EventKind.USER_NICKNAME,
        conversation_id=str(after.guild.id),
        author_id=author_id,
        participant_id=str(after.id),
        new_nickname=after.nick or "",
    )


class DiscordPlatformClient(PlatformClient):
    """Guilds are conversations: guild name is the title, guild icon the photo."""

    def __init__(self, *, intents: discord.Intents | None = None) -> None:
        self._intents = intents or default_intents()
        self._client: discord.Client | None = None
        self._credentials: list[dict] = []
        self._channel_by_guild: dict[int, int] = {}
        self._events: asyncio.Queue[PlatformEvent] | None = None
        self._claimed_audit_ids: deque = deque(maxlen=AUDIT_CLAIMED_LIMIT)

    # ----- session -----
    async def authenticate(self, credentials: list[dict]) -> None:
        token = credentials_token(credentials)
        if not token:
            raise PlatformError("credentials carry no 'token' entry")

        old = self._client
        self._client = None
        if old is not None and not old.is_closed():
            await old.close()

        client = self._build_client()
        try:
            await client.login(token)
        except discord.LoginFailure as e:
            await client.close()
            raise PlatformError(f"login rejected: {e}") from e
        except discord.HTTPException as e:
            await client.close()
            raise PlatformError(f"login failed: {e}") from e

        self._client = client
        self._credentials = [dict(entry) for entry in credentials]

    def has_session(self) -> bool:
        client = self._client
        return bool(client is not None and not client.is_closed() and client.user is not None)

    def current_user_id(self) -> str:
        client = self._client
        if client is None or client.user is None:
            return ""
        return str(client.user.id)

    def get_app_state(self) -> list[dict]:
        return [dict(entry) for entry in self._credentials]

    def _require_client(self) -> discord.Client:
        if self._client is None:
            raise PlatformError("not logged in")
        return self._client

    def _build_client(self) -> discord.Client:
        client = discord.Client(intents=self._intents)

        @client.event
        async def on_message(message: discord.Message):
            if message.guild is not None:
                self._channel_by_guild[int(message.guild.id)] = int(message.channel.id)
            self_id = client.user.id if client.user else None
            self._enqueue(message_event(message, self_id))

        @client.event
        async def on_guild_update(before: discord.Guild, after: discord.Guild):
            author_id = await recent_audit_author(
                after,
                discord.AuditLogAction.guild_update,
                target_id=after.id,
                claimed=self._claimed_audit_ids,
            )
            for event in guild_update_events(before, after, author_id):
                self._enqueue(event)

        @client.event
        async def on_member_update(before: discord.Member, after: discord.Member):
            if before.nick == after.nick:
                return
            author_id = await recent_audit_author(
                after.guild,
                discord.AuditLogAction.member_update,
                target_id=after.id,
                claimed=self._claimed_audit_ids,
            )
            self._enqueue(member_update_event(before, after, author_id))

        @client.event
        async def on_guild_join(guild: discord.Guild):
            bot_id = str(client.user.id) if client.user else ""
            self._enqueue(
                PlatformEvent(
                    kind=EventKind.SUBSCRIBE,
                    conversation_id=str(guild.id),
                    added_participant_ids=[bot_id],
                )
            )

        return client

    def _enqueue(self, event: PlatformEvent | None) -> None:
        if event is None or self._events is None:
            return
        self._events.put_nowait(event)

    # ----- listening -----
    async def listen(self, callback: EventCallback) -> None:
        client = self._require_client()
        self._events = asyncio.Queue()
        consumer = asyncio.create_task(self._consume(self._events, callback))
        try:
            await client.connect(reconnect=True)
        except discord.DiscordException as e:
            raise PlatformError(f"gateway error: {e}") from e
        finally:
            self._events = None
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
        raise PlatformError("gateway connection closed")

    async def _consume(self, queue: asyncio.Queue[PlatformEvent], callback: EventCallback) -> None:
        while True:
            event = await queue.get()
            try:
                await callback(event)
            except Exception as e:
                emit_log("Discord", f"event callback failed kind={event.kind.value}: {e}", error=True)

    async def stop_listening(self) -> None:
        client = self._client
        ws = getattr(client, "ws", None) if client is not None else None
        if ws is not None:
            await ws.close(code=1000)

    # ----- lookups -----
    async def _guild(self, conversation_id: str) -> discord.Guild:
        client = self._require_client()
        gid = int(conversation_id)
        guild = client.get_guild(gid)
        if guild is None:
            guild = await client.fetch_guild(gid)
        return guild

    async def _channel(self, guild: discord.Guild):
        client = self._require_client()
        channel_id = self._channel_by_guild.get(int(guild.id)) or guild.system_channel_id
        if channel_id:
            channel = client.get_channel(int(channel_id))
            if channel is None:
                channel = await client.fetch_channel(int(channel_id))
            return channel

        channels = [c for c in await guild.fetch_channels() if isinstance(c, discord.TextChannel)]
        if not channels:
            raise PlatformError(f"no text channel in guild {guild.id}")
        channel = sorted(channels, key=lambda c: c.position)[0]
        self._channel_by_guild[int(guild.id)] = int(channel.id)
        return channel

    async def get_thread_list(self, limit: int = 100) -> list[str]:
        client = self._require_client()
        return [str(guild.id) async for guild in client.fetch_guilds(limit=limit)]

    async def get_thread_info(self, conversation_id: str) -> ThreadInfo:
        guild = await self._guild(conversation_id)
        members = [member async for member in guild.fetch_members(limit=None)]
        return ThreadInfo(
            conversation_id=str(guild.id),
            name=guild.name or "",
            participant_ids=[str(m.id) for m in members],
            nicknames={str(m.id): m.nick or "" for m in members},
            image_src=str(guild.icon.url) if guild.icon else None,
        )

    async def get_user_info(self, user_ids: list[str]) -> dict[str, str]:
        client = self._require_client()
        names: dict[str, str] = {}
        for uid in user_ids:
            user = client.get_user(int(uid))
            if user is None:
                try:
                    user = await client.fetch_user(int(uid))
                except discord.NotFound:
                    continue
            names[str(uid)] = str(user.global_name or user.name)
        return names

    # ----- mutations -----
    async def send_message(self, message: Message, conversation_id: str) -> None:
        guild = await self._guild(conversation_id)
        channel = await self._channel(guild)
        await channel.send(
            render_mentions(message),
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
        )

    async def change_nickname(self, name: str, conversation_id: str, user_id: str) -> None:
        guild = await self._guild(conversation_id)
        member = await guild.fetch_member(int(user_id))
        await member.edit(nick=name or None)

    async def set_title(self, name: str, conversation_id: str) -> None:
        guild = await self._guild(conversation_id)
        # guild names need at least two visible characters
        await guild.edit(name=name or BLANK_GUILD_NAME)

    async def set_image(self, image_ref: str, conversation_id: str) -> str | None:
        guild = await self._guild(conversation_id)
        async with aiohttp.ClientSession() as session:
            async with session.get(image_ref) as resp:
                if resp.status != 200:
                    raise PlatformError(f"image fetch failed status={resp.status}")
                data = await resp.read()
        updated = await guild.edit(icon=data)
        icon = getattr(updated, "icon", None)
        return str(icon.url) if icon else None


async def recent_audit_author(
    guild,
    action,
    *,
    target_id: int | None = None,
    claimed: deque | None = None,
    now: Callable[[], datetime] = discord.utils.utcnow,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """
    Author of the newest matching audit entry written in the last few seconds.

    Discord may write the entry after the gateway event arrives, so a miss is
    retried once. Entries that are too old, or already claimed by an earlier
    event, belong to an earlier change. "" means unknown.
    """
    for attempt in range(AUDIT_ATTEMPTS):
        if attempt:
            await sleep(AUDIT_RETRY_DELAY_SECONDS)
        try:
            entry = await _newest_audit_entry(guild, action, target_id, now())
        except (discord.Forbidden, discord.HTTPException) as e:
            emit_log("Discord", f"audit log unavailable guild={guild.id}: {e}", error=True)
            return ""
        if entry is None:
            continue
        if claimed is not None:
            if entry.id in claimed:
                continue
            claimed.append(entry.id)
        return str(entry.user.id) if entry.user else ""
    return ""


async def _newest_audit_entry(guild, action, target_id: int | None, at: datetime):
    cutoff = at - timedelta(seconds=AUDIT_MAX_AGE_SECONDS)
    async for entry in guild.audit_logs(limit=5, action=action):
        if entry.created_at < cutoff:
            return None
        if target_id is not None and int(getattr(entry.target, "id", 0) or 0) != int(target_id):
            continue
        return entry
    return None
