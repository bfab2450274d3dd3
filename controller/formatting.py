from __future__ import annotations

from adapters.base import Mention
from adapters.base import OutboundMessage
from adapters.base import PlatformClient
from config.defaults import GENERIC_SENDER_NAME
from controller.persona import NAME_PLACEHOLDER
from controller.persona import Persona
from misc.botlog import emit_log


def compose_message(name: str, sender_id: str, text: str, persona: Persona) -> OutboundMessage:
    display = str(name or "").strip() or GENERIC_SENDER_NAME
    template = persona.header_template
    index = template.find(NAME_PLACEHOLDER)
    header = template.replace(NAME_PLACEHOLDER, display, 1)
    body = f"{header}\n\n{text}\n\n{persona.signature}\n{persona.separator}"
    return OutboundMessage(
        body=body,
        mentions=[Mention(tag=display, id=str(sender_id), from_index=max(0, index))],
    )


async def format_message(client: PlatformClient, sender_id: str, text: str, persona: Persona) -> OutboundMessage:
    """Wrap ``text`` in the persona frame with a mention of the sender in the header."""
    name = ""
    try:
        names = await client.get_user_info([str(sender_id)])
        name = str((names or {}).get(str(sender_id)) or "")
    except Exception as e:
        emit_log("Format", f"user lookup failed user={sender_id}: {e}", error=True)
    return compose_message(name, sender_id, text, persona)
