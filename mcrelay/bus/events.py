"""
Event types crossing the bridge.
"""

from __future__ import annotations

from dataclasses import dataclass


# ---------------------------------------------------------------------
# Chat -> game
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ChatEvent:
    """
    A human message posted in the watched chat channel.
    """

    author: str               # Display name used in the /say command
    body: str                 # Message text, verbatim


def format_say_command(event: ChatEvent) -> str:
    """
    Render a chat event as a console broadcast line.

    The body is not escaped: embedded newlines reach the console as-is.
    """
    return f"/say {event.author}: {event.body}\n"


# ---------------------------------------------------------------------
# Game -> chat
# ---------------------------------------------------------------------

@dataclass(slots=True)
class OutboundMessage:
    """
    Message to be sent to the chat channel.
    """

    chat_id: str
    content: str
