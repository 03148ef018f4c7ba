"""
Game server log line classification.

Each console line is one of:
    - ChatLine   a player talking (``...: <Alice> Hello!``)
    - SystemLine a notable server event (join / leave / advancement)
    - Ignored    anything else

Rules are checked in that order; the first match wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final, Optional, Union


# =============================================================================
# Patterns (compiled once, shared by every call)
# =============================================================================

_CHAT_RE: Final = re.compile(r": <([^>]+)> (.*)$")
_SYSTEM_RE: Final = re.compile(r"joined the game|left the game|has made the advancement")
_TIMESTAMP_RE: Final = re.compile(r"\[[0-9]{2}:[0-9]{2}:[0-9]{2}\]")


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True, slots=True)
class ChatLine:
    user: str
    body: str


@dataclass(frozen=True, slots=True)
class SystemLine:
    text: str


@dataclass(frozen=True, slots=True)
class Ignored:
    pass


IGNORED: Final = Ignored()

ClassifiedEvent = Union[ChatLine, SystemLine, Ignored]


# =============================================================================
# Classification
# =============================================================================

def classify(line: str) -> ClassifiedEvent:
    """
    Classify a single raw server line.

    A trailing line terminator is ignored. The chat pattern is not anchored to
    a log source, so any line carrying ``: <name> text`` counts as chat.
    """
    line = line.rstrip("\r\n")
    if not line:
        return IGNORED

    m = _CHAT_RE.search(line)
    if m:
        return ChatLine(user=m.group(1), body=m.group(2))

    if _SYSTEM_RE.search(line):
        ts = _TIMESTAMP_RE.search(line)
        return SystemLine(text=line[ts.start():] if ts else line)

    return IGNORED


def render(event: ClassifiedEvent) -> Optional[str]:
    """Chat channel text for an event, or None when nothing should be sent."""
    if isinstance(event, ChatLine):
        return f"{event.user}: {event.body}"
    if isinstance(event, SystemLine):
        return event.text
    return None


def split_frame(frame: str) -> list[str]:
    """
    Split a text frame into console lines.

    Servers usually send one line per frame; batched frames are split so
    every line is classified on its own.
    """
    lines = frame.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return [line.rstrip("\r") for line in lines]
