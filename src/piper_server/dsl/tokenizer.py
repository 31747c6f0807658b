"""
Markup Tokenizer.

Splits annotated text into a flat list of tokens. The tag set is closed:

    [pause]             -> Pause(None)
    [pause:<digits>]    -> Pause(ms)
    [slow] / [/slow]    -> ModeStart(SLOW) / ModeEnd(SLOW)
    [fast], [emphasis], [spell], [whisper] and their closers likewise

Anything else, including unknown or malformed bracketed text such as
"[unknown]" or "[pause:abc]", is kept verbatim as Text. Pause durations
are clamped to MAX_PAUSE_MS, however many digits the tag carries. Tags are
case-sensitive. Tokenizing never fails and never validates nesting:
"[/slow]" without an opener is still a ModeEnd.

Example:
    >>> tokenize("Hello [pause] world")
    [Text(text='Hello '), Pause(ms=None), Text(text=' world')]
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union


class Mode(Enum):
    """Delivery modes toggled by paired tags."""
    SLOW = "slow"
    FAST = "fast"
    EMPHASIS = "emphasis"
    SPELL = "spell"
    WHISPER = "whisper"


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Pause:
    """A pause; ms is None for a bare [pause]."""
    ms: Optional[int] = None


@dataclass(frozen=True)
class ModeStart:
    kind: Mode


@dataclass(frozen=True)
class ModeEnd:
    kind: Mode


Token = Union[Text, Pause, ModeStart, ModeEnd]

MAX_PAUSE_MS = 60_000
_MAX_PAUSE_DIGITS = len(str(MAX_PAUSE_MS))

# Alternation order matters: the timed pause must be tried before the bare one.
_TAG_RE = re.compile(
    r"\[pause:(?P<ms>\d+)\]"
    r"|\[pause\]"
    r"|\[(?P<close>/)?(?P<mode>slow|fast|emphasis|spell|whisper)\]"
)


def _pause_ms(digits: str) -> int:
    digits = digits.lstrip("0") or "0"
    if len(digits) > _MAX_PAUSE_DIGITS:
        return MAX_PAUSE_MS
    return min(int(digits), MAX_PAUSE_MS)


def _tag_token(match: re.Match) -> Token:
    ms = match.group("ms")
    if ms is not None:
        return Pause(_pause_ms(ms))

    mode = match.group("mode")
    if mode is None:
        return Pause(None)

    kind = Mode(mode)
    return ModeEnd(kind) if match.group("close") else ModeStart(kind)


def tokenize(text: str) -> List[Token]:
    """
    Convert annotated text into tokens, left to right.

    Text between two tags becomes exactly one Text token; empty gaps
    produce none. Empty input returns an empty list.
    """
    tokens: List[Token] = []
    last_end = 0

    for match in _TAG_RE.finditer(text):
        if match.start() > last_end:
            tokens.append(Text(text[last_end:match.start()]))
        tokens.append(_tag_token(match))
        last_end = match.end()

    if last_end < len(text):
        tokens.append(Text(text[last_end:]))

    return tokens
