"""
Markup Renderer.

Folds a token list into the plain text handed to the phonemizer. Pauses
become runs of dots (espeak-ng reads them as silence) and each Text run
is transformed by the modes active at that point.

Mode precedence for a Text run, first match wins:

    1. SPELL     "BBC" -> "B. B. C.", nothing else applies
    2. EMPHASIS  uppercase, then continue
    3. WHISPER   lowercase and wrap in parentheses, stop
    4. SLOW      "one two" -> "one... two..."
    5. FAST      drop "..." and ","

Pause(ms) renders as max(3, ms // 200) dots with ms first clamped to
MAX_PAUSE_MS (60 s, 300 dots). Longer pauses therefore render shorter than
the unclamped formula would give: [pause:120000] is 300 dots, not 600. The
mapping is still monotone non-decreasing in ms.

Mode flags are plain booleans: repeated openers do not nest and a closer
always clears the flag.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from piper_server.dsl.tokenizer import MAX_PAUSE_MS, Mode, ModeEnd, ModeStart, Pause, Text, Token

PAUSE_MARKER = "..."
MS_PER_DOT = 200
MIN_PAUSE_DOTS = 3


@dataclass
class RenderState:
    """Active delivery modes during one render pass."""
    slow: bool = False
    fast: bool = False
    emphasis: bool = False
    spell: bool = False
    whisper: bool = False

    def set(self, kind: Mode, active: bool) -> None:
        setattr(self, kind.value, active)


def pause_marker(ms: int | None) -> str:
    """Dots for a pause: three for [pause], ms // 200 (at least three) otherwise."""
    if ms is None:
        return PAUSE_MARKER
    ms = min(ms, MAX_PAUSE_MS)
    return "." * max(MIN_PAUSE_DOTS, ms // MS_PER_DOT)


def _spell(text: str) -> str:
    return " ".join(f"{ch.upper()}." for ch in text if ch.isalnum())


def _slow(text: str) -> str:
    words = text.split()
    if not words:
        return ""
    return "... ".join(words) + PAUSE_MARKER


def _fast(text: str) -> str:
    return text.replace(PAUSE_MARKER, "").replace(",", "")


def apply_modes(text: str, state: RenderState) -> str:
    """Transform one Text run according to the active modes."""
    if state.spell:
        return _spell(text)

    if state.emphasis:
        text = text.upper()

    if state.whisper:
        return f"({text.lower()})"

    if state.slow:
        return _slow(text)
    if state.fast:
        return _fast(text)
    return text


def render(tokens: Iterable[Token]) -> str:
    """Render tokens to plain text in a single left-to-right pass."""
    state = RenderState()
    out: List[str] = []

    for token in tokens:
        if isinstance(token, Text):
            out.append(apply_modes(token.text, state))
        elif isinstance(token, Pause):
            out.append(pause_marker(token.ms))
        elif isinstance(token, ModeStart):
            state.set(token.kind, True)
        elif isinstance(token, ModeEnd):
            state.set(token.kind, False)

    return "".join(out)
