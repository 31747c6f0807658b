"""
Inline markup for speech delivery.

Usage:
    from piper_server.dsl import process

    process("Call [spell]BBC[/spell] [pause:800] now")
    # 'Call B. B. C. .... now'
"""
from piper_server.dsl.renderer import RenderState, render
from piper_server.dsl.tokenizer import Mode, ModeEnd, ModeStart, Pause, Text, Token, tokenize


def process(text: str) -> str:
    """Tokenize and render annotated text. Text without tags is returned unchanged."""
    return render(tokenize(text))


__all__ = [
    "Mode",
    "ModeEnd",
    "ModeStart",
    "Pause",
    "RenderState",
    "Text",
    "Token",
    "process",
    "render",
    "tokenize",
]
