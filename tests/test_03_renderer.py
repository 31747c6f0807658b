"""Tests for markup rendering and mode precedence."""
from __future__ import annotations

import pytest

from piper_server.dsl import process
from piper_server.dsl.renderer import (
    MAX_PAUSE_MS,
    RenderState,
    apply_modes,
    pause_marker,
    render,
)
from piper_server.dsl.tokenizer import Mode, ModeStart, Text


class TestIdentity:
    """Text without directives renders unchanged."""

    @pytest.mark.parametrize("text", [
        "Hello, world.",
        "Wait... what?",
        "  leading and trailing  ",
        "Brackets [like this] stay",
        "Merhaba dünya",
        "",
    ])
    def test_identity(self, text):
        assert process(text) == text

    def test_render_empty_tokens(self):
        assert render([]) == ""


class TestPauses:
    """Tests for pause rendering."""

    def test_bare_pause(self):
        assert process("Hello [pause] world") == "Hello ... world"

    def test_timed_pause_at_floor(self):
        out = process("Wait [pause:600] here")
        assert out == "Wait ... here"
        assert "Wait" in out and "here" in out

    @pytest.mark.parametrize("ms,dots", [
        (0, 3),
        (100, 3),
        (599, 3),
        (600, 3),
        (800, 4),
        (1000, 5),
        (2000, 10),
    ])
    def test_marker_length(self, ms, dots):
        assert pause_marker(ms) == "." * dots

    def test_huge_pause_is_clamped(self):
        assert pause_marker(10 ** 12) == pause_marker(MAX_PAUSE_MS)

    def test_clamped_pause_from_markup(self):
        assert process("[pause:120000]") == "." * 300
        assert process("[pause:" + "9" * 5000 + "]") == "." * 300

    def test_pause_ignores_modes(self):
        assert process("[fast]a [pause] b[/fast]") == "a ... b"


class TestModes:
    """Each mode on its own."""

    def test_emphasis(self):
        assert process("[emphasis]important[/emphasis]") == "IMPORTANT"

    def test_spell(self):
        assert process("[spell]BBC[/spell]") == "B. B. C."

    def test_spell_strips_punctuation_and_uppercases(self):
        assert process("[spell]a-1 b![/spell]") == "A. 1. B."

    def test_spell_nothing_left(self):
        assert process("x[spell]?![/spell]y") == "xy"

    def test_whisper(self):
        assert process("[whisper]Secret[/whisper]") == "(secret)"

    def test_slow(self):
        assert process("[slow]one two three[/slow]") == "one... two... three..."

    def test_slow_whitespace_only(self):
        assert process("a[slow]   [/slow]b") == "ab"

    def test_fast(self):
        assert process("[fast]well, then... go[/fast]") == "well then go"

    def test_unknown_tag_passes_through(self):
        assert process("Hello [unknown] world") == "Hello [unknown] world"


class TestPrecedence:
    """Mode combinations: spell > emphasis > whisper > slow > fast."""

    def test_spell_beats_everything(self):
        assert process("[emphasis][whisper][slow][spell]ab[/spell]") == "A. B."

    def test_emphasis_then_whisper_lowercases(self):
        assert process("[emphasis][whisper]Loud[/whisper][/emphasis]") == "(loud)"

    def test_whisper_excludes_slow_and_fast(self):
        assert process("[slow][fast][whisper]a b, c[/whisper]") == "(a b, c)"

    def test_emphasis_with_slow(self):
        assert process("[emphasis][slow]go now[/slow][/emphasis]") == "GO... NOW..."

    def test_slow_beats_fast(self):
        assert process("[fast][slow]a, b[/slow][/fast]") == "a,... b..."

    def test_emphasis_with_fast(self):
        assert process("[emphasis][fast]a, b[/fast][/emphasis]") == "A B"


class TestModeState:
    """Flags are booleans, not counters."""

    def test_repeated_open_single_close(self):
        assert process("[emphasis][emphasis]a[/emphasis]b") == "Ab"

    def test_unmatched_close_is_noop(self):
        assert process("[/whisper]Hi") == "Hi"

    def test_unclosed_mode_runs_to_end(self):
        assert process("a [emphasis]b c") == "a B C"

    def test_mode_spans_pause(self):
        assert process("[whisper]a[pause]B[/whisper]") == "(a)...(b)"

    def test_apply_modes_direct(self):
        state = RenderState()
        state.set(Mode.SPELL, True)
        assert apply_modes("xy", state) == "X. Y."

    def test_render_accepts_any_iterable(self):
        tokens = iter([ModeStart(Mode.EMPHASIS), Text("ok")])
        assert render(tokens) == "OK"
