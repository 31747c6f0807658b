"""Tests for phoneme id encoding."""
from __future__ import annotations

from piper_server.tts.phonemes import phonemes_to_ids


class TestPhonemesToIds:
    """Tests for phonemes_to_ids()."""

    def test_empty_with_empty_map(self):
        ids = phonemes_to_ids("", {})
        assert ids == [0, 0]

    def test_empty_with_boundaries(self):
        assert phonemes_to_ids("", {"^": [1], "$": [2], "_": [0]}) == [1, 2]

    def test_pad_after_every_symbol(self):
        id_map = {"^": [1], "$": [2], "_": [0], "a": [5], "b": [6]}
        assert phonemes_to_ids("ab", id_map) == [1, 5, 0, 6, 0, 2]

    def test_unknown_symbols_still_padded(self):
        id_map = {"^": [1], "$": [2], "_": [0], "a": [5]}
        assert phonemes_to_ids("ab", id_map) == [1, 5, 0, 0, 2]

    def test_no_pad_symbol(self):
        id_map = {"^": [1], "$": [2], "a": [5]}
        assert phonemes_to_ids("axa", id_map) == [1, 5, 5, 2]

    def test_multi_id_entries(self):
        id_map = {"^": [1, 1], "$": [2], "ɛ": [7, 8]}
        assert phonemes_to_ids("ɛ", id_map) == [1, 1, 7, 8, 2]

    def test_modifier_letters_are_separate_symbols(self):
        id_map = {"^": [1], "$": [2], "t": [9], "ʰ": [10]}
        assert phonemes_to_ids("tʰ", id_map) == [1, 9, 10, 2]

    def test_map_is_not_mutated(self):
        id_map = {"^": [1], "$": [2], "_": [0]}
        ids = phonemes_to_ids("a", id_map)
        ids.append(99)
        assert id_map == {"^": [1], "$": [2], "_": [0]}
