"""Phoneme string -> model input ids."""
from __future__ import annotations

from typing import List, Mapping, Sequence

BOS = "^"
EOS = "$"
PAD = "_"


def phonemes_to_ids(phonemes: str, id_map: Mapping[str, Sequence[int]]) -> List[int]:
    """
    Encode an IPA string with a voice's phoneme_id_map.

    The sequence is framed by the ids of "^" and "$" (a single 0 each when
    the map lacks them). Every code point contributes its mapped ids, if
    any, followed by the ids of "_" when the map defines a pad symbol.
    Symbols missing from the map are dropped.

    Example:
        >>> phonemes_to_ids("ab", {"^": [1], "$": [2], "_": [0], "a": [5]})
        [1, 5, 0, 0, 2]
    """
    ids: List[int] = list(id_map.get(BOS, [0]))
    pad = id_map.get(PAD)

    for ch in phonemes:
        mapped = id_map.get(ch)
        if mapped:
            ids.extend(mapped)
        if pad:
            ids.extend(pad)

    ids.extend(id_map.get(EOS, [0]))
    return ids
