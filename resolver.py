# resolver.py
"""
Key-access resolver.

For every character of the target alphabet, enumerate each physically
valid way to type it on a given layout and keyboard: the tap key, plus
a layer key held on the base layer if the tap key lives on layer k > 0,
plus a shift key if the character is a shifted glyph. A finger can only
hold one key at a time, so all keys in a combination must belong to
different fingers.

A layout where some character has no valid combination cannot be
evaluated; generate() raises UnreachableCharacterError for it.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import numpy as np

from alphabet import ALPHABET, needs_shift, unshifted
from geometry import Keyboard, N_FINGERS
from layout import KeyLoc, Layout, Layer, SHIFT


class UnreachableCharacterError(ValueError):
    """A required character has no valid key combination on the layout."""

    def __init__(self, character: str):
        super().__init__(f"Character {character!r} cannot be typed on this layout")
        self.character = character


@dataclass(frozen=True)
class KeyCombo:
    """One way to type a character: tap `key`, optionally holding `layer` and/or `shift`."""
    key: int
    layer: Optional[int] = None
    shift: Optional[int] = None

    def slots(self) -> List[int]:
        return [self.key] + [s for s in (self.layer, self.shift) if s is not None]


class ComboArrays:
    """
    All combos of a resolved layout packed into flat arrays for the JIT cost kernels.

    Combos of the character ALPHABET[c] occupy rows start[c]:start[c + 1].
    Per finger slot: position of the key it presses, whether it is active,
    and whether it is holding a modifier (shift/layer) rather than tapping.
    """

    def __init__(self, combos: Dict[str, List[KeyCombo]], keyboard: Keyboard):
        n_combos = sum(len(char_combos) for char_combos in combos.values())
        self.start = np.zeros(len(ALPHABET) + 1, dtype=np.int64)
        self.positions = np.zeros((n_combos, N_FINGERS, 2), dtype=np.float64)
        self.active = np.zeros((n_combos, N_FINGERS), dtype=np.bool_)
        self.held = np.zeros((n_combos, N_FINGERS), dtype=np.bool_)
        self.layer_key = np.full(n_combos, -1, dtype=np.int64)
        self.shift_key = np.full(n_combos, -1, dtype=np.int64)

        row = 0
        for c, char in enumerate(ALPHABET):
            self.start[c] = row
            for combo in combos.get(char, ()):
                for slot, is_held in ((combo.key, False), (combo.layer, True), (combo.shift, True)):
                    if slot is None:
                        continue
                    key = keyboard.key(slot)
                    finger = key.finger.index
                    self.positions[row, finger] = key.position
                    self.active[row, finger] = True
                    self.held[row, finger] = is_held
                if combo.layer is not None:
                    self.layer_key[row] = combo.layer
                if combo.shift is not None:
                    self.shift_key[row] = combo.shift
                row += 1
        self.start[len(ALPHABET)] = row

    def combo_counts(self) -> np.ndarray:
        return np.diff(self.start)


class KeyboardLayout:
    """Resolved combos for every required character of one layout snapshot."""

    def __init__(self, combos: Dict[str, List[KeyCombo]], keyboard: Keyboard):
        self._combos = combos
        self.keyboard = keyboard
        self.base = keyboard.base_positions()
        self.arrays = ComboArrays(combos, keyboard)

    def combos(self, char: str) -> List[KeyCombo]:
        return self._combos[char]

    key = combos

    @property
    def characters(self) -> List[str]:
        return list(self._combos)

    @classmethod
    def generate(cls, layout: Layout, keyboard: Keyboard,
                 used_keys: Optional[Set[KeyLoc]] = None,
                 used_holds: Optional[Set[int]] = None,
                 alphabet: str = ALPHABET) -> 'KeyboardLayout':
        """
        Resolve every required character.

        Args:
            layout: Layout to resolve
            keyboard: Geometry the layout's slots refer to
            used_keys: If given, collects every (layer, slot) used as a tap key
            used_holds: If given, collects every base slot used as a shift/layer key
            alphabet: Characters that must be reachable (subset of ALPHABET)

        Raises:
            UnreachableCharacterError: first alphabet character with no valid combo
        """
        if layout.layer_size != keyboard.size:
            raise ValueError(f"Layout has {layout.layer_size} slots, keyboard has {keyboard.size}")

        shift_keys = [loc.index for loc in layout.find_on_base(lambda b: b == SHIFT)]
        layer_keys = {k: [loc.index for loc in layout.find_on_base(lambda b, k=k: b == Layer(k))]
                      for k in range(1, layout.layer_count)}
        fingers = [key.finger.index for key in keyboard.keys]

        combos = {}
        for char in alphabet:
            real = unshifted(char)
            # A single pass with no shift key when none is needed
            shift_options = shift_keys if needs_shift(char) else [None]

            char_combos = []
            for final in layout.find_all_key(lambda c: c == real):
                layer_options = layer_keys[final.layer] if final.layer > 0 else [None]

                for layer_key in layer_options:
                    for shift_key in shift_options:
                        # Holding the layer turns the shift slot into that layer's key
                        if (layer_key is not None and shift_key is not None
                                and layout.key(final.layer, shift_key) is not None):
                            continue

                        slots = [final.index] + [s for s in (layer_key, shift_key) if s is not None]
                        used_fingers = [fingers[s] for s in slots]
                        if len(set(used_fingers)) != len(used_fingers):
                            continue

                        char_combos.append(KeyCombo(final.index, layer_key, shift_key))
                        if used_keys is not None:
                            used_keys.add(final)
                        if used_holds is not None:
                            used_holds.update(s for s in (layer_key, shift_key) if s is not None)

            if not char_combos:
                raise UnreachableCharacterError(char)
            combos[char] = char_combos

        return cls(combos, keyboard)
