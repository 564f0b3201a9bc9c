# keymap_export.py
"""
Export a finished layout as a QMK configurator keymap (JSON).

Base-layer slots with a hold behavior become mod-taps:
    LSFT_T(code)   tap code, hold shift
    LT(n, code)    tap code, hold layer n
Every other slot is a plain keycode; empty slots are transparent.

Only characters in KEY_CODES can be exported. Adding characters to the
alphabet means extending that table too.
"""

import json
from dataclasses import dataclass
from typing import Dict, List, Optional

from layout import Layer, Layout, Shift

KEY_CODES: Dict[Optional[str], str] = {
    None: "_______",
    **{c: f"KC_{c.upper()}" for c in "abcdefghijklmnopqrstuvwxyz"},
    **{c: f"KC_{c}" for c in "1234567890"},
    '\n': "KC_ENT",
    '\t': "KC_TAB",
    ' ': "KC_SPC",
    '-': "KC_MINS",
    '=': "KC_EQL",
    '[': "KC_LBRC",
    ']': "KC_RBRC",
    '\\': "KC_BSLS",
    ';': "KC_SCLN",
    "'": "KC_QUOT",
    '`': "KC_GRV",
    ',': "KC_COMM",
    '.': "KC_DOT",
    '/': "KC_SLSH",
    '~': "KC_TILD",
    '!': "KC_EXLM",
    '@': "KC_AT",
    '#': "KC_HASH",
    '$': "KC_DLR",
    '%': "KC_PERC",
    '^': "KC_CIRC",
    '&': "KC_AMPR",
    '*': "KC_ASTR",
    '(': "KC_LPRN",
    ')': "KC_RPRN",
    '_': "KC_UNDS",
    '+': "KC_PLUS",
    '{': "KC_LCBR",
    '}': "KC_RCBR",
    '|': "KC_PIPE",
    ':': "KC_COLN",
    '"': "KC_DQUO",
    '<': "KC_LT",
    '>': "KC_GT",
    '?': "KC_QUES",
}


class KeymapExportError(ValueError):
    """A layout character has no QMK keycode."""


def key_code(char: Optional[str]) -> str:
    try:
        return KEY_CODES[char]
    except KeyError:
        raise KeymapExportError(f"No QMK keycode for character {char!r}")


@dataclass(frozen=True)
class QmkKey:
    """One keymap entry: kind is 'direct', 'shift' (mod-tap) or 'layer' (layer-tap)."""
    code: str
    kind: str = 'direct'
    layer: int = 0

    def __str__(self) -> str:
        if self.kind == 'shift':
            return f"LSFT_T({self.code})"
        if self.kind == 'layer':
            return f"LT({self.layer},{self.code})"
        return self.code


class QmkKeymap:
    """QMK configurator keymap for the Ferris Sweep."""

    def __init__(self, layers: List[List[QmkKey]],
                 keyboard: str = "ferris/sweep",
                 keymap: str = "optimized",
                 layout: str = "LAYOUT_split_3x5_2",
                 author: str = ""):
        self.layers = layers
        self.keyboard = keyboard
        self.keymap = keymap
        self.layout = layout
        self.author = author

    @classmethod
    def from_layout(cls, layout: Layout, **kwargs) -> 'QmkKeymap':
        """
        Raises:
            KeymapExportError: some layout character has no keycode
        """
        layers = []
        for li, keys in enumerate(layout.layers):
            row = []
            for index, char in enumerate(keys):
                code = key_code(char)
                hold = layout.base_hold[index] if li == 0 else None
                if isinstance(hold, Shift):
                    row.append(QmkKey(code, 'shift'))
                elif isinstance(hold, Layer):
                    row.append(QmkKey(code, 'layer', hold.index))
                else:
                    row.append(QmkKey(code))
            layers.append(row)
        return cls(layers, **kwargs)

    def to_dict(self) -> Dict:
        return {
            'version': 1,
            'notes': "",
            'documentation': "",
            'keyboard': self.keyboard,
            'keymap': self.keymap,
            'layout': self.layout,
            'layers': [[str(key) for key in layer] for layer in self.layers],
            'author': self.author,
        }

    def save(self, path: str) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)
