# layout.py
"""
Logical layout model.

A Layout has one optional hold behavior per physical slot (only meaningful
on the base layer) and an ordered list of layers, each mapping slot ->
optional character. Layer 0 is the base layer; layer k > 0 is reached by
holding a base slot whose behavior is Layer(k).

Includes JSON persistence and the seed layouts used to start a search.
"""

import json
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union


@dataclass(frozen=True)
class Shift:
    """Hold behavior: acts as shift."""

    def __str__(self) -> str:
        return "S"


@dataclass(frozen=True)
class Layer:
    """Hold behavior: activates layer `index` (>= 1)."""
    index: int

    def __post_init__(self):
        if self.index < 1:
            raise ValueError(f"Layer behavior needs a layer index >= 1, got {self.index}")

    def __str__(self) -> str:
        return str(self.index)


Behavior = Union[Shift, Layer]
SHIFT = Shift()


@dataclass(frozen=True)
class KeyLoc:
    layer: int
    index: int


class Layout:
    """Hold behaviors plus per-layer tap characters, all sized to one slot count."""

    def __init__(self, base_hold: List[Optional[Behavior]], layers: List[List[Optional[str]]]):
        size = len(base_hold)
        for i, layer in enumerate(layers):
            if len(layer) != size:
                raise ValueError(f"Layer {i} has {len(layer)} slots, expected {size}")
        if not layers:
            raise ValueError("A layout needs at least one layer")
        self.base_hold = list(base_hold)
        self.layers = [list(layer) for layer in layers]

    # Access -------------------------------------------------------------
    @property
    def layer_count(self) -> int:
        return len(self.layers)

    @property
    def layer_size(self) -> int:
        return len(self.base_hold)

    def layer(self, index: int) -> List[Optional[str]]:
        if not 0 <= index < len(self.layers):
            raise IndexError(f"Layer {index} out of range (layout has {len(self.layers)} layers)")
        return self.layers[index]

    # Same list object; mutating it mutates the layout
    layer_mut = layer

    def key(self, layer: int, index: int) -> Optional[str]:
        return self.layer(layer)[index]

    def set_key(self, layer: int, index: int, char: Optional[str]) -> None:
        self.layer(layer)[index] = char

    def set_hold(self, index: int, behavior: Optional[Behavior]) -> None:
        self.base_hold[index] = behavior

    # Search -------------------------------------------------------------
    def find_on_base(self, predicate: Callable[[Behavior], bool]) -> List[KeyLoc]:
        """Base-layer slots whose hold behavior satisfies predicate."""
        return [KeyLoc(0, i) for i, behavior in enumerate(self.base_hold)
                if behavior is not None and predicate(behavior)]

    def find_all_key(self, predicate: Callable[[str], bool]) -> List[KeyLoc]:
        """(layer, slot) locations on every layer whose character satisfies predicate."""
        return [KeyLoc(li, i)
                for li, layer in enumerate(self.layers)
                for i, char in enumerate(layer)
                if char is not None and predicate(char)]

    # Mutation -----------------------------------------------------------
    def swap_holds(self, i: int, j: int) -> None:
        self.base_hold[i], self.base_hold[j] = self.base_hold[j], self.base_hold[i]

    def swap_keys(self, layer: int, i: int, j: int) -> None:
        keys = self.layer(layer)
        keys[i], keys[j] = keys[j], keys[i]

    def swap_between_layers(self, layer_a: int, layer_b: int, index: int) -> None:
        """Exchange the character at one slot between two layers."""
        first, second = self.layer(layer_a), self.layer(layer_b)
        held = first[index]
        first[index] = second[index]
        second[index] = held

    def copy(self) -> 'Layout':
        return Layout(self.base_hold, self.layers)

    def copy_from(self, other: 'Layout') -> None:
        """Overwrite this layout in place with the contents of other."""
        self.base_hold[:] = other.base_hold
        self.layers = [list(layer) for layer in other.layers]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Layout):
            return NotImplemented
        return self.base_hold == other.base_hold and self.layers == other.layers

    def __repr__(self) -> str:
        return f"Layout(slots={self.layer_size}, layers={self.layer_count})"

    # Persistence --------------------------------------------------------
    def to_dict(self) -> Dict:
        """
        JSON-ready structure.

        baseHold: one tag per slot ("" none, "S" shift, digit for a layer).
        layers: per-layer lists of single characters ("" for empty).
        """
        base_hold = []
        for behavior in self.base_hold:
            if behavior is None:
                base_hold.append("")
            elif isinstance(behavior, Layer) and behavior.index > 9:
                raise ValueError(f"Cannot serialize layer index {behavior.index} as a single digit")
            else:
                base_hold.append(str(behavior))

        layers = []
        for li, layer in enumerate(self.layers):
            if li > 0 and ' ' in layer:
                raise ValueError(f"Space character is reserved to the base layer (found on layer {li})")
            layers.append(["" if char is None else char for char in layer])

        return {'baseHold': base_hold, 'layers': layers}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Layout':
        """Inverse of to_dict. A plain string per layer/baseHold is also accepted, with ' ' as blank."""
        try:
            raw_hold = data['baseHold']
            raw_layers = data['layers']
        except (KeyError, TypeError) as e:
            raise ValueError(f"Layout data missing field: {e}")

        base_hold = [_parse_hold(tag) for tag in _slots(raw_hold)]

        layers = []
        for raw_layer in raw_layers:
            keys = []
            for char in _slots(raw_layer):
                if not isinstance(char, str) or len(char) > 1:
                    raise ValueError(f"Layout slot must hold at most one character: {char!r}")
                keys.append(char or None)
            if len(keys) != len(base_hold):
                raise ValueError(f"Layer has {len(keys)} slots, baseHold has {len(base_hold)}")
            layers.append(keys)

        return cls(base_hold, layers)


def _slots(raw: Union[str, List[str]]) -> List[str]:
    if isinstance(raw, str):
        return ["" if char == ' ' else char for char in raw]
    return list(raw)


def _parse_hold(tag: str) -> Optional[Behavior]:
    if not isinstance(tag, str):
        raise ValueError(f"Hold tag must be a string, got {tag!r}")
    if tag in ("", " "):
        return None
    if tag == "S":
        return SHIFT
    if len(tag) == 1 and tag.isdigit() and tag != "0":
        return Layer(int(tag))
    raise ValueError(f"Unknown hold tag: {tag!r}")


def save_layout(layout: Layout, path: str) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(layout.to_dict(), f, indent=2)


def load_layout(path: str) -> Layout:
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error parsing layout file {path}: {e}")
    return Layout.from_dict(data)


#-----------------------------------------------------------------------------
# Seed layouts (Ferris Sweep, 34 slots)
#-----------------------------------------------------------------------------
FERRIS_SLOTS = 34

# Hold behaviors: shift on both pinky homes, layers 1/2 on index homes,
# layers 3/4 on the thumbs
SEED_HOLDS = " S        1        2        S 3443"

# Layer strings are column-major over the 30 main keys; ' ' is empty
SEED_SYMBOLS_1 = " ^  *  &        # _~-|/\\'\"` $ "
SEED_SYMBOLS_2 = " { :}!<([>)];@        =, +. % "
SEED_SYMBOLS_3 = "    % :/  \n!                  "
SEED_NUMBERS = "1  2  3  4  5  6  7  8  9  0  "


def make_hold(tags: str) -> List[Optional[Behavior]]:
    return [_parse_hold(tag) for tag in tags]


def _layer_simple(keys: str) -> List[Optional[str]]:
    layer = [None if char == ' ' else char for char in keys]
    return layer + [None] * (FERRIS_SLOTS - len(layer))


def layout_any(base: str) -> Layout:
    """Wrap a 30-character base layer (column-major) in the standard symbol/number layers."""
    if len(base) != 30:
        raise ValueError(f"Base layer needs 30 characters, got {len(base)}")

    layer0 = _layer_simple(base)
    layer0[31] = ' '
    layer0[32] = ' '
    layer3 = _layer_simple(SEED_SYMBOLS_3)
    layer3[31] = '\t'

    return Layout(make_hold(SEED_HOLDS), [
        layer0,
        _layer_simple(SEED_SYMBOLS_1),
        _layer_simple(SEED_SYMBOLS_2),
        layer3,
        _layer_simple(SEED_NUMBERS),
    ])


def qwerty() -> Layout:
    return layout_any("qazwsxedcrfvtgbyhnujmik,ol.p;/")


def colemak_dh() -> Layout:
    return layout_any("qazwrxfscptdbgvjmklnhue,yi.;o/")


def canary() -> Layout:
    return layout_any("wcqlrjysvptdbgkzmxfnhoe/ui,;a.")


SEED_LAYOUTS = {
    'qwerty': qwerty,
    'colemak_dh': colemak_dh,
    'canary': canary,
}

# Slot permutation that swaps the hands: columns reversed, thumbs reversed
_MIRROR = [(9 - i // 3) * 3 + i % 3 for i in range(30)] + [33, 32, 31, 30]


def flip_layout(layout: Layout) -> Layout:
    """Mirror a Ferris Sweep layout left-to-right."""
    if layout.layer_size != FERRIS_SLOTS:
        raise ValueError(f"Mirroring needs a {FERRIS_SLOTS}-slot layout, got {layout.layer_size}")
    return Layout(
        [layout.base_hold[i] for i in _MIRROR],
        [[layer[i] for i in _MIRROR] for layer in layout.layers],
    )
