# scoring.py
"""
Biomechanical cost model for layered layouts.

Each character is typed by one or more key combinations (see resolver.py).
A combination puts some fingers on keys: the tap finger plus any fingers
holding shift/layer keys. Costs are computed per combination and averaged
over all valid combinations of a character (or bigram), then weighted by
corpus frequency.

Letter cost (per finger in use, relative to its home key):
    (|dx|, |dy|, key depth) / finger strength * hold multiplier * direction multiplier
    plus a stretch cost between neighbouring active fingers of one hand.

Bigram cost:
    sfb       - fingers used by both characters on different keys
    movement  - per-axis finger travel between the two characters
    staccato  - changes in which layer/shift key is held (0-2)

Trigram cost is a zero placeholder. Terminology kept for later work:
    alternates - trigrams with 2 hand changes
    rolls      - trigrams with 1 hand change
    redirects  - trigrams with 2 direction changes and no hand change

Note: with several valid combinations the mean cost is used. Earlier
versions of this model took the minimum instead.
"""

from dataclasses import asdict, astuple, dataclass, fields
from typing import Dict, Iterable, List, Tuple

import numpy as np
from numba import jit

from alphabet import ALPHABET, ALPHABET_INDEX
from frequencies import FrequencyTables
from geometry import Finger, Hand, N_FINGERS
from resolver import KeyboardLayout

#-----------------------------------------------------------------------------
# Model constants
#-----------------------------------------------------------------------------
# Relative finger strength (thumb, index, middle, ring, pinky); weaker costs more
FINGER_STRENGTH = {
    Finger.THUMB: 0.8,
    Finger.INDEX: 1.0,
    Finger.MIDDLE: 1.0,
    Finger.RING: 0.4,
    Finger.PINKY: 0.3,
}

HOLD_MULTIPLIER = 1.8      # finger is holding a modifier
KEY_DEPTH = 4.0            # synthetic third axis: cost of pressing at all
DIRECTION_PENALTY = 0.5    # movement against the natural axis costs up to 1.5x

# Empirical cost of spreading two fingers of one hand apart; thumb pairs are free
FINGER_GAP_COST = {
    (Finger.INDEX, Finger.MIDDLE): 0.5,
    (Finger.INDEX, Finger.RING): 0.7,
    (Finger.INDEX, Finger.PINKY): 0.9,
    (Finger.MIDDLE, Finger.RING): 1.0,
    (Finger.MIDDLE, Finger.PINKY): 1.2,
    (Finger.RING, Finger.PINKY): 1.5,
}


def _finger_arrays() -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    strength = np.zeros(N_FINGERS, dtype=np.float64)
    axes = np.zeros((N_FINGERS, 2), dtype=np.float64)
    diagonal = 1.0 / np.sqrt(2.0)
    for hand in Hand:
        for finger in Finger:
            f = int(hand) * len(Finger) + int(finger)
            strength[f] = FINGER_STRENGTH[finger]
            if finger == Finger.INDEX:
                # Index fingers curl in towards the centre of the board
                side = 1.0 if hand == Hand.LEFT else -1.0
                axes[f] = (side * diagonal, diagonal)
            else:
                axes[f] = (0.0, 1.0)

    gaps = np.zeros((len(Finger), len(Finger)), dtype=np.float64)
    for (a, b), cost in FINGER_GAP_COST.items():
        gaps[a, b] = cost
        gaps[b, a] = cost
    return strength, axes, gaps


STRENGTH, NATURAL_AXES, GAP_COSTS = _finger_arrays()

#-----------------------------------------------------------------------------
# JIT-compiled core calculations
#-----------------------------------------------------------------------------
@jit(nopython=True, fastmath=True)
def _combo_letter_cost_jit(row, positions, active, held, base, strength, axes, gaps,
                           hold_multiplier, key_depth, direction_penalty, out):
    """Add the cost of combo `row` to out = (base_x, base_y, base_z, stretch_x, stretch_y)."""
    n_fingers = positions.shape[1]
    per_hand = gaps.shape[0]

    for f in range(n_fingers):
        if not active[row, f]:
            continue
        dx = positions[row, f, 0] - base[f, 0]
        dy = positions[row, f, 1] - base[f, 1]
        length = np.sqrt(dx * dx + dy * dy)
        alignment = 1.0
        if length > 0.0:
            alignment = abs(dx * axes[f, 0] + dy * axes[f, 1]) / length
        hold = hold_multiplier if held[row, f] else 1.0
        weight = hold * (1.0 + direction_penalty * (1.0 - alignment)) / strength[f]
        out[0] += abs(dx) * weight
        out[1] += abs(dy) * weight
        out[2] += key_depth * weight

    for hand in range(n_fingers // per_hand):
        prev = -1
        for finger in range(per_hand):
            f = hand * per_hand + finger
            if not active[row, f]:
                continue
            if prev >= 0:
                gap = gaps[prev - hand * per_hand, finger]
                home_x = base[f, 0] - base[prev, 0]
                home_y = base[f, 1] - base[prev, 1]
                home = np.sqrt(home_x * home_x + home_y * home_y)
                if gap > 0.0 and home > 0.0:
                    hold_a = hold_multiplier if held[row, prev] else 1.0
                    hold_b = hold_multiplier if held[row, f] else 1.0
                    scale = gap * hold_a * hold_b / home
                    span_x = positions[row, f, 0] - positions[row, prev, 0]
                    span_y = positions[row, f, 1] - positions[row, prev, 1]
                    out[3] += abs(span_x - home_x) * scale
                    out[4] += abs(span_y - home_y) * scale
            prev = f


@jit(nopython=True, fastmath=True)
def _combo_bigram_cost_jit(r1, r2, positions, active, held, layer_key, shift_key,
                           strength, hold_multiplier, out):
    """Add the cost of combo r1 followed by r2 to out = (sfb, movement_x, movement_y, staccato)."""
    for f in range(positions.shape[1]):
        if not (active[r1, f] and active[r2, f]):
            continue
        dx = abs(positions[r2, f, 0] - positions[r1, f, 0])
        dy = abs(positions[r2, f, 1] - positions[r1, f, 1])
        if dx > 0.0 or dy > 0.0:
            out[0] += 1.0
        hold = hold_multiplier if (held[r1, f] or held[r2, f]) else 1.0
        out[1] += dx * hold / strength[f]
        out[2] += dy * hold / strength[f]

    if layer_key[r1] != layer_key[r2]:
        out[3] += 1.0
    if shift_key[r1] != shift_key[r2]:
        out[3] += 1.0


@jit(nopython=True, fastmath=True)
def _eval_letters_jit(chars, freqs, start, positions, active, held, base, strength, axes,
                      gaps, hold_multiplier, key_depth, direction_penalty):
    total = np.zeros(5)
    unit = np.zeros(5)
    for i in range(chars.shape[0]):
        c = chars[i, 0]
        lo = start[c]
        hi = start[c + 1]
        unit[:] = 0.0
        for row in range(lo, hi):
            _combo_letter_cost_jit(row, positions, active, held, base, strength, axes, gaps,
                                   hold_multiplier, key_depth, direction_penalty, unit)
        for k in range(5):
            total[k] += unit[k] / (hi - lo) * freqs[i]
    return total


@jit(nopython=True, fastmath=True)
def _eval_bigrams_jit(pairs, freqs, start, positions, active, held, layer_key, shift_key,
                      strength, hold_multiplier):
    total = np.zeros(4)
    unit = np.zeros(4)
    for i in range(pairs.shape[0]):
        c1 = pairs[i, 0]
        c2 = pairs[i, 1]
        unit[:] = 0.0
        for r1 in range(start[c1], start[c1 + 1]):
            for r2 in range(start[c2], start[c2 + 1]):
                _combo_bigram_cost_jit(r1, r2, positions, active, held, layer_key, shift_key,
                                       strength, hold_multiplier, unit)
        n_combos = (start[c1 + 1] - start[c1]) * (start[c2 + 1] - start[c2])
        for k in range(4):
            total[k] += unit[k] / n_combos * freqs[i]
    return total

#-----------------------------------------------------------------------------
# Cost containers
#-----------------------------------------------------------------------------
class CostVector:
    """Elementwise arithmetic over the float fields of a cost dataclass."""

    def as_array(self) -> np.ndarray:
        return np.array(astuple(self), dtype=np.float64)

    @classmethod
    def from_array(cls, values: Iterable[float]):
        return cls(*(float(v) for v in values))

    @classmethod
    def splat(cls, value: float):
        return cls(*([float(value)] * len(fields(cls))))

    @classmethod
    def zeros(cls):
        return cls.splat(0.0)

    @classmethod
    def nan(cls):
        return cls.splat(float('nan'))

    def _check(self, other) -> None:
        if type(other) is not type(self):
            raise TypeError(f"Cannot combine {type(self).__name__} with {type(other).__name__}")

    def __add__(self, other):
        self._check(other)
        return self.from_array(self.as_array() + other.as_array())

    def __mul__(self, scalar: float):
        return self.from_array(self.as_array() * float(scalar))

    __rmul__ = __mul__

    def __truediv__(self, other):
        """Elementwise ratio; a zero denominator gives nan/inf instead of raising."""
        self._check(other)
        with np.errstate(divide='ignore', invalid='ignore'):
            return self.from_array(self.as_array() / other.as_array())

    def min(self, other):
        self._check(other)
        return self.from_array(np.fmin(self.as_array(), other.as_array()))


@dataclass
class LetterEval(CostVector):
    base_x: float = 0.0
    base_y: float = 0.0
    base_z: float = 0.0
    stretch_x: float = 0.0
    stretch_y: float = 0.0


@dataclass
class BigramEval(CostVector):
    sfb: float = 0.0
    movement_x: float = 0.0
    movement_y: float = 0.0
    staccato: float = 0.0


@dataclass
class TrigramEval(CostVector):
    redirects: float = 0.0
    rolls: float = 0.0
    alternates: float = 0.0


@dataclass
class Evaluation:
    """Frequency-weighted cost of one layout over one corpus."""
    letter: LetterEval
    bigram: BigramEval
    trigram: TrigramEval

    def __add__(self, other: 'Evaluation') -> 'Evaluation':
        return Evaluation(self.letter + other.letter, self.bigram + other.bigram,
                          self.trigram + other.trigram)

    def __mul__(self, scalar: float) -> 'Evaluation':
        return Evaluation(self.letter * scalar, self.bigram * scalar, self.trigram * scalar)

    __rmul__ = __mul__

    def __truediv__(self, other: 'Evaluation') -> 'Evaluation':
        return Evaluation(self.letter / other.letter, self.bigram / other.bigram,
                          self.trigram / other.trigram)

    def as_dict(self) -> Dict[str, float]:
        """Flat mapping such as {'letter.base_x': ..., 'bigram.staccato': ...}."""
        flat = {}
        for group in ('letter', 'bigram', 'trigram'):
            for name, value in asdict(getattr(self, group)).items():
                flat[f"{group}.{name}"] = value
        return flat

    def get(self, name: str) -> float:
        group, _, field_name = name.partition('.')
        if group not in ('letter', 'bigram', 'trigram'):
            raise KeyError(f"Unknown evaluation group in {name!r}")
        component = getattr(self, group)
        if field_name not in {f.name for f in fields(component)}:
            raise KeyError(f"Unknown evaluation field {name!r}")
        return getattr(component, field_name)


EVALUATION_FIELDS = list(Evaluation(LetterEval(), BigramEval(), TrigramEval()).as_dict())

#-----------------------------------------------------------------------------
# Evaluation
#-----------------------------------------------------------------------------
def _check_resolved(info: KeyboardLayout, indices: np.ndarray) -> None:
    if indices.size == 0:
        return
    counts = info.arrays.combo_counts()
    missing = counts[indices.ravel()] == 0
    if np.any(missing):
        char = ALPHABET[indices.ravel()[np.argmax(missing)]]
        raise KeyError(f"Character {char!r} was not resolved for this layout")


def _letters_from_arrays(info: KeyboardLayout, indices: np.ndarray, freqs: np.ndarray) -> LetterEval:
    _check_resolved(info, indices)
    a = info.arrays
    total = _eval_letters_jit(indices, freqs, a.start, a.positions, a.active, a.held,
                              info.base, STRENGTH, NATURAL_AXES, GAP_COSTS,
                              HOLD_MULTIPLIER, KEY_DEPTH, DIRECTION_PENALTY)
    return LetterEval.from_array(total)


def _bigrams_from_arrays(info: KeyboardLayout, indices: np.ndarray, freqs: np.ndarray) -> BigramEval:
    _check_resolved(info, indices)
    a = info.arrays
    total = _eval_bigrams_jit(indices, freqs, a.start, a.positions, a.active, a.held,
                              a.layer_key, a.shift_key, STRENGTH, HOLD_MULTIPLIER)
    return BigramEval.from_array(total)


def _single(ngram: str) -> Tuple[np.ndarray, np.ndarray]:
    indices = np.array([[ALPHABET_INDEX[c] for c in ngram]], dtype=np.int64)
    return indices, np.ones(1, dtype=np.float64)


def one_letter(info: KeyboardLayout, letter: str) -> LetterEval:
    """Mean cost of typing one character over its valid combos."""
    return _letters_from_arrays(info, *_single(letter))


def one_bigram(info: KeyboardLayout, bigram: str) -> BigramEval:
    """Mean cost of one bigram over all pairs of valid combos."""
    return _bigrams_from_arrays(info, *_single(bigram))


def one_trigram(info: KeyboardLayout, trigram: str) -> TrigramEval:
    # Not modelled yet
    return TrigramEval.zeros()


def eval_letters(info: KeyboardLayout, tables: FrequencyTables) -> LetterEval:
    return _letters_from_arrays(info, *tables.index_arrays(1))


def eval_bigrams(info: KeyboardLayout, tables: FrequencyTables) -> BigramEval:
    return _bigrams_from_arrays(info, *tables.index_arrays(2))


def eval_trigrams(info: KeyboardLayout, tables: FrequencyTables) -> TrigramEval:
    # Every trigram costs zero, so the weighted sum is zero too
    return TrigramEval.zeros()


def evaluate(info: KeyboardLayout, tables: FrequencyTables) -> Evaluation:
    """
    Total frequency-weighted cost of a resolved layout.

    Args:
        info: Resolved combos for the layout
        tables: Corpus frequency tables

    Returns:
        Evaluation with letter, bigram and (placeholder) trigram components

    Raises:
        KeyError: the tables contain a character the layout was not resolved for
    """
    return Evaluation(
        letter=eval_letters(info, tables),
        bigram=eval_bigrams(info, tables),
        trigram=eval_trigrams(info, tables),
    )

#-----------------------------------------------------------------------------
# Objective
#-----------------------------------------------------------------------------
DEFAULT_WEIGHTS = {
    'letter.base_x': 2.0,
    'letter.base_y': 1.0,
    'letter.base_z': 5.0,
    'letter.stretch_x': 5.0,
    'letter.stretch_y': 3.0,
    'bigram.movement_x': 3.0,
    'bigram.movement_y': 2.0,
    'bigram.staccato': 20.0,
}


def sse(pairs: Iterable[Tuple[float, float]]) -> float:
    """Weighted sum of squares over (weight, value) pairs."""
    return float(sum(weight * value * value for weight, value in pairs))


def objective_value(evaluation: Evaluation, weights: Dict[str, float] = None) -> float:
    """Collapse an (already normalized) evaluation into one scalar to minimize."""
    weights = DEFAULT_WEIGHTS if weights is None else weights
    return sse((weight, evaluation.get(name)) for name, weight in weights.items())


def validate_weights(weights: Dict[str, float]) -> List[str]:
    """Names in weights that are not evaluation fields."""
    return [name for name in weights if name not in EVALUATION_FIELDS]
