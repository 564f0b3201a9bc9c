# geometry.py
"""
Physical keyboard geometry.

A Keyboard is an immutable list of keys, each with a 2D position (mm),
the hand/finger that presses it, and whether it is that finger's
home (base) key. Home keys are the zero-cost reference for movement.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Tuple

import numpy as np


class Hand(IntEnum):
    LEFT = 0
    RIGHT = 1


class Finger(IntEnum):
    THUMB = 0
    INDEX = 1
    MIDDLE = 2
    RING = 3
    PINKY = 4


N_FINGERS = len(Hand) * len(Finger)


@dataclass(frozen=True)
class HandFinger:
    hand: Hand
    finger: Finger

    @property
    def index(self) -> int:
        """Slot 0-9: left thumb..pinky, then right thumb..pinky."""
        return int(self.hand) * len(Finger) + int(self.finger)

    @classmethod
    def from_index(cls, index: int) -> 'HandFinger':
        return cls(Hand(index // len(Finger)), Finger(index % len(Finger)))

    def __str__(self) -> str:
        return f"{self.hand.name.lower()} {self.finger.name.lower()}"


@dataclass(frozen=True)
class Key:
    position: Tuple[float, float]
    finger: HandFinger
    is_base: bool = False


class Keyboard:
    """Immutable key geometry with lookup by slot index."""

    def __init__(self, keys: List[Key]):
        self._keys = tuple(keys)

        base_counts = [0] * N_FINGERS
        for key in self._keys:
            if key.is_base:
                base_counts[key.finger.index] += 1
        if any(count != 1 for count in base_counts):
            missing = [str(HandFinger.from_index(i)) for i, c in enumerate(base_counts) if c != 1]
            raise ValueError(f"Each finger needs exactly one base key; problem fingers: {missing}")

        self._base_positions = np.zeros((N_FINGERS, 2), dtype=np.float64)
        for key in self._keys:
            if key.is_base:
                self._base_positions[key.finger.index] = key.position
        self._base_positions.setflags(write=False)

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self._keys

    @property
    def size(self) -> int:
        return len(self._keys)

    def key(self, index: int) -> Key:
        return self._keys[index]

    def base_positions(self) -> np.ndarray:
        """Read-only (10, 2) array of home positions, indexed by HandFinger.index."""
        return self._base_positions

    @classmethod
    def ferris_sweep(cls) -> 'Keyboard':
        """
        34-key Ferris Sweep: 3x5 per hand plus two thumb keys per hand.

        Main keys are numbered column-major (slot = column * 3 + row),
        left pinky column first. Thumb keys are slots 30-33, left to right.
        """
        x_spacing = 18.0
        y_spacing = 17.0
        # Column stagger from the outer (pinky) column inwards
        y_stagger = [19.0, 7.0, 0.0, 5.5, 8.0]
        fingers = [Finger.PINKY, Finger.RING, Finger.MIDDLE, Finger.INDEX, Finger.INDEX]

        keys = []
        for column in range(10):
            if column < 5:
                finger_column, hand = column, Hand.LEFT
            else:
                finger_column, hand = 9 - column, Hand.RIGHT
            for row in range(3):
                keys.append(Key(
                    position=(column * x_spacing, y_stagger[finger_column] + row * y_spacing),
                    finger=HandFinger(hand, fingers[finger_column]),
                    # Inner index columns are reach keys, not home keys
                    is_base=row == 1 and column not in (4, 5),
                ))

        for i in range(4):
            keys.append(Key(
                position=((i + 3.0) * x_spacing, y_stagger[4] + 3.0 * y_spacing),
                finger=HandFinger(Hand.LEFT if i < 2 else Hand.RIGHT, Finger.THUMB),
                is_base=i in (1, 2),
            ))

        return cls(keys)
