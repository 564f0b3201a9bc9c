from typing import List

import pytest

from frequencies import FrequencyTables, count_text
from geometry import Finger, Hand, HandFinger, Key, Keyboard
from layout import Layout, qwerty

# Slots 0-9 are the home keys, slot number == finger index
# (0 left thumb, 1 left index ... 4 left pinky, 5 right thumb ... 9 right pinky).
# Slot 10 is a reach key for the left index finger, one row below its home.
SMALL_SLOTS = 11

SAMPLE_TEXT = """fn main() {
    let values = vec![1, 2, 3];
    for value in values.iter() {
        println!("value = {}", value * 2);
    }
}

def Parse(path):
    \"\"\"Read a file; return its lines.\"\"\"
    with open(path) as f:
        return [line.strip() for line in f if line and not line.startswith('#')]
"""


def home_keys() -> List[Key]:
    return [Key((f * 18.0, 0.0), HandFinger.from_index(f), True) for f in range(10)]


def blank_layout(slots: int = SMALL_SLOTS, layers: int = 1) -> Layout:
    return Layout([None] * slots, [[None] * slots for _ in range(layers)])


@pytest.fixture
def small_keyboard() -> Keyboard:
    keys = home_keys() + [Key((18.0, 17.0), HandFinger(Hand.LEFT, Finger.INDEX))]
    return Keyboard(keys)


@pytest.fixture
def ferris() -> Keyboard:
    return Keyboard.ferris_sweep()


@pytest.fixture
def qwerty_layout() -> Layout:
    return qwerty()


@pytest.fixture
def sample_tables() -> FrequencyTables:
    tables = FrequencyTables()
    count_text(SAMPLE_TEXT, tables)
    return tables


@pytest.fixture
def corpus_dir(tmp_path):
    """A tiny source tree: two counted files, one ignored directory, one other extension."""
    root = tmp_path / "corpus"
    (root / "src").mkdir(parents=True)
    (root / "target").mkdir()
    (root / "src" / "main.rs").write_text("fn a() {}\n", encoding="utf-8")
    (root / "lib.py").write_text("x = 1\n", encoding="utf-8")
    (root / "target" / "build.rs").write_text("zzz\n", encoding="utf-8")
    (root / "notes.txt").write_text("qqq\n", encoding="utf-8")
    return root
