# alphabet.py
"""
Target character set for layout optimization.

Every layout must be able to produce each of these characters, and the
frequency counter only tracks n-grams made of them.
"""

from typing import Tuple

ALPHABET = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    " \t\n"
    "\\\"<>(){}[]:!;.,/?=+&*^%@#_|'`$-~"
)

ALPHABET_SET = frozenset(ALPHABET)

# Position of each character in ALPHABET (used to index packed combo arrays)
ALPHABET_INDEX = {char: i for i, char in enumerate(ALPHABET)}

# ASCII membership table, built once at import
_MEMBERSHIP: Tuple[bool, ...] = tuple(chr(code) in ALPHABET_SET for code in range(128))


def in_alphabet(char: str) -> bool:
    """Return True if a single character belongs to the target alphabet."""
    code = ord(char)
    return code < 128 and _MEMBERSHIP[code]


def unshifted(char: str) -> str:
    """
    Glyph that has to be tapped to produce a character.

    Uppercase letters come from their lowercase key, '?' from '/'.
    Everything else is typed as itself.
    """
    if 'A' <= char <= 'Z':
        return char.lower()
    if char == '?':
        return '/'
    return char


def needs_shift(char: str) -> bool:
    return unshifted(char) != char
