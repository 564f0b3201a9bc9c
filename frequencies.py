# frequencies.py
"""
Character, bigram and trigram frequency tables.

Counts are gathered by walking a corpus directory of source files and
are cached in a CSV file next to the run. Cache problems are never
fatal: count() reports why the cache could not be used, recounts from
the corpus and tries to rewrite the cache.

Cache CSV columns: n, ngram, count, corpus. A row with n == 0 records
the corpus path the counts came from. N-grams are written escaped
(unicode_escape, plus spaces as \\x20) so whitespace survives the CSV.
"""

import codecs
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from alphabet import ALPHABET_INDEX, in_alphabet

DEFAULT_EXTENSIONS = ("rs", "wgsl", "glsl", "vert", "comp", "frag", "py")
DEFAULT_IGNORE = ("target", ".git", "__pycache__")
DEFAULT_TAB_WIDTH = 4


#-----------------------------------------------------------------------------
# Tables
#-----------------------------------------------------------------------------
@dataclass
class FrequencyTables:
    """Occurrence counts of 1-, 2- and 3-character sequences."""
    letters: Dict[str, int] = field(default_factory=dict)
    bigrams: Dict[str, int] = field(default_factory=dict)
    trigrams: Dict[str, int] = field(default_factory=dict)

    # Index arrays for the scoring kernels, built on first use
    _arrays: Dict[int, Tuple[np.ndarray, np.ndarray]] = field(
        default_factory=dict, init=False, repr=False, compare=False)

    def table(self, n: int) -> Dict[str, int]:
        if n == 1:
            return self.letters
        if n == 2:
            return self.bigrams
        if n == 3:
            return self.trigrams
        raise ValueError(f"No frequency table for {n}-grams")

    def add(self, ngram: str, count: int = 1) -> None:
        table = self.table(len(ngram))
        table[ngram] = table.get(ngram, 0) + count
        self._arrays.clear()

    def index_arrays(self, n: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        (indices, frequencies) for the n-gram table.

        indices has shape (m, n) with ALPHABET positions; frequencies shape (m,).
        """
        if n not in self._arrays:
            table = self.table(n)
            indices = np.array([[ALPHABET_INDEX[c] for c in ngram] for ngram in table],
                               dtype=np.int64).reshape(len(table), n)
            freqs = np.array(list(table.values()), dtype=np.float64)
            self._arrays[n] = (indices, freqs)
        return self._arrays[n]

    @property
    def total_letters(self) -> int:
        return sum(self.letters.values())


class NGramTracker:
    """Remembers the last two characters so each new one extends the open n-grams."""

    def __init__(self):
        self.last: List[str] = []

    def clear(self) -> None:
        self.last = []

    def apply(self, tables: FrequencyTables, char: str) -> None:
        tables.add(char)
        if self.last:
            tables.add(self.last[-1] + char)
            if len(self.last) == 2:
                tables.add(self.last[0] + self.last[1] + char)
        self.last = (self.last + [char])[-2:]


def count_text(text: str, tables: FrequencyTables, tab_width: int = DEFAULT_TAB_WIDTH) -> None:
    """
    Add the n-grams of one text to tables.

    Carriage returns are dropped. Leading indentation after a newline is
    typed as one tab per tab_width spaces plus the leftover spaces.
    Characters outside the alphabet break the n-gram chain.
    """
    tracker = NGramTracker()
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        i += 1
        if char == '\r':
            continue
        if char == '\n':
            tracker.apply(tables, '\n')
            spaces = 0
            while i < n and text[i] == ' ':
                spaces += 1
                i += 1
            for _ in range(spaces // tab_width):
                tracker.apply(tables, '\t')
            for _ in range(spaces % tab_width):
                tracker.apply(tables, ' ')
            continue
        if in_alphabet(char):
            tracker.apply(tables, char)
        else:
            tracker.clear()


def _corpus_files(path: str, extensions: Iterable[str], ignore: Iterable[str]) -> List[str]:
    extensions = {ext.lstrip('.') for ext in extensions}
    ignore = set(ignore)
    files = []
    for root, dirs, names in os.walk(path):
        dirs[:] = sorted(d for d in dirs if d not in ignore)
        for name in sorted(names):
            ext = os.path.splitext(name)[1].lstrip('.')
            if ext in extensions:
                files.append(os.path.join(root, name))
    return files


def count_uncached(path: str,
                   extensions: Iterable[str] = DEFAULT_EXTENSIONS,
                   ignore: Iterable[str] = DEFAULT_IGNORE,
                   tab_width: int = DEFAULT_TAB_WIDTH,
                   show_progress: bool = False) -> FrequencyTables:
    """Count n-grams in every matching file below path. Unreadable files are skipped."""
    tables = FrequencyTables()
    files = _corpus_files(path, extensions, ignore)

    for file_path in tqdm(files, desc="Counting", unit=" files", disable=not show_progress):
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                text = f.read()
        except (OSError, UnicodeDecodeError):
            continue
        count_text(text, tables, tab_width)

    return tables


#-----------------------------------------------------------------------------
# Cache
#-----------------------------------------------------------------------------
class CacheFailReason(Enum):
    FILE_SYSTEM = "file system"
    DESERIALIZE = "deserialize"
    BAD_PATH = "bad path"


@dataclass
class CacheFault:
    reason: CacheFailReason
    detail: str

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.detail}"


def _escape(ngram: str) -> str:
    return ngram.encode('unicode_escape').decode('ascii').replace(' ', '\\x20')


def _unescape(text: str) -> str:
    return codecs.decode(text, 'unicode_escape')


def save_frequency_csv(tables: FrequencyTables, path: str, corpus: str = "") -> None:
    rows = [{'n': 0, 'ngram': '', 'count': 0, 'corpus': corpus}]
    for n in (1, 2, 3):
        for ngram, count in tables.table(n).items():
            rows.append({'n': n, 'ngram': _escape(ngram), 'count': count, 'corpus': ''})
    pd.DataFrame(rows, columns=['n', 'ngram', 'count', 'corpus']).to_csv(path, index=False)


def load_frequency_csv(path: str) -> Tuple[FrequencyTables, str]:
    """
    Load tables written by save_frequency_csv.

    Returns:
        (tables, corpus path recorded in the file)

    Raises:
        OSError: file cannot be read
        ValueError: file is not a valid frequency table
    """
    try:
        df = pd.read_csv(path, dtype={'ngram': str, 'corpus': str}, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValueError(f"Error parsing frequency table {path}: {e}")

    missing = {'n', 'ngram', 'count', 'corpus'} - set(df.columns)
    if missing:
        raise ValueError(f"Frequency table {path} missing columns: {sorted(missing)}")

    meta = df[df['n'] == 0]
    if meta.empty:
        raise ValueError(f"Frequency table {path} has no corpus record")
    corpus = str(meta['corpus'].iloc[0])

    tables = FrequencyTables()
    skipped = 0
    for n, ngram, count in zip(df['n'], df['ngram'], df['count']):
        if n == 0:
            continue
        text = _unescape(ngram)
        if len(text) != n or not 1 <= n <= 3:
            raise ValueError(f"Bad {n}-gram entry in {path}: {ngram!r}")
        if not all(in_alphabet(c) for c in text):
            skipped += 1
            continue
        tables.add(text, int(count))

    if skipped:
        print(f"Warning: skipped {skipped} n-grams outside the alphabet in {path}")

    return tables, corpus


def count(path: str, cache_path: str = "frequency_cache.csv",
          extensions: Iterable[str] = DEFAULT_EXTENSIONS,
          ignore: Iterable[str] = DEFAULT_IGNORE,
          tab_width: int = DEFAULT_TAB_WIDTH,
          show_progress: bool = False) -> Tuple[FrequencyTables, Optional[CacheFault]]:
    """
    Frequency tables for a corpus, using the cache when it matches.

    Returns:
        (tables, fault) where fault is None on a cache hit, otherwise the
        reason the cache was not used (the tables are then freshly counted)
    """
    corpus = os.path.abspath(path)

    try:
        cached, cached_corpus = load_frequency_csv(cache_path)
    except OSError as e:
        fault = CacheFault(CacheFailReason.FILE_SYSTEM, str(e))
    except ValueError as e:
        fault = CacheFault(CacheFailReason.DESERIALIZE, str(e))
    else:
        if cached_corpus == corpus:
            return cached, None
        fault = CacheFault(CacheFailReason.BAD_PATH, cached_corpus)

    tables = count_uncached(path, extensions, ignore, tab_width, show_progress)

    try:
        save_frequency_csv(tables, cache_path, corpus)
    except OSError as e:
        print(f"Warning: could not write frequency cache {cache_path}: {e}")

    return tables, fault


def top_ngrams(table: Dict[str, int], top_n: int) -> List[Tuple[str, int]]:
    """Most frequent entries, highest first."""
    return sorted(table.items(), key=lambda item: item[1], reverse=True)[:top_n]
