import os

import numpy as np
import pandas as pd
import pytest

from alphabet import ALPHABET_INDEX
from frequencies import (CacheFailReason, FrequencyTables, count, count_text, count_uncached,
                         load_frequency_csv, save_frequency_csv, top_ngrams)


def test_count_text_ngrams() -> None:
    tables = FrequencyTables()
    count_text("abab", tables)
    assert tables.letters == {'a': 2, 'b': 2}
    assert tables.bigrams == {'ab': 2, 'ba': 1}
    assert tables.trigrams == {'aba': 1, 'bab': 1}
    assert tables.total_letters == 4


def test_carriage_returns_are_dropped() -> None:
    tables = FrequencyTables()
    count_text("a\r\nb", tables)
    assert '\r' not in "".join(tables.letters)
    assert tables.bigrams == {'a\n': 1, '\nb': 1}


def test_indentation_becomes_tabs() -> None:
    """Five leading spaces with tab width 4 are typed as one tab and one space."""
    tables = FrequencyTables()
    count_text("x\n     y", tables, tab_width=4)
    assert tables.letters['\t'] == 1
    assert tables.letters[' '] == 1
    assert tables.bigrams['\n\t'] == 1
    assert tables.bigrams['\t '] == 1
    assert tables.bigrams[' y'] == 1


def test_spaces_inside_a_line_are_kept() -> None:
    tables = FrequencyTables()
    count_text("a    b", tables, tab_width=4)
    assert tables.letters[' '] == 4
    assert '\t' not in tables.letters


def test_foreign_characters_break_ngrams() -> None:
    tables = FrequencyTables()
    count_text("aéb", tables)
    assert tables.letters == {'a': 1, 'b': 1}
    assert tables.bigrams == {}


def test_index_arrays_follow_updates() -> None:
    tables = FrequencyTables()
    tables.add('ab', 3)
    indices, freqs = tables.index_arrays(2)
    assert indices.tolist() == [[ALPHABET_INDEX['a'], ALPHABET_INDEX['b']]]
    assert freqs.tolist() == [3.0]

    tables.add('ba', 1)
    indices, freqs = tables.index_arrays(2)
    assert indices.shape == (2, 2)
    assert np.isclose(freqs.sum(), 4.0)


def test_empty_index_arrays_have_ngram_width() -> None:
    indices, freqs = FrequencyTables().index_arrays(3)
    assert indices.shape == (0, 3)
    assert freqs.shape == (0,)


def test_table_rejects_other_sizes() -> None:
    with pytest.raises(ValueError):
        FrequencyTables().table(4)


def test_count_uncached_walks_matching_files(corpus_dir) -> None:
    tables = count_uncached(str(corpus_dir), extensions=["rs", "py"], ignore=["target"])
    assert 'f' in tables.letters and 'x' in tables.letters
    # Ignored directory and other extensions are not counted
    assert 'z' not in tables.letters
    assert 'q' not in tables.letters


def test_cache_round_trip_preserves_whitespace(tmp_path) -> None:
    tables = FrequencyTables()
    count_text("a b\n\tc,d\"", tables)
    path = str(tmp_path / "cache.csv")
    save_frequency_csv(tables, path, "/some/corpus")

    loaded, corpus = load_frequency_csv(path)
    assert corpus == "/some/corpus"
    assert loaded == tables


def test_count_reports_missing_cache_then_hits(tmp_path, corpus_dir) -> None:
    cache = str(tmp_path / "freq.csv")

    tables, fault = count(str(corpus_dir), cache, ["rs", "py"], ["target"])
    assert fault is not None and fault.reason == CacheFailReason.FILE_SYSTEM
    assert os.path.exists(cache)

    cached, fault = count(str(corpus_dir), cache, ["rs", "py"], ["target"])
    assert fault is None
    assert cached == tables


def test_count_reports_bad_path(tmp_path, corpus_dir) -> None:
    cache = str(tmp_path / "freq.csv")
    save_frequency_csv(FrequencyTables(), cache, "/elsewhere")

    tables, fault = count(str(corpus_dir), cache, ["rs", "py"], ["target"])
    assert fault.reason == CacheFailReason.BAD_PATH
    assert fault.detail == "/elsewhere"
    assert tables.letters

    # The cache was rewritten for this corpus
    _, corpus = load_frequency_csv(cache)
    assert corpus == os.path.abspath(str(corpus_dir))


def test_count_reports_unreadable_cache(tmp_path, corpus_dir) -> None:
    cache = tmp_path / "freq.csv"
    cache.write_text("this is not,a frequency\ntable,at all\n", encoding="utf-8")

    tables, fault = count(str(corpus_dir), str(cache), ["rs", "py"], ["target"])
    assert fault.reason == CacheFailReason.DESERIALIZE
    assert tables.letters


def test_load_skips_ngrams_outside_alphabet(tmp_path, capsys) -> None:
    path = str(tmp_path / "cache.csv")
    pd.DataFrame([
        {'n': 0, 'ngram': '', 'count': 0, 'corpus': 'c'},
        {'n': 1, 'ngram': 'a', 'count': 5, 'corpus': ''},
        {'n': 1, 'ngram': '\\xe9', 'count': 2, 'corpus': ''},
    ]).to_csv(path, index=False)

    tables, _ = load_frequency_csv(path)
    assert tables.letters == {'a': 5}
    assert "skipped 1" in capsys.readouterr().out


def test_top_ngrams() -> None:
    assert top_ngrams({'a': 1, 'b': 5, 'c': 3}, 2) == [('b', 5), ('c', 3)]
