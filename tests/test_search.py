import math

import numpy as np
import pytest

from conftest import blank_layout
from layout import KeyLoc, Layer, SHIFT, qwerty
from resolver import UnreachableCharacterError
from search import (CleanupConfig, FeasibilityEvaluator, MutationConfig, accept_probability,
                    anneal, check_feasibility, exponential_profile, linear_profile,
                    make_cleanup, mutate)

NO_MUTATION = MutationConfig(hold_swap=0.0, key_swap=0.0, vertical_swap=0.0)


def _chars(layout):
    return sorted(c for layer in layout.layers for c in layer if c is not None)


def _position_of_a(layout):
    """Toy objective: slot index of 'a' on the base layer (lower is better), None once it leaves."""
    if 'a' not in layout.layer(0):
        return None
    return float(layout.layer(0).index('a')), None


def _toy_layout():
    layout = blank_layout(layers=2)
    for i, char in enumerate("zyxwvutsrqa"):
        layout.set_key(0, i, char)
    return layout


def test_feasibility_rules(qwerty_layout) -> None:
    assert check_feasibility(qwerty_layout) is None

    letter_up = qwerty_layout.copy()
    letter_up.swap_between_layers(0, 1, 0)
    assert "letter" in check_feasibility(letter_up)

    space_up = qwerty_layout.copy()
    space_up.swap_between_layers(0, 2, 31)
    assert "space" in check_feasibility(space_up)

    digits_split = qwerty_layout.copy()
    digits_split.swap_between_layers(4, 1, 0)
    assert "digits" in check_feasibility(digits_split)


def test_disabled_mutation_changes_nothing(qwerty_layout) -> None:
    layout = qwerty_layout.copy()
    rng = np.random.default_rng(0)
    for _ in range(20):
        mutate(rng, layout, NO_MUTATION)
    assert layout == qwerty_layout


def test_mutation_preserves_characters(qwerty_layout) -> None:
    layout = qwerty_layout.copy()
    rng = np.random.default_rng(1)
    for _ in range(200):
        mutate(rng, layout)
    assert _chars(layout) == _chars(qwerty_layout)
    assert sorted(map(str, filter(None, layout.base_hold))) == \
        sorted(map(str, filter(None, qwerty_layout.base_hold)))


def test_optional_operators() -> None:
    layout = blank_layout(layers=2)
    rng = np.random.default_rng(2)
    config = MutationConfig(hold_swap=0.0, key_swap=0.0, vertical_swap=0.0,
                            hold_reassign=1.0, key_inject=1.0)
    for _ in range(50):
        mutate(rng, layout, config)
    assert _chars(layout)
    assert any(behavior is not None for behavior in layout.base_hold)
    assert all(c == c.lower() or not c.isalpha() for c in _chars(layout))


def test_accept_probability() -> None:
    assert accept_probability(10.0, 5.0, 0.0) == 1.0
    assert accept_probability(10.0, 12.0, 0.0) == 0.0
    assert accept_probability(10.0, 10.0, 0.0) == 0.0
    assert accept_probability(10.0, 12.0, 2.0) == pytest.approx(math.exp(-1.0))


def test_profiles() -> None:
    linear = linear_profile(10.0)
    assert linear(0.0) == 10.0
    assert linear(0.5) == 5.0
    assert linear_profile(10.0, floor=2.0)(0.9) == 2.0

    geometric = exponential_profile(10.0, 0.1)
    assert geometric(0.0) == pytest.approx(10.0)
    assert geometric(0.5) == pytest.approx(1.0)
    with pytest.raises(ValueError):
        exponential_profile(0.0, 1.0)


def test_zero_iterations_returns_start() -> None:
    layout = _toy_layout()
    calls = []

    def evaluate_fn(candidate):
        calls.append(candidate)
        return _position_of_a(candidate)

    result, score = anneal(layout, 0, linear_profile(1.0), evaluate_fn, rng=np.random.default_rng(0))
    assert result == layout
    assert result is not layout
    assert score == 10.0
    assert len(calls) == 1


def test_infeasible_start_is_rejected() -> None:
    with pytest.raises(ValueError):
        anneal(_toy_layout(), 10, linear_profile(1.0), lambda layout: None)


def test_zero_temperature_never_gets_worse() -> None:
    layout = _toy_layout()
    history = []
    result, score = anneal(layout, 300, linear_profile(0.0), _position_of_a,
                           rng=np.random.default_rng(3), history=history, report_every=10)
    assert score <= 10.0
    assert score == _position_of_a(result)[0]
    scores = [s for _, s in history]
    assert scores == sorted(scores, reverse=True)
    # Every report_every iterations plus the final state
    assert [i for i, _ in history] == list(range(0, 300, 10)) + [300]
    # The input layout is left alone
    assert layout == _toy_layout()


def test_seeded_runs_are_reproducible() -> None:
    runs = [anneal(_toy_layout(), 100, linear_profile(5.0), _position_of_a,
                   rng=np.random.default_rng(42)) for _ in range(2)]
    assert runs[0][0] == runs[1][0]
    assert runs[0][1] == runs[1][1]


def test_infeasible_candidates_are_retried() -> None:
    """Candidates moving 'a' off the base layer are infeasible and never accepted."""
    rejected = []

    def evaluate_fn(candidate):
        result = _position_of_a(candidate)
        if result is None:
            rejected.append(candidate)
        return result

    result, _ = anneal(_toy_layout(), 200, linear_profile(2.0), evaluate_fn,
                       rng=np.random.default_rng(5))
    assert rejected
    assert 'a' in result.layer(0)


def test_modifier_runs_after_acceptance() -> None:
    seen = []

    def evaluate_fn(candidate):
        result = _position_of_a(candidate)
        return None if result is None else (result[0], "aux")

    def modifier(rng, layout, aux):
        seen.append(aux)

    anneal(_toy_layout(), 50, linear_profile(100.0), evaluate_fn, modifier=modifier,
           rng=np.random.default_rng(6))
    assert seen and set(seen) == {"aux"}


def test_cleanup_clears_unused_slots() -> None:
    layout = blank_layout(layers=2)
    layout.set_key(0, 0, 'a')
    layout.set_key(0, 1, 'b')
    layout.set_key(1, 2, '{')
    layout.set_hold(3, SHIFT)
    layout.set_hold(4, Layer(1))

    cleanup = make_cleanup(CleanupConfig(unused_hold=1.0, unused_key=1.0))
    cleanup(np.random.default_rng(0), layout, ({KeyLoc(0, 0), KeyLoc(1, 2)}, {4}))
    assert layout.key(0, 0) == 'a' and layout.key(1, 2) == '{'
    assert layout.key(0, 1) is None
    assert layout.base_hold[3] is None
    assert layout.base_hold[4] == Layer(1)

    untouched = make_cleanup(CleanupConfig(unused_hold=0.0, unused_key=0.0))
    before = layout.copy()
    untouched(np.random.default_rng(0), layout, (set(), set()))
    assert layout == before


def test_feasibility_evaluator(ferris, qwerty_layout, sample_tables) -> None:
    evaluator = FeasibilityEvaluator(ferris, sample_tables, qwerty_layout,
                                     start=qwerty_layout, target_score=1000.0)
    score, (used_keys, used_holds) = evaluator(qwerty_layout)
    assert score == pytest.approx(1000.0)
    assert KeyLoc(0, 0) in used_keys
    assert used_holds

    normalized = evaluator.normalize(evaluator.reference_eval)
    assert all(value in (0.0, pytest.approx(100.0)) for value in normalized.as_dict().values())

    infeasible = qwerty_layout.copy()
    infeasible.swap_between_layers(0, 1, 0)
    assert evaluator(infeasible) is None

    unreachable = qwerty_layout.copy()
    unreachable.set_key(0, 0, None)
    assert evaluator(unreachable) is None


def test_infeasible_start_layout_for_evaluator(ferris, qwerty_layout, sample_tables) -> None:
    start = qwerty_layout.copy()
    for loc in start.find_all_key(lambda c: c == "%"):
        start.set_key(loc.layer, loc.index, None)
    with pytest.raises(UnreachableCharacterError, match="%") as err:
        FeasibilityEvaluator(ferris, sample_tables, qwerty_layout, start=start)
    assert err.value.character == "%"

    misplaced = qwerty_layout.copy()
    misplaced.swap_between_layers(0, 1, 0)
    with pytest.raises(ValueError, match="letter on layer 1"):
        FeasibilityEvaluator(ferris, sample_tables, qwerty_layout, start=misplaced)


def test_evaluator_reports_start_score(ferris, qwerty_layout, sample_tables) -> None:
    evaluator = FeasibilityEvaluator(ferris, sample_tables, qwerty_layout,
                                     start=qwerty_layout, target_score=1000.0)
    assert evaluator.start_score == pytest.approx(1000.0)
    assert FeasibilityEvaluator(ferris, sample_tables, qwerty_layout).start_score is None


def test_annealing_a_real_layout(ferris, sample_tables) -> None:
    start = qwerty()
    evaluator = FeasibilityEvaluator(ferris, sample_tables, start, start=start, target_score=1000.0)
    result, score = anneal(start, 40, linear_profile(0.0), evaluator,
                           modifier=make_cleanup(), rng=np.random.default_rng(11))
    assert score <= 1000.0 + 1e-6
    assert check_feasibility(result) is None
    assert evaluator(result)[0] == pytest.approx(score)


def test_cooling_runs_do_not_worsen_on_average() -> None:
    finals = []
    for seed in range(20):
        _, score = anneal(_toy_layout(), 150, linear_profile(3.0, floor=1e-6), _position_of_a,
                          rng=np.random.default_rng(seed))
        finals.append(score)
    assert np.mean(finals) <= 10.0
