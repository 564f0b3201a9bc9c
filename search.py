# search.py
"""
Simulated annealing over layered layouts.

Consolidates all search logic including:
- Mutation operators (hold swaps, key swaps, cross-layer swaps, extras)
- Feasibility-checking evaluator used as the annealing objective
- Post-acceptance cleanup of slots no combination uses
- The annealing loop and temperature profiles
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, Tuple

import numpy as np
from tqdm import tqdm

from alphabet import ALPHABET, unshifted
from frequencies import FrequencyTables
from geometry import Keyboard
from layout import KeyLoc, Layer, Layout, SHIFT
from resolver import KeyboardLayout, UnreachableCharacterError
from scoring import DEFAULT_WEIGHTS, Evaluation, evaluate, objective_value

Usage = Tuple[Set[KeyLoc], Set[int]]
EvalResult = Optional[Tuple[float, Any]]

#-----------------------------------------------------------------------------
# Mutation
#-----------------------------------------------------------------------------
@dataclass
class MutationConfig:
    """Probability of applying each mutation operator per attempt."""
    hold_swap: float = 1.0
    key_swap: float = 1.0
    vertical_swap: float = 0.8
    # Optional operators, off by default
    hold_reassign: float = 0.0
    key_inject: float = 0.0


# Characters the injection operator can place (shifted glyphs come from shift)
INJECTABLE = sorted({unshifted(c) for c in ALPHABET})


def mutate(rng: np.random.Generator, layout: Layout, config: Optional[MutationConfig] = None) -> None:
    """Apply each operator independently with its configured probability, in place."""
    config = config or MutationConfig()
    layer_count = layout.layer_count
    size = layout.layer_size

    if rng.random() < config.hold_swap:
        i1, i2 = rng.integers(0, size, 2)
        layout.swap_holds(int(i1), int(i2))

    if rng.random() < config.key_swap:
        target = int(rng.integers(0, layer_count))
        i1, i2 = rng.integers(0, size, 2)
        layout.swap_keys(target, int(i1), int(i2))

    if layer_count > 1 and rng.random() < config.vertical_swap:
        layer1 = int(rng.integers(0, layer_count))
        # Second layer drawn from the remaining ones
        layer2 = int(rng.integers(1, layer_count))
        if layer2 <= layer1:
            layer2 -= 1
        index = int(rng.integers(0, size))
        layout.swap_between_layers(layer1, layer2, index)

    if config.hold_reassign > 0 and rng.random() < config.hold_reassign:
        index = int(rng.integers(0, size))
        choice = int(rng.integers(0, layer_count + 1))
        # 0 -> no behavior, layer_count -> shift, otherwise that layer
        if choice == 0:
            layout.set_hold(index, None)
        elif choice == layer_count:
            layout.set_hold(index, SHIFT)
        else:
            layout.set_hold(index, Layer(choice))

    if config.key_inject > 0 and rng.random() < config.key_inject:
        empty = [KeyLoc(li, i) for li in range(layer_count)
                 for i in range(size) if layout.key(li, i) is None]
        if empty:
            loc = empty[int(rng.integers(0, len(empty)))]
            layout.set_key(loc.layer, loc.index, INJECTABLE[int(rng.integers(0, len(INJECTABLE)))])

#-----------------------------------------------------------------------------
# Feasibility and objective
#-----------------------------------------------------------------------------
def check_feasibility(layout: Layout) -> Optional[str]:
    """
    Structural constraints on a candidate layout.

    Returns:
        None if feasible, otherwise a short reason
    """
    for li, layer in enumerate(layout.layers[1:], start=1):
        if any(c is not None and 'a' <= c <= 'z' for c in layer):
            return f"letter on layer {li}"
        if ' ' in layer:
            return f"space on layer {li}"

    digit_layers = sum(1 for layer in layout.layers
                       if any(c is not None and '0' <= c <= '9' for c in layer))
    if digit_layers > 1:
        return f"digits spread over {digit_layers} layers"

    return None


class FeasibilityEvaluator:
    """
    Annealing objective: None for infeasible layouts, otherwise (score, usage).

    The evaluation is normalized against a reference layout (x100, so the
    reference scores 100 on every component), collapsed with the weighted
    sum of squares, and scaled so the start layout scores target_score.
    usage is (used tap keys, used hold slots) from the resolver.
    """

    def __init__(self, keyboard: Keyboard, tables: FrequencyTables,
                 reference: Layout, start: Optional[Layout] = None,
                 weights: Optional[dict] = None, target_score: float = 1_000_000.0):
        self.keyboard = keyboard
        self.tables = tables
        self.weights = dict(DEFAULT_WEIGHTS if weights is None else weights)

        reference_info = KeyboardLayout.generate(reference, keyboard)
        self.reference_eval = evaluate(reference_info, tables)

        self.scale = 1.0
        self.start_score = None
        if start is not None:
            reason = check_feasibility(start)
            if reason is not None:
                raise ValueError(f"Start layout is infeasible: {reason}")
            # Unreachable characters propagate with the offending character
            start_info = KeyboardLayout.generate(start, keyboard)
            start_value = objective_value(self.normalize(evaluate(start_info, tables)), self.weights)
            if start_value > 0:
                self.scale = target_score / start_value
            self.start_score = start_value * self.scale

    def normalize(self, evaluation: Evaluation) -> Evaluation:
        """Components the reference never exercises (0 / 0) normalize to 0."""
        ratio = evaluation / self.reference_eval * 100.0
        return Evaluation(*(type(part).from_array(np.nan_to_num(part.as_array(), nan=0.0, posinf=np.inf))
                            for part in (ratio.letter, ratio.bigram, ratio.trigram)))

    def evaluate_layout(self, layout: Layout, usage: Optional[Usage] = None) -> Optional[Evaluation]:
        """Normalized evaluation, or None if the layout is infeasible."""
        if check_feasibility(layout) is not None:
            return None
        used_keys, used_holds = usage if usage is not None else (None, None)
        try:
            info = KeyboardLayout.generate(layout, self.keyboard, used_keys, used_holds)
        except UnreachableCharacterError:
            return None
        return self.normalize(evaluate(info, self.tables))

    def __call__(self, layout: Layout) -> EvalResult:
        usage = (set(), set())
        evaluation = self.evaluate_layout(layout, usage)
        if evaluation is None:
            return None
        return objective_value(evaluation, self.weights) * self.scale, usage

#-----------------------------------------------------------------------------
# Post-acceptance modifier
#-----------------------------------------------------------------------------
@dataclass
class CleanupConfig:
    """Chance of clearing a hold behavior / tap key that no combination uses."""
    unused_hold: float = 0.5
    unused_key: float = 0.7


def make_cleanup(config: Optional[CleanupConfig] = None):
    """Modifier that biases the search towards minimal layouts by dropping unused slots."""
    config = config or CleanupConfig()

    def cleanup_unused(rng: np.random.Generator, layout: Layout, usage: Usage) -> None:
        used_keys, used_holds = usage
        for i in range(layout.layer_size):
            if i not in used_holds and rng.random() < config.unused_hold:
                layout.set_hold(i, None)

        for li in range(layout.layer_count):
            for i in range(layout.layer_size):
                if KeyLoc(li, i) not in used_keys and rng.random() < config.unused_key:
                    layout.set_key(li, i, None)

    return cleanup_unused

#-----------------------------------------------------------------------------
# Temperature profiles
#-----------------------------------------------------------------------------
def linear_profile(start: float, floor: float = 0.0) -> Callable[[float], float]:
    """Temperature decaying linearly from start at progress 0 to floor at progress 1."""
    def profile(progress: float) -> float:
        return max(floor, start * (1.0 - progress))
    return profile


def exponential_profile(start: float, end: float) -> Callable[[float], float]:
    """Geometric cooling from start to end."""
    if start <= 0 or end <= 0:
        raise ValueError("Exponential profile needs positive temperatures")

    def profile(progress: float) -> float:
        return start * (end / start) ** progress
    return profile

#-----------------------------------------------------------------------------
# Annealing
#-----------------------------------------------------------------------------
def accept_probability(current_score: float, new_score: float, temperature: float) -> float:
    """Metropolis criterion."""
    if new_score < current_score:
        return 1.0
    if temperature <= 0:
        return 0.0
    return math.exp((current_score - new_score) / temperature)


def anneal(layout: Layout, iters: int,
           profile: Callable[[float], float],
           evaluate_fn: Callable[[Layout], EvalResult],
           modifier: Optional[Callable[[np.random.Generator, Layout, Any], None]] = None,
           rng: Optional[np.random.Generator] = None,
           mutation: Optional[MutationConfig] = None,
           history: Optional[List[Tuple[int, float]]] = None,
           report_every: int = 100,
           progress: bool = False) -> Tuple[Layout, float]:
    """
    Minimize evaluate_fn over layout mutations.

    Args:
        layout: Feasible start layout (not modified)
        iters: Number of annealing iterations
        profile: Maps progress in [0, 1) to a temperature
        evaluate_fn: Returns None for infeasible layouts, else (score, aux)
        modifier: Called as modifier(rng, current, aux) after each acceptance
        rng: Random generator (seed it for reproducible runs)
        mutation: Mutation operator probabilities
        history: If given, receives (iteration, current score) every report_every iterations
        report_every: History sampling interval
        progress: Show a tqdm progress bar

    Returns:
        (final layout, its score). This is the last accepted layout, not
        necessarily the best one seen.

    Raises:
        ValueError: the start layout is infeasible
    """
    rng = rng if rng is not None else np.random.default_rng()
    current = layout.copy()
    initial = evaluate_fn(current)
    if initial is None:
        raise ValueError("Initial layout is infeasible")
    current_score = initial[0]

    scratch = current.copy()
    with tqdm(total=iters, desc="Annealing", unit=" iters", disable=not progress) as pbar:
        for i in range(iters):
            temperature = profile(i / iters)

            # Retry until a feasible candidate turns up
            while True:
                mutate(rng, scratch, mutation)
                result = evaluate_fn(scratch)
                if result is not None:
                    break
                scratch.copy_from(current)
            new_score, aux = result

            if history is not None and i % report_every == 0:
                history.append((i, current_score))

            if rng.random() < accept_probability(current_score, new_score, temperature):
                current, scratch = scratch, current
                current_score = new_score
                if modifier is not None:
                    modifier(rng, current, aux)
            scratch.copy_from(current)

            if i % report_every == 0:
                pbar.set_postfix(score=f"{current_score:.1f}", T=f"{temperature:.3g}")
            pbar.update(1)

    if history is not None:
        history.append((iters, current_score))

    return current, current_score
