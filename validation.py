# validation.py
"""
Validation checks for the layered layout optimization system.

This module consolidates self-checks that can run against real corpus data:
- Scoring consistency (evaluation is a pure function of its inputs)
- Normalization identity (evaluation / itself is all ones)
- Layout serialization round trips
- Reachability of every seed layout
- Zero-iteration annealing returns the start layout
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Optional

from frequencies import FrequencyTables
from geometry import Keyboard
from layout import Layout, SEED_LAYOUTS, flip_layout
from resolver import KeyboardLayout, UnreachableCharacterError
from scoring import evaluate
from search import anneal, linear_profile

#-----------------------------------------------------------------------------
# Validation result classes
#-----------------------------------------------------------------------------
@dataclass
class ValidationResult:
    """Result of a single validation test."""
    test_name: str
    passed: bool
    message: str
    details: Optional[Dict] = None

    def __str__(self) -> str:
        status = "✅ PASS" if self.passed else "❌ FAIL"
        return f"{status}: {self.test_name} - {self.message}"


@dataclass
class ValidationSuite:
    """Results from a complete validation suite."""
    results: List[ValidationResult]

    @property
    def all_passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.results if result.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.passed)

    def print_summary(self):
        """Print validation summary."""
        print(f"\nValidation Summary: {self.passed_count}/{len(self.results)} tests passed")

        for result in self.results:
            print(f"  {result}")
            if result.details and not result.passed:
                for key, value in result.details.items():
                    print(f"    {key}: {value}")

        if self.all_passed:
            print("\n🎉 All validation tests passed!")
        else:
            print(f"\n⚠️  {self.failed_count} test(s) failed - review results above")

#-----------------------------------------------------------------------------
# Core validation functions
#-----------------------------------------------------------------------------
def check_scoring_consistency(keyboard: Keyboard, tables: FrequencyTables,
                             layouts: Dict[str, Layout]) -> ValidationResult:
    """Evaluate each layout twice, interleaved with the others, and compare."""
    first = {}
    for name, layout in layouts.items():
        first[name] = evaluate(KeyboardLayout.generate(layout, keyboard), tables).as_dict()

    inconsistent = []
    for name in reversed(list(layouts)):
        again = evaluate(KeyboardLayout.generate(layouts[name], keyboard), tables).as_dict()
        a = np.array(list(first[name].values()))
        b = np.array(list(again.values()))
        if not np.allclose(a, b, rtol=1e-10, equal_nan=True):
            inconsistent.append(name)

    passed = not inconsistent
    message = f"Evaluated {len(layouts)} layouts twice, {len(inconsistent)} inconsistent"
    return ValidationResult("Scoring Consistency", passed, message,
                            {"inconsistent": inconsistent})


def check_normalization_identity(keyboard: Keyboard, tables: FrequencyTables,
                                layout: Layout) -> ValidationResult:
    """evaluate(L) / evaluate(L) is one wherever the denominator is nonzero."""
    evaluation = evaluate(KeyboardLayout.generate(layout, keyboard), tables)
    values = evaluation.as_dict()
    ratios = (evaluation / evaluation).as_dict()

    wrong = {name: ratios[name] for name, value in values.items()
             if value != 0 and not np.isclose(ratios[name], 1.0)}
    passed = not wrong
    message = f"{len(values) - len(wrong)}/{len(values)} components normalize to 1"
    return ValidationResult("Normalization Identity", passed, message, {"wrong": wrong})


def check_serialization_round_trip(layouts: Dict[str, Layout]) -> ValidationResult:
    failures = [name for name, layout in layouts.items()
                if Layout.from_dict(layout.to_dict()) != layout]
    passed = not failures
    message = f"Round-tripped {len(layouts)} layouts, {len(failures)} failed"
    return ValidationResult("Serialization Round Trip", passed, message, {"failed": failures})


def check_seed_reachability(keyboard: Keyboard, layouts: Dict[str, Layout]) -> ValidationResult:
    unreachable = {}
    for name, layout in layouts.items():
        try:
            KeyboardLayout.generate(layout, keyboard)
        except UnreachableCharacterError as e:
            unreachable[name] = e.character
    passed = not unreachable
    message = f"{len(layouts) - len(unreachable)}/{len(layouts)} layouts fully reachable"
    return ValidationResult("Seed Reachability", passed, message, {"unreachable": unreachable})


def check_zero_iteration_annealing(keyboard: Keyboard, tables: FrequencyTables,
                                  layout: Layout) -> ValidationResult:
    """With no iterations the start layout comes back unchanged after one evaluation."""
    calls = []

    def counting_eval(candidate: Layout):
        calls.append(1)
        info = KeyboardLayout.generate(candidate, keyboard)
        return float(sum(evaluate(info, tables).as_dict().values())), None

    result, _ = anneal(layout, 0, linear_profile(1.0), counting_eval,
                       rng=np.random.default_rng(0))
    passed = result == layout and len(calls) == 1
    message = f"Layout unchanged: {result == layout}, evaluations: {len(calls)}"
    return ValidationResult("Zero-Iteration Annealing", passed, message)

#-----------------------------------------------------------------------------
# Suite runner
#-----------------------------------------------------------------------------
def run_validation_suite(keyboard: Keyboard, tables: FrequencyTables,
                         extra_layouts: Optional[Dict[str, Layout]] = None) -> ValidationSuite:
    """
    Run all validation checks against the seed layouts (and any extras).

    Args:
        keyboard: Geometry to validate against
        tables: Frequency tables to score with
        extra_layouts: Additional named layouts, e.g. the current start layout

    Returns:
        ValidationSuite with all results
    """
    print("Running validation suite...")

    layouts = {name: factory() for name, factory in SEED_LAYOUTS.items()}
    layouts['qwerty_mirrored'] = flip_layout(layouts['qwerty'])
    layouts.update(extra_layouts or {})

    reference = layouts['qwerty']
    results = [
        check_seed_reachability(keyboard, layouts),
        check_serialization_round_trip(layouts),
        check_scoring_consistency(keyboard, tables, layouts),
        check_normalization_identity(keyboard, tables, reference),
        check_zero_iteration_annealing(keyboard, tables, reference),
    ]

    return ValidationSuite(results)
