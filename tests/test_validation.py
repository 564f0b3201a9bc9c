from layout import qwerty
from validation import ValidationResult, ValidationSuite, check_seed_reachability, run_validation_suite


def test_suite_passes_on_seed_layouts(ferris, sample_tables, capsys) -> None:
    suite = run_validation_suite(ferris, sample_tables)
    suite.print_summary()
    assert suite.all_passed, [str(result) for result in suite.results]
    assert suite.failed_count == 0
    assert "All validation tests passed" in capsys.readouterr().out


def test_reachability_failure_is_reported(ferris) -> None:
    broken = qwerty()
    broken.set_key(0, 0, None)
    result = check_seed_reachability(ferris, {'broken': broken})
    assert not result.passed
    assert result.details['unreachable'] == {'broken': 'q'}


def test_suite_counts() -> None:
    suite = ValidationSuite([
        ValidationResult("a", True, "ok"),
        ValidationResult("b", False, "bad", {'why': 1}),
    ])
    assert suite.passed_count == 1
    assert suite.failed_count == 1
    assert not suite.all_passed
    assert "FAIL" in str(suite.results[1])
