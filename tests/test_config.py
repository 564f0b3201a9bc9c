from pathlib import Path

import pytest
import yaml

from config import config_from_dict, create_default_config, load_config, print_config_summary
from scoring import DEFAULT_WEIGHTS


def _raw(**sections):
    raw = {'paths': {'corpus_dir': "corpus"}}
    raw.update(sections)
    return raw


def test_defaults_fill_missing_sections() -> None:
    config = config_from_dict(_raw())
    assert config.paths.corpus_dir == "corpus"
    assert config.corpus.tab_width == 4
    assert config.annealing.iterations == 10000
    assert config.annealing.mutation.vertical_swap == 0.8
    assert config.annealing.cleanup.unused_key == 0.7
    assert config.objective.weights == DEFAULT_WEIGHTS
    assert config.objective.reference_layout == "qwerty"


def test_nested_sections_are_parsed() -> None:
    config = config_from_dict(_raw(annealing={
        'iterations': 5,
        'seed': 3,
        'mutation': {'key_inject': 0.25},
        'cleanup': {'unused_hold': 0.0},
    }))
    assert config.annealing.iterations == 5
    assert config.annealing.seed == 3
    assert config.annealing.mutation.key_inject == 0.25
    assert config.annealing.mutation.hold_swap == 1.0
    assert config.annealing.cleanup.unused_hold == 0.0


@pytest.mark.parametrize("raw", [
    {},
    {'paths': {'corpus_dir': ""}},
    {'paths': {'corpus_dir': "c", 'bogus': 1}},
    _raw(corpus={'tab_width': 0}),
    _raw(annealing={'iterations': -1}),
    _raw(annealing={'start_temperature': 1.0, 'min_temperature': 2.0}),
    _raw(annealing={'mutation': {'key_swap': 1.5}}),
    _raw(annealing={'cleanup': {'unused_key': -0.1}}),
    _raw(annealing={'mutation': {'teleport': 1.0}}),
    _raw(objective={'reference_layout': "dvorak"}),
    _raw(objective={'weights': {'letter.nope': 1.0}}),
    _raw(objective={'weights': {'letter.base_x': -1.0}}),
    _raw(objective={'target_score': 0}),
])
def test_invalid_configs(raw) -> None:
    with pytest.raises(ValueError):
        config_from_dict(raw)


def test_load_config_errors(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))

    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(empty))

    broken = tmp_path / "broken.yaml"
    broken.write_text("paths: [unclosed", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(broken))


def test_load_config_creates_output_folders(tmp_path) -> None:
    out = tmp_path / "out"
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({'paths': {
        'corpus_dir': str(tmp_path),
        'frequency_cache': str(out / "cache" / "freq.csv"),
        'layout_results_folder': str(out / "layouts"),
        'output_layout': str(out / "final" / "layout.json"),
    }}), encoding="utf-8")

    config = load_config(str(path))
    assert (out / "cache").is_dir()
    assert (out / "layouts").is_dir()
    assert (out / "final").is_dir()
    assert config._config_path == str(path)


def test_default_config_round_trip(tmp_path, capsys) -> None:
    path = tmp_path / "default.yaml"
    create_default_config(str(path))
    config = config_from_dict(yaml.safe_load(path.read_text(encoding="utf-8")), str(path))
    assert config.objective.weights == DEFAULT_WEIGHTS

    print_config_summary(config)
    assert "Iterations: 10,000" in capsys.readouterr().out


def test_shipped_config_is_valid() -> None:
    shipped = Path(__file__).resolve().parent.parent / "config.yaml"
    config = config_from_dict(yaml.safe_load(shipped.read_text(encoding="utf-8")), str(shipped))
    assert config.objective.weights == DEFAULT_WEIGHTS
