#!/usr/bin/env python3
"""
Configuration Management for Layered Layout Annealing

This module provides structured configuration loading, validation,
and management for simulated-annealing layout optimization.
It handles the corpus to count frequencies from, file paths,
annealing parameters, mutation rates and objective weights.

Features:
- YAML-based configuration with comprehensive validation
- Defaults for every optional section
- Automatic creation of output folders
- Clear error messages for configuration issues

"""

import yaml
import os
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from layout import SEED_LAYOUTS
from scoring import DEFAULT_WEIGHTS, validate_weights
from search import CleanupConfig, MutationConfig


@dataclass
class PathConfig:
    """File paths for input and output."""
    corpus_dir: str
    frequency_cache: str = "output/frequency_cache.csv"
    layout_results_folder: str = "output/layouts"
    output_layout: str = "output/layouts/optimized.json"
    keymap_output: str = ""


@dataclass
class CorpusConfig:
    """Which corpus files are counted and how indentation is typed."""
    include_extensions: List[str] = field(
        default_factory=lambda: ["rs", "wgsl", "glsl", "vert", "comp", "frag", "py"])
    ignore_components: List[str] = field(
        default_factory=lambda: ["target", ".git", "__pycache__"])
    tab_width: int = 4


@dataclass
class AnnealingConfig:
    """Simulated annealing parameters."""
    iterations: int = 10000
    start_temperature: float = 30.0
    min_temperature: float = 0.0
    seed: Optional[int] = None
    report_every: int = 100
    mutation: MutationConfig = field(default_factory=MutationConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    use_cleanup: bool = True


@dataclass
class ObjectiveConfig:
    """How evaluations are normalized and weighted into one score."""
    reference_layout: str = "qwerty"
    target_score: float = 1_000_000.0
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))


@dataclass
class VisualizationConfig:
    """Visualization and display settings."""
    print_layout: bool = True
    verbose_output: bool = False


@dataclass
class Config:
    """Complete configuration container."""
    paths: PathConfig
    corpus: CorpusConfig
    annealing: AnnealingConfig
    objective: ObjectiveConfig
    visualization: VisualizationConfig

    # Internal tracking
    _config_path: str = "config.yaml"


def load_config(config_path: str = "config.yaml") -> Config:
    """
    Load and validate configuration from YAML file.

    Args:
        config_path: Path to configuration YAML file

    Returns:
        Validated Config object with all settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If configuration is invalid
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML configuration: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")

    config = config_from_dict(raw_config, config_path)

    # Create output directories
    for directory in [config.paths.layout_results_folder,
                      os.path.dirname(config.paths.frequency_cache),
                      os.path.dirname(config.paths.output_layout)]:
        if directory:
            os.makedirs(directory, exist_ok=True)

    return config


def config_from_dict(raw_config: dict, config_path: str = "config.yaml") -> Config:
    """Build and validate a Config from an already-parsed mapping."""
    if 'paths' not in raw_config:
        raise ValueError("Missing required configuration sections: ['paths']")

    try:
        paths = PathConfig(**raw_config['paths'])
    except TypeError as e:
        raise ValueError(f"Error parsing paths configuration: {e}")

    try:
        corpus = CorpusConfig(**(raw_config.get('corpus') or {}))
    except TypeError as e:
        raise ValueError(f"Error parsing corpus configuration: {e}")

    annealing_raw = dict(raw_config.get('annealing') or {})
    try:
        mutation = MutationConfig(**(annealing_raw.pop('mutation', None) or {}))
        cleanup = CleanupConfig(**(annealing_raw.pop('cleanup', None) or {}))
        annealing = AnnealingConfig(mutation=mutation, cleanup=cleanup, **annealing_raw)
    except TypeError as e:
        raise ValueError(f"Error parsing annealing configuration: {e}")

    objective_raw = dict(raw_config.get('objective') or {})
    try:
        objective = ObjectiveConfig(**objective_raw)
    except TypeError as e:
        raise ValueError(f"Error parsing objective configuration: {e}")

    try:
        visualization = VisualizationConfig(**(raw_config.get('visualization') or {}))
    except TypeError as e:
        raise ValueError(f"Error parsing visualization configuration: {e}")

    config = Config(paths, corpus, annealing, objective, visualization, config_path)
    validate_config(config)
    return config


def validate_config(config: Config) -> None:
    """
    Perform comprehensive validation of configuration.

    Args:
        config: Configuration object to validate

    Raises:
        ValueError: If any validation check fails
    """
    if not config.paths.corpus_dir:
        raise ValueError("corpus_dir cannot be empty")

    if config.corpus.tab_width < 1:
        raise ValueError("tab_width must be positive")
    if not config.corpus.include_extensions:
        raise ValueError("include_extensions cannot be empty")

    ann = config.annealing
    if ann.iterations < 0:
        raise ValueError("iterations cannot be negative")
    if ann.start_temperature < 0 or ann.min_temperature < 0:
        raise ValueError("Temperatures cannot be negative")
    if ann.min_temperature > ann.start_temperature:
        raise ValueError(
            f"min_temperature ({ann.min_temperature}) exceeds start_temperature ({ann.start_temperature})")
    if ann.report_every < 1:
        raise ValueError("report_every must be positive")

    # Every rate is a probability
    rates = {f"mutation.{k}": v for k, v in vars(ann.mutation).items()}
    rates.update({f"cleanup.{k}": v for k, v in vars(ann.cleanup).items()})
    bad_rates = {name: value for name, value in rates.items() if not 0.0 <= value <= 1.0}
    if bad_rates:
        raise ValueError(f"Probabilities must be within [0, 1]: {bad_rates}")

    obj = config.objective
    if obj.reference_layout not in SEED_LAYOUTS:
        raise ValueError(
            f"Unknown reference_layout '{obj.reference_layout}'. Must be one of: {list(SEED_LAYOUTS)}")
    if obj.target_score <= 0:
        raise ValueError("target_score must be positive")
    if not obj.weights:
        raise ValueError("weights cannot be empty")
    unknown = validate_weights(obj.weights)
    if unknown:
        raise ValueError(f"Unknown objective weight names: {unknown}")
    negative = [name for name, weight in obj.weights.items() if weight < 0]
    if negative:
        raise ValueError(f"Objective weights cannot be negative: {negative}")


def print_config_summary(config: Config) -> None:
    """Print human-readable configuration summary."""
    ann = config.annealing

    print(f"\nConfiguration Summary:")
    print(f"  Config file: {config._config_path}")
    print(f"  Corpus: {config.paths.corpus_dir} ({', '.join(config.corpus.include_extensions)})")
    print(f"  Frequency cache: {config.paths.frequency_cache}")
    print(f"  Iterations: {ann.iterations:,}")
    print(f"  Temperature: {ann.start_temperature} -> {ann.min_temperature} (linear)")
    print(f"  Seed: {ann.seed if ann.seed is not None else 'random'}")
    print(f"  Mutation rates: {vars(ann.mutation)}")
    if ann.use_cleanup:
        print(f"  Cleanup rates: {vars(ann.cleanup)}")
    print(f"  Reference layout: {config.objective.reference_layout}")
    print(f"  Objective weights: {config.objective.weights}")


def create_default_config(output_path: str = "config.yaml") -> None:
    """
    Create a default configuration file with common settings.

    Args:
        output_path: Path where to save the default config
    """
    default_config = {
        'paths': {
            'corpus_dir': '..',
            'frequency_cache': 'output/frequency_cache.csv',
            'layout_results_folder': 'output/layouts',
            'output_layout': 'output/layouts/optimized.json',
            'keymap_output': 'output/layouts/optimized_keymap.json',
        },
        'corpus': {
            'include_extensions': ['rs', 'wgsl', 'glsl', 'vert', 'comp', 'frag', 'py'],
            'ignore_components': ['target', '.git', '__pycache__'],
            'tab_width': 4,
        },
        'annealing': {
            'iterations': 10000,
            'start_temperature': 30.0,
            'min_temperature': 0.0,
            'seed': None,
            'report_every': 100,
            'use_cleanup': True,
            'mutation': vars(MutationConfig()),
            'cleanup': vars(CleanupConfig()),
        },
        'objective': {
            'reference_layout': 'qwerty',
            'target_score': 1000000.0,
            'weights': dict(DEFAULT_WEIGHTS),
        },
        'visualization': {
            'print_layout': True,
            'verbose_output': False,
        },
    }

    with open(output_path, 'w') as f:
        yaml.dump(default_config, f, default_flow_style=False, indent=2, sort_keys=False)

    print(f"Default configuration saved to: {output_path}")


if __name__ == "__main__":
    print("Configuration Management for Layered Layout Annealing")

    try:
        if not os.path.exists("config.yaml"):
            print("Creating default configuration...")
            create_default_config()

        print("Loading configuration...")
        config = load_config()
        print_config_summary(config)
        print(f"\nConfiguration validation successful!")

    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}")
        print(f"\nTo create a default configuration, run:")
        print(f"python config.py")
