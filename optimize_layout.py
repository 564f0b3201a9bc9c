# optimize_layout.py
"""
Layered keyboard layout optimization software

Optimizes which characters sit on which keys of every layer, and which
base keys act as shift or layer holds, by simulated annealing. Scores
come from character/bigram frequencies counted over a corpus of source
files. The target keyboard is a 34-key Ferris Sweep.

Usage:
    # Anneal from the QWERTY seed with the settings in config.yaml
    python optimize_layout.py --config config.yaml

    # Start from a saved layout, fixed seed, export a QMK keymap
    python optimize_layout.py --layout output/layouts/optimized.json --seed 42 --export keymap.json

    # Only score a layout (no annealing)
    python optimize_layout.py --seed-layout colemak_dh --score-only

"""

import argparse
import sys
import time
from io import StringIO
from typing import Optional

import numpy as np

from config import Config, load_config, print_config_summary
from display import (print_annealing_header, print_evaluation_comparison, print_layout,
                     print_optimization_progress, render_frequency_table,
                     save_annealing_history, plot_annealing_history)
from frequencies import FrequencyTables, count
from geometry import Keyboard
from keymap_export import KeymapExportError, QmkKeymap
from layout import Layout, SEED_LAYOUTS, flip_layout, load_layout, save_layout
from resolver import KeyboardLayout
from scoring import evaluate, objective_value
from search import FeasibilityEvaluator, anneal, check_feasibility, linear_profile, make_cleanup
from validation import run_validation_suite

#-----------------------------------------------------------------------------
# Logging
#-----------------------------------------------------------------------------
class TeeLogger:
    """
    Class to capture stdout and write to both console and a file.
    """
    def __init__(self, filename):
        self.terminal = sys.stdout
        self.log = open(filename, 'w', encoding='utf-8')
        self.buffer = StringIO()

    def write(self, message):
        self.terminal.write(message)
        self.log.write(message)
        self.buffer.write(message)

    def flush(self):
        self.terminal.flush()
        self.log.flush()
        self.buffer.flush()

    def get_log_contents(self):
        return self.buffer.getvalue()

    def close(self):
        self.log.close()

#-----------------------------------------------------------------------------
# Setup
#-----------------------------------------------------------------------------
def load_frequencies(config: Config) -> FrequencyTables:
    """Count (or load cached) corpus frequencies, reporting why a cache was not used."""
    print(f"\nLoading frequencies for {config.paths.corpus_dir}...")
    tables, fault = count(config.paths.corpus_dir,
                          config.paths.frequency_cache,
                          config.corpus.include_extensions,
                          config.corpus.ignore_components,
                          config.corpus.tab_width,
                          show_progress=True)
    if fault is not None:
        print(f"Frequency cache not used ({fault}); counted from corpus")
    print(f"  {len(tables.letters)} characters, {len(tables.bigrams)} bigrams, "
          f"{len(tables.trigrams)} trigrams ({tables.total_letters:,} characters total)")
    return tables


def load_start_layout(args) -> Layout:
    """Start layout from --layout or --seed-layout, optionally mirrored."""
    if args.layout:
        layout = load_layout(args.layout)
        name = args.layout
    else:
        layout = SEED_LAYOUTS[args.seed_layout]()
        name = args.seed_layout

    if args.mirror:
        layout = flip_layout(layout)
        name += " (mirrored)"

    reason = check_feasibility(layout)
    if reason is not None:
        raise ValueError(f"Start layout {name} is infeasible: {reason}")

    print(f"Start layout: {name}")
    return layout

#-----------------------------------------------------------------------------
# Operations
#-----------------------------------------------------------------------------
def score_layout(config: Config, keyboard: Keyboard, tables: FrequencyTables,
                 layout: Layout, reference: Layout) -> None:
    """Print raw and reference-normalized evaluations of one layout."""
    evaluator = FeasibilityEvaluator(keyboard, tables, reference,
                                     weights=config.objective.weights)
    raw = evaluate(KeyboardLayout.generate(layout, keyboard), tables)
    normalized = evaluator.normalize(raw)

    if config.visualization.print_layout:
        print_layout(layout, "Scored layout")
    print_evaluation_comparison({
        'reference': evaluator.reference_eval,
        'raw': raw,
        'normalized': normalized,
    })
    reference_value = objective_value(evaluator.normalize(evaluator.reference_eval), evaluator.weights)
    print(f"\nObjective: {objective_value(normalized, evaluator.weights):.1f} "
          f"(reference {config.objective.reference_layout}: {reference_value:.1f})")


def run_annealing(config: Config, keyboard: Keyboard, tables: FrequencyTables,
                  start: Layout, reference: Layout,
                  output_path: str, export_path: str = "", plot: bool = False) -> Layout:
    """
    Anneal from the start layout, report before/after and save results.

    Returns:
        The optimized layout
    """
    ann = config.annealing

    if config.visualization.print_layout:
        print_layout(start, "Start")

    evaluator = FeasibilityEvaluator(keyboard, tables, reference, start=start,
                                     weights=config.objective.weights,
                                     target_score=config.objective.target_score)
    modifier = make_cleanup(ann.cleanup) if ann.use_cleanup else None
    profile = linear_profile(ann.start_temperature, ann.min_temperature)
    rng = np.random.default_rng(ann.seed)
    history = []

    print(f"\nAnnealing for {ann.iterations:,} iterations...")
    start_time = time.time()
    optimized, score = anneal(start, ann.iterations, profile, evaluator,
                              modifier=modifier, rng=rng, mutation=ann.mutation,
                              history=history, report_every=ann.report_every,
                              progress=True)
    elapsed_time = time.time() - start_time

    if config.visualization.verbose_output:
        print("\nScore history:")
        for iteration, value in history:
            temperature = profile(iteration / ann.iterations) if ann.iterations else 0.0
            print_optimization_progress(iteration, ann.iterations, value, temperature)

    if config.visualization.print_layout:
        print_layout(optimized, "Optimized")

    print_evaluation_comparison({
        'start': evaluator.evaluate_layout(start),
        'optimized': evaluator.evaluate_layout(optimized),
    })

    # Save results
    save_layout(optimized, output_path)
    print(f"\nLayout saved to: {output_path}")

    csv_path = save_annealing_history(history, config)
    print(f"Annealing history saved to: {csv_path}")
    if plot:
        plot_annealing_history(history, csv_path.replace('.csv', '.png'))

    if export_path:
        try:
            QmkKeymap.from_layout(optimized).save(export_path)
            print(f"QMK keymap saved to: {export_path}")
        except KeymapExportError as e:
            print(f"Keymap export failed: {e}")

    print(f"\nOptimization Summary:")
    print(f"  Start score: {evaluator.start_score:.1f}")
    print(f"  Final score: {score:.1f}")
    print(f"  Total time: {elapsed_time:.2f}s")
    return optimized

#-----------------------------------------------------------------------------
# Command-line interface
#-----------------------------------------------------------------------------
def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Optimize a layered keyboard layout by simulated annealing.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Optimize from the QWERTY seed
  python optimize_layout.py --config config.yaml

  # Reproducible run from a mirrored Colemak-DH seed
  python optimize_layout.py --seed-layout colemak_dh --mirror --seed 7 --iterations 50000

  # Score a saved layout and show the top 30 n-grams
  python optimize_layout.py --layout my_layout.json --score-only --show-frequencies 30
        """
    )

    # Basic options
    parser.add_argument('--config', type=str, default='config.yaml',
                       help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--log', type=str, default=None,
                       help='Also write all output to this file')

    # Start layout
    start = parser.add_mutually_exclusive_group()
    start.add_argument('--seed-layout', choices=sorted(SEED_LAYOUTS), default='qwerty',
                       help='Built-in start layout (default: qwerty)')
    start.add_argument('--layout', type=str, default=None,
                       help='Start from a layout JSON file')
    parser.add_argument('--mirror', action='store_true',
                       help='Mirror the start layout left/right')

    # Annealing overrides
    parser.add_argument('--iterations', type=int, default=None,
                       help='Override annealing.iterations')
    parser.add_argument('--seed', type=int, default=None,
                       help='Override annealing.seed')

    # Output
    parser.add_argument('--output', type=str, default=None,
                       help='Where to save the optimized layout (default: paths.output_layout)')
    parser.add_argument('--export', type=str, default=None,
                       help='Write a QMK keymap JSON here (default: paths.keymap_output)')
    parser.add_argument('--plot', action='store_true',
                       help='Plot the annealing history')

    # Other modes
    parser.add_argument('--score-only', action='store_true',
                       help='Score the start layout without annealing')
    parser.add_argument('--validate', action='store_true',
                       help='Run validation suite before optimization')
    parser.add_argument('--show-frequencies', type=int, default=0, metavar='N',
                       help='Print the N most frequent characters, bigrams and trigrams')

    return parser.parse_args(argv)


def run(args) -> int:
    config = load_config(args.config)
    if args.iterations is not None:
        if args.iterations < 0:
            raise ValueError("iterations cannot be negative")
        config.annealing.iterations = args.iterations
    if args.seed is not None:
        config.annealing.seed = args.seed

    print_annealing_header(config)
    print_config_summary(config)

    tables = load_frequencies(config)
    if args.show_frequencies > 0:
        for n, name in ((1, "characters"), (2, "bigrams"), (3, "trigrams")):
            print()
            print(render_frequency_table(tables.table(n), args.show_frequencies, name))

    keyboard = Keyboard.ferris_sweep()
    start = load_start_layout(args)
    reference = SEED_LAYOUTS[config.objective.reference_layout]()

    if args.validate:
        suite = run_validation_suite(keyboard, tables, {'start': start})
        suite.print_summary()
        if not suite.all_passed:
            print("❌ Validation failed. Please fix issues before running optimization.")
            return 1
        print("✅ Validation passed!\n")

    if args.score_only:
        score_layout(config, keyboard, tables, start, reference)
        return 0

    output_path = args.output or config.paths.output_layout
    export_path = args.export if args.export is not None else config.paths.keymap_output
    run_annealing(config, keyboard, tables, start, reference,
                  output_path, export_path, args.plot)
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    logger: Optional[TeeLogger] = None
    if args.log:
        logger = TeeLogger(args.log)
        sys.stdout = logger

    try:
        return run(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        if logger is not None:
            sys.stdout = logger.terminal
            logger.close()


if __name__ == "__main__":
    sys.exit(main())
