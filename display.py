# display.py
"""
Display, visualization, and output formatting for layout optimization.
"""

import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from config import Config
from frequencies import top_ngrams
from layout import Layout
from scoring import Evaluation

#-----------------------------------------------------------------------------
# Keyboard visualization
#-----------------------------------------------------------------------------
SPECIAL_LABELS = {'\n': "RET", '\t': "TAB", ' ': "SPC"}


def _tap_label(char: Optional[str]) -> str:
    if char is None:
        return ""
    return SPECIAL_LABELS.get(char, char)


def format_layout(layout: Layout, title: str = "Layout", columns: int = 10, rows: int = 3) -> str:
    """
    ASCII rendering of every layer of a split layout.

    Main keys are column-major (slot = column * rows + row); remaining
    slots are drawn as a thumb row. The base layer shows hold behaviors
    (S = shift, digit = layer) under each tap key.
    """
    main = columns * rows
    lines = [f"Layout: {title}"]
    for li, keys in enumerate(layout.layers):
        holds = layout.base_hold if li == 0 else [None] * layout.layer_size
        lines.append(f"Layer {li}" + (" (base)" if li == 0 else ""))
        lines.append("┌" + "┬".join(["─────"] * columns) + "┐")
        for row in range(rows):
            slots = [column * rows + row for column in range(columns)]
            lines.append("│" + "│".join(f"{_tap_label(keys[s]):^5}" for s in slots) + "│")
            if li == 0:
                lines.append("│" + "│".join(f"{_hold_label(holds[s]):^5}" for s in slots) + "│")
            if row < rows - 1:
                lines.append("├" + "┼".join(["─────"] * columns) + "┤")
        lines.append("└" + "┴".join(["─────"] * columns) + "┘")

        thumbs = list(range(main, layout.layer_size))
        if thumbs:
            indent = " " * (6 * ((columns - len(thumbs)) // 2))
            lines.append(indent + "┌" + "┬".join(["─────"] * len(thumbs)) + "┐")
            lines.append(indent + "│" + "│".join(f"{_tap_label(keys[s]):^5}" for s in thumbs) + "│")
            if li == 0:
                lines.append(indent + "│" + "│".join(f"{_hold_label(holds[s]):^5}" for s in thumbs) + "│")
            lines.append(indent + "└" + "┴".join(["─────"] * len(thumbs)) + "┘")
        lines.append("")

    return "\n".join(lines)


def _hold_label(behavior) -> str:
    return "" if behavior is None else str(behavior)


def print_layout(layout: Layout, title: str = "Layout") -> None:
    """Print ASCII visual representation of a layout."""
    print(format_layout(layout, title))

#-----------------------------------------------------------------------------
# Results display
#-----------------------------------------------------------------------------
def print_annealing_header(config: Config) -> None:
    """Print header for an annealing run."""
    print(f"\n" + "="*60)
    print("SIMULATED ANNEALING LAYOUT OPTIMIZATION")
    print("="*60)


def print_evaluation_comparison(evaluations: Dict[str, Evaluation]) -> None:
    """Side-by-side table of several evaluations (e.g. before/after, normalized)."""
    labels = list(evaluations)
    header = f"  {'Component':<20}" + "".join(f" {label:>16}" for label in labels)
    print(f"\n{header}")
    print(f"  {'-'*20}" + "".join(f" {'-'*16}" for _ in labels))
    flats = [evaluations[label].as_dict() for label in labels]
    for name in flats[0]:
        print(f"  {name:<20}" + "".join(f" {flat[name]:>16.4f}" for flat in flats))


def _printable(ngram: str) -> str:
    return "".join(c if c.isprintable() and c not in '\t\n' else repr(c)[1:-1] for c in ngram)


def render_frequency_table(table: Dict[str, int], top_n: int = 20, title: str = "") -> str:
    """Most frequent n-grams, highest first, one per line."""
    entries = top_ngrams(table, top_n)
    labels = [_printable(ngram) for ngram, _ in entries]
    width = max((len(label) for label in labels), default=0)
    lines = [f"top {top_n}" + (f" {title}" if title else "")]
    for label, (_, occurrences) in zip(labels, entries):
        lines.append(f"{label:<{width}} | {occurrences}")
    return "\n".join(lines)


def print_optimization_progress(iteration: int, total: int, score: float, temperature: float) -> None:
    """Print progress information during a run without a progress bar."""
    percent = 100.0 * iteration / total if total else 100.0
    print(f"  ({iteration},{score:.3f}) {percent:5.1f}% T={temperature:.4g}")

#-----------------------------------------------------------------------------
# Results output
#-----------------------------------------------------------------------------
def save_annealing_history(history: List[Tuple[int, float]], config: Config) -> str:
    """
    Save the (iteration, score) trace to a CSV file in the results folder.

    Returns:
        Path to saved CSV file
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    config_name = os.path.basename(config._config_path).replace('.yaml', '')
    filename = f"annealing_history_{config_name}_{timestamp}.csv"
    output_path = os.path.join(config.paths.layout_results_folder, filename)

    pd.DataFrame(history, columns=['iteration', 'score']).to_csv(output_path, index=False)
    return output_path


def plot_annealing_history(history: List[Tuple[int, float]], output_path: str,
                           title: str = "Annealing score") -> str:
    """Plot score against iteration and save the figure."""
    iterations = [i for i, _ in history]
    scores = [s for _, s in history]

    plt.figure(figsize=(12, 6))
    plt.plot(iterations, scores, 'b-', alpha=0.7)
    plt.title(title, fontsize=14, pad=20)
    plt.xlabel('Iteration', fontsize=12)
    plt.ylabel('Score', fontsize=12)
    plt.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    print(f"Saved annealing plot to: {output_path}")
    plt.close()
    return output_path
