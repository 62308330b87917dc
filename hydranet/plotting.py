"""
plotting.py
~~~~~~~~~~~

Render training progress and Kohonen maps as base64-encoded PNG images.
"""

import base64
import logging
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

# Use non-GUI backend for matplotlib (no display needed)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from hydranet.kohonen import KohonenMap

# Configure module logger
logger = logging.getLogger(__name__)


def _figure_to_base64(fig) -> str:
    """Encode a figure as PNG, close it, and return the base64 text."""
    buffer = BytesIO()
    fig.savefig(buffer, format='png', bbox_inches='tight')
    plt.close(fig)
    buffer.seek(0)
    return base64.b64encode(buffer.getvalue()).decode('utf-8')


def render_training_curve(records: List[Dict[str, Any]]) -> str:
    """
    Plot the score fraction and total error of a perceptron training run.

    Args:
        records: Progress dicts as passed to the ``train`` callback of
            MultiLayerPerceptron

    Returns:
        Base64-encoded PNG image string

    Raises:
        ValueError: If there are no records
    """
    if not records:
        raise ValueError("No training records to plot")

    attempts = [record['attempt'] for record in records]
    fractions = [record['score'] / record['max_score'] for record in records]
    errors = [record['error'] for record in records]

    fig, score_axis = plt.subplots(figsize=(6, 3))
    score_axis.plot(attempts, fractions, color='tab:blue')
    score_axis.set_xlabel('Attempt')
    score_axis.set_ylabel('Fraction correct', color='tab:blue')
    score_axis.set_ylim(0.0, 1.05)

    error_axis = score_axis.twinx()
    error_axis.plot(attempts, errors, color='tab:red')
    error_axis.set_ylabel('Error', color='tab:red')

    logger.debug(f"Rendered training curve with {len(records)} points")
    return _figure_to_base64(fig)


def render_kohonen_map(
    kmap: KohonenMap,
    inputs,
    labels: Optional[Sequence[str]] = None
) -> str:
    """
    Draw the map grid and mark where each input lands.

    Args:
        kmap: Trained map
        inputs: Vectors to place on the map
        labels: Optional text per input, defaults to the input values

    Returns:
        Base64-encoded PNG image string
    """
    inputs = [np.asarray(row, dtype=float) for row in inputs]
    if labels is None:
        labels = [' '.join(f"{v:g}" for v in row) for row in inputs]

    fig, axis = plt.subplots(figsize=(4, 4))
    axis.set_xlim(-0.5, kmap.width - 0.5)
    axis.set_ylim(-0.5, kmap.height - 0.5)
    axis.set_xticks(range(kmap.width))
    axis.set_yticks(range(kmap.height))
    axis.grid(True, linestyle=':')
    axis.set_title(f"Kohonen map {kmap.width}x{kmap.height}")

    for row, label in zip(inputs, labels):
        x, y = kmap.feed(row)
        axis.scatter([x], [y], color='tab:blue')
        axis.annotate(label, (x, y), textcoords='offset points', xytext=(4, 4))

    logger.debug(f"Rendered {kmap} with {len(inputs)} inputs")
    return _figure_to_base64(fig)
