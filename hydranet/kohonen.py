"""
kohonen.py
~~~~~~~~~~

Two-dimensional Kohonen self-organizing map.

The map performs unsupervised learning by placing input vectors on a
``width x height`` grid of prototype vectors. It preserves topology:
similar inputs end up close to each other on the map.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from hydranet import config
from hydranet.activations import random_weights
from hydranet.network import (
    NeuralNetwork,
    TrainingMode,
    register_network,
    as_vector,
    as_dataset
)

# Configure module logger
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]


@register_network
class KohonenMap(NeuralNetwork):
    """
    Self-organizing map of ``width x height`` prototypes of ``length``
    components each.

    Training parameters (plain attributes):

    - ``neighbor_radius``: neighbourhood radius at the start of training,
      defaults to ``max(width, height)``
    - ``initial_alpha``: learning weight at the start of training
    - ``total_iterations``: number of sweeps over the training set
    """

    kind = 'kohonen'
    training_mode = TrainingMode.UNSUPERVISED

    def __init__(
        self,
        width: int,
        height: int,
        length: int,
        rng=None,
        initial_alpha: float = config.DEFAULT_INITIAL_ALPHA,
        total_iterations: int = config.DEFAULT_TOTAL_ITERATIONS,
        neighbor_radius: Optional[int] = None
    ):
        for name, value in (('width', width), ('height', height),
                            ('length', length)):
            if int(value) != value or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value}")

        self.width = int(width)
        self.height = int(height)
        self.length = int(length)
        self.rng = np.random.default_rng(rng)

        self.neighbor_radius = (
            max(self.width, self.height) if neighbor_radius is None
            else neighbor_radius
        )
        self.initial_alpha = initial_alpha
        self.total_iterations = total_iterations

        self.weights = random_weights(
            self.rng, (self.width, self.height, self.length)
        )

    def __repr__(self) -> str:
        return f"KohonenMap({self.width}, {self.height}, {self.length})"

    @property
    def topology(self) -> Tuple[int, ...]:
        return (self.width, self.height, self.length)

    @classmethod
    def from_topology(cls, topology, **kwargs) -> 'KohonenMap':
        if len(topology) != 3:
            raise ValueError(
                f"Expected width, height and length, got {list(topology)}"
            )
        return cls(*topology, **kwargs)

    def _weight_arrays(self):
        return [self.weights]

    def seed(self, inputs) -> None:
        """
        Reset every prototype component to the same component of a
        randomly chosen training input.

        Each component is drawn independently, so a prototype is generally
        not a copy of any single input. Useful when many input dimensions
        barely vary across the data set.

        Raises:
            DimensionMismatchError: If an input does not have ``length``
                components
            ValueError: If ``inputs`` is empty
        """
        data = as_dataset(inputs, self.length, 'input')
        if not data:
            raise ValueError("Cannot seed from an empty input set")

        samples = np.stack(data)
        picks = self.rng.integers(0, len(samples), size=self.weights.shape)
        self.weights[...] = samples[picks, np.arange(self.length)]
        logger.debug(f"Seeded {self} from {len(samples)} inputs")

    # ------------------------------------------------------------------
    # Feedforward
    # ------------------------------------------------------------------

    def _distances(self, x: np.ndarray) -> np.ndarray:
        """Squared Euclidean distance from ``x`` to every prototype."""
        return np.sum((self.weights - x) ** 2, axis=2)

    def _best_match(self, x: np.ndarray) -> Tuple[int, int]:
        # argmin scans x-major and keeps the first minimum
        index = int(np.argmin(self._distances(x)))
        return divmod(index, self.height)

    def feed(self, input) -> np.ndarray:
        """
        Return the grid coordinates ``[x, y]`` of the best matching unit.

        Raises:
            DimensionMismatchError: If ``len(input)`` is not ``length``
        """
        x = as_vector(input, self.length, 'input')
        return np.array(self._best_match(x), dtype=float)

    def quantization_error(self, inputs) -> float:
        """Mean distance between each input and its best matching prototype."""
        data = as_dataset(inputs, self.length, 'input')
        if not data:
            raise ValueError("Cannot score an empty input set")
        return float(np.mean([
            np.sqrt(np.min(self._distances(x))) for x in data
        ]))

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _update(self, x: np.ndarray, alpha: float, radius: int) -> None:
        """
        Pull the best matching unit and its neighbours within ``radius``
        towards ``x``. A cell at offset (dx, dy) moves by
        ``alpha / (dx^2 + dy^2 + 1)`` of the way.
        """
        bx, by = self._best_match(x)
        x0, x1 = max(bx - radius, 0), min(bx + radius, self.width - 1)
        y0, y1 = max(by - radius, 0), min(by + radius, self.height - 1)

        dx = np.arange(x0, x1 + 1) - bx
        dy = np.arange(y0, y1 + 1) - by
        falloff = 1.0 / (dx[:, None] ** 2 + dy[None, :] ** 2 + 1)

        region = self.weights[x0:x1 + 1, y0:y1 + 1]
        region += alpha * (x - region) * falloff[:, :, None]

    def train(self, inputs, callback: Optional[ProgressCallback] = None) -> None:
        """
        Run ``total_iterations`` sweeps over ``inputs``.

        The learning weight starts at ``initial_alpha`` and drops by
        ``initial_alpha / total_iterations`` after every sweep; the
        neighbourhood radius for a sweep is
        ``floor(neighbor_radius * alpha / initial_alpha)``. After each
        sweep ``callback`` receives a dict with keys ``iteration``,
        ``total_iterations``, ``alpha`` and ``radius``.

        Raises:
            DimensionMismatchError: If an input does not have ``length``
                components
            ValueError: If ``total_iterations`` is not positive
        """
        data = as_dataset(inputs, self.length, 'input')
        if self.total_iterations <= 0:
            raise ValueError(
                f"total_iterations must be positive, got {self.total_iterations}"
            )

        step = self.initial_alpha / self.total_iterations
        logger.info(
            f"Training {self} on {len(data)} inputs for "
            f"{self.total_iterations} iterations"
        )

        for iteration in range(self.total_iterations):
            alpha = self.initial_alpha - iteration * step
            if alpha <= 0:
                break
            radius = int(self.neighbor_radius * alpha / self.initial_alpha)

            for x in data:
                self._update(x, alpha, radius)

            logger.debug(
                f"Iteration {iteration + 1}/{self.total_iterations}: "
                f"alpha={alpha:.4f}, radius={radius}"
            )
            if callback is not None:
                callback({
                    'iteration': iteration + 1,
                    'total_iterations': self.total_iterations,
                    'alpha': alpha,
                    'radius': radius
                })

        logger.info(f"Training finished for {self}")
