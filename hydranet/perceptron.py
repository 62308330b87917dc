"""
perceptron.py
~~~~~~~~~~~~~

A multi-layer feedforward neural network using the sigmoid activation
function, trained one example at a time by backpropagation (steepest
gradient descent).

The network has no biases: ``weights[l]`` is a ``sizes[l] x sizes[l+1]``
matrix and each unit's preactivation is the weighted sum of the previous
layer's activations.
"""

import logging
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from hydranet import config
from hydranet.activations import sigmoid, sigmoid_prime, random_weights
from hydranet.errors import DimensionMismatchError
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
class MultiLayerPerceptron(NeuralNetwork):
    """
    Feedforward network with a configurable number of layers and units.

    Training parameters are plain attributes and may be changed between
    construction and a call to :meth:`train`:

    - ``learn_rate``: step size of each weight update
    - ``error_margin``: an output unit is correct when it is closer than
      this to its target
    - ``percent_correct``: fraction of correct output units that ends
      training
    - ``max_attempts``: maximum number of passes over the training set
    - ``rescore_interval``: the score is only computed on passes whose
      number is a multiple of this
    - ``verbose``: log progress at INFO instead of DEBUG
    """

    kind = 'mlp'
    training_mode = TrainingMode.SUPERVISED

    def __init__(
        self,
        sizes: Sequence[int],
        rng=None,
        learn_rate: float = config.DEFAULT_LEARN_RATE,
        error_margin: float = config.DEFAULT_ERROR_MARGIN,
        percent_correct: float = config.DEFAULT_PERCENT_CORRECT,
        max_attempts: int = config.DEFAULT_MAX_ATTEMPTS,
        rescore_interval: int = config.DEFAULT_RESCORE_INTERVAL,
        verbose: bool = False
    ):
        """
        The list ``sizes`` contains the number of units in the respective
        layers of the network. For example, [2, 3, 1] is a three-layer
        network with two inputs, three hidden units and one output.

        Args:
            sizes: Layer widths, at least two, all positive
            rng: Seed or ``numpy.random.Generator`` used for the initial
                weights

        Raises:
            ValueError: If there are fewer than two layers or a width is
                not positive
        """
        sizes = list(sizes)
        if len(sizes) < 2:
            raise ValueError(
                f"Invalid architecture {sizes}: must have at least 2 layers"
            )
        if any(int(size) != size or size <= 0 for size in sizes):
            raise ValueError(
                f"Invalid architecture {sizes}: layer sizes must be "
                f"positive integers"
            )

        self.sizes = [int(size) for size in sizes]
        self.num_layers = len(self.sizes)
        self.rng = np.random.default_rng(rng)

        self.learn_rate = learn_rate
        self.error_margin = error_margin
        self.percent_correct = percent_correct
        self.max_attempts = max_attempts
        self.rescore_interval = rescore_interval
        self.verbose = verbose

        self.weights = [
            random_weights(self.rng, (x, y))
            for x, y in zip(self.sizes[:-1], self.sizes[1:])
        ]

        # Scratch space reused by every forward and backward pass
        self._zs = [np.zeros(size) for size in self.sizes]
        self._activations = [np.zeros(size) for size in self.sizes]
        self._deltas = [np.zeros(size) for size in self.sizes]

    def __repr__(self) -> str:
        return f"MultiLayerPerceptron({self.sizes})"

    @property
    def topology(self) -> Tuple[int, ...]:
        return tuple(self.sizes)

    @classmethod
    def from_topology(cls, topology, **kwargs) -> 'MultiLayerPerceptron':
        return cls(topology, **kwargs)

    def _weight_arrays(self):
        return self.weights

    # ------------------------------------------------------------------
    # Feedforward
    # ------------------------------------------------------------------

    def feed(self, input) -> np.ndarray:
        """
        Return the output of the network for ``input``.

        The input is copied, so the caller may reuse its buffer; the
        returned array is likewise a fresh copy.

        Raises:
            DimensionMismatchError: If ``len(input)`` is not the input width
        """
        x = as_vector(input, self.sizes[0], 'input')
        return self._feedforward(x).copy()

    def _feedforward(self, x: np.ndarray) -> np.ndarray:
        """Forward pass storing preactivations and activations per layer."""
        self._activations[0] = x
        for l in range(1, self.num_layers):
            z = self._activations[l - 1] @ self.weights[l - 1]
            self._zs[l] = z
            self._activations[l] = sigmoid(z)
        return self._activations[-1]

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _backprop(self, target: np.ndarray) -> None:
        """
        Propagate the error of the last forward pass back through the
        network, updating each weight matrix as soon as the deltas below
        it have been computed. Hidden deltas use the weights as they were
        before this update.
        """
        last = self.num_layers - 1
        self._deltas[last] = (
            (target - self._activations[last]) * sigmoid_prime(self._zs[last])
        )

        for l in range(last - 1, -1, -1):
            downstream = self._deltas[l + 1]
            upstream_error = self.weights[l] @ downstream
            self.weights[l] += (
                self.learn_rate * np.outer(self._activations[l], downstream)
            )
            if l > 0:
                self._deltas[l] = upstream_error * sigmoid_prime(self._zs[l])

    def train(
        self,
        inputs,
        outputs,
        callback: Optional[ProgressCallback] = None
    ) -> bool:
        """
        Train on the input/output pairs until the score reaches
        ``percent_correct`` or ``max_attempts`` passes have run.

        Each pass feeds every pair and adjusts every weight by steepest
        gradient descent. Every ``rescore_interval`` passes the score
        (number of output units within ``error_margin``) and the total
        absolute error are computed, logged, and handed to ``callback``
        as a dict with keys ``attempt``, ``max_attempts``, ``score``,
        ``max_score`` and ``error``.

        Args:
            inputs: Sequence of input vectors
            outputs: Sequence of target vectors, parallel to ``inputs``
            callback: Optional progress observer

        Returns:
            bool: True if the final fraction of correct output units
            exceeds ``percent_correct``

        Raises:
            DimensionMismatchError: If the two sets differ in length or a
                vector does not match its layer width
            ValueError: If the training set is empty
        """
        xs = as_dataset(inputs, self.sizes[0], 'input')
        ys = as_dataset(outputs, self.sizes[-1], 'output')
        if len(xs) != len(ys):
            raise DimensionMismatchError('output set', len(xs), len(ys))
        if not xs:
            raise ValueError("Training set is empty")

        max_score = len(xs) * self.sizes[-1]
        attempts = 0
        score = 0
        error = 0.0

        logger.info(
            f"Training {self} on {len(xs)} examples: "
            f"learn_rate={self.learn_rate}, max_attempts={self.max_attempts}"
        )

        while (score / max_score < self.percent_correct
               and attempts < self.max_attempts):
            attempts += 1
            score = 0
            error = 0.0
            rescore = attempts % self.rescore_interval == 0

            for x, target in zip(xs, ys):
                actual = self._feedforward(x)
                self._backprop(target)

                if rescore:
                    difference = np.abs(actual - target)
                    score += int(np.count_nonzero(difference < self.error_margin))
                    error += float(difference.sum())

            if rescore:
                self._report({
                    'attempt': attempts,
                    'max_attempts': self.max_attempts,
                    'score': score,
                    'max_score': max_score,
                    'error': error
                }, callback)

        converged = score / max_score > self.percent_correct
        logger.info(
            f"Training finished after {attempts} attempt(s): "
            f"score {score}/{max_score}, converged={converged}"
        )
        return converged

    def _report(
        self,
        record: Dict[str, Any],
        callback: Optional[ProgressCallback]
    ) -> None:
        level = logging.INFO if self.verbose else logging.DEBUG
        logger.log(
            level,
            f"Attempt: {record['attempt']}/{record['max_attempts']}, "
            f"Score: {record['score']}/{record['max_score']}, "
            f"Error: {record['error']}"
        )
        if callback is not None:
            callback(record)

    def evaluate(self, inputs, outputs) -> int:
        """
        Return the number of output units within ``error_margin`` of their
        targets, without changing any weight.
        """
        xs = as_dataset(inputs, self.sizes[0], 'input')
        ys = as_dataset(outputs, self.sizes[-1], 'output')
        if len(xs) != len(ys):
            raise DimensionMismatchError('output set', len(xs), len(ys))

        return sum(
            int(np.count_nonzero(
                np.abs(self._feedforward(x) - y) < self.error_margin
            ))
            for x, y in zip(xs, ys)
        )
