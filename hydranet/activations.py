"""
activations.py
~~~~~~~~~~~~~~

Numeric primitives shared by the networks.
"""

import numpy as np


def sigmoid(z):
    """The sigmoid function."""
    return 1.0 / (1.0 + np.exp(-z))


def sigmoid_prime(z):
    """
    Derivative of the sigmoid function.

    ``z`` must be a preactivation, never a value that already went
    through :func:`sigmoid`.
    """
    s = sigmoid(z)
    return s * (1.0 - s)


def random_weights(rng: np.random.Generator, shape) -> np.ndarray:
    """Draw weights uniformly from [-1, 1)."""
    return rng.uniform(-1.0, 1.0, size=shape)
