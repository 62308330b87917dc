"""
hydranet package
~~~~~~~~~~~~~~~~

Minimal neural network toolkit.
Contains a backpropagation-trained multi-layer perceptron, a Kohonen
self-organizing map, their text persistence format, and a SQLite model store.
"""

from hydranet.errors import (
    HydranetError,
    DimensionMismatchError,
    MalformedPersistedStateError
)
from hydranet.network import NeuralNetwork, TrainingMode, NETWORK_TYPES
from hydranet.perceptron import MultiLayerPerceptron
from hydranet.kohonen import KohonenMap

__version__ = "1.0.0"

__all__ = [
    "HydranetError",
    "DimensionMismatchError",
    "MalformedPersistedStateError",
    "NeuralNetwork",
    "TrainingMode",
    "NETWORK_TYPES",
    "MultiLayerPerceptron",
    "KohonenMap",
]
