"""
network.py
~~~~~~~~~~

The capability shared by every hydranet network, plus the plain-text
persistence format.

A persisted network is an ASCII, line-oriented dump: the first line holds
the whitespace-separated topology integers, followed by one weight per line
in the order the weights were allocated at construction. There is no
version tag, magic number or checksum. Extra trailing lines are ignored.
"""

import io
import enum
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Tuple, Type, TextIO

import numpy as np

from hydranet.errors import DimensionMismatchError, MalformedPersistedStateError

# Configure module logger
logger = logging.getLogger(__name__)

# Concrete network classes by kind name: {'mlp': MultiLayerPerceptron, ...}
NETWORK_TYPES: Dict[str, Type['NeuralNetwork']] = {}


class TrainingMode(enum.Enum):
    """How a network learns: from labelled pairs or from inputs alone."""

    SUPERVISED = 'supervised'
    UNSUPERVISED = 'unsupervised'


def register_network(cls: Type['NeuralNetwork']) -> Type['NeuralNetwork']:
    """Class decorator adding a network class to NETWORK_TYPES."""
    NETWORK_TYPES[cls.kind] = cls
    return cls


def as_vector(values, expected: int, what: str = 'input') -> np.ndarray:
    """
    Copy ``values`` into a flat float array of length ``expected``.

    Column vectors of shape (n, 1) are accepted and flattened.

    Raises:
        DimensionMismatchError: If the length is not ``expected``
    """
    vector = np.array(values, dtype=float).ravel()
    if vector.size != expected:
        raise DimensionMismatchError(what, expected, vector.size)
    return vector


def as_dataset(rows, expected: int, what: str = 'input') -> List[np.ndarray]:
    """Validate every row of a training set with :func:`as_vector`."""
    return [
        as_vector(row, expected, f"{what} {n}")
        for n, row in enumerate(rows)
    ]


class NeuralNetwork(ABC):
    """
    A trainable network mapping an input vector to an output vector.

    Subclasses set ``kind`` (their registry name) and ``training_mode``,
    and expose their weights through :meth:`_weight_arrays` so the shared
    text format can be written and read here.
    """

    kind: str = None
    training_mode: TrainingMode = None

    @property
    @abstractmethod
    def topology(self) -> Tuple[int, ...]:
        """The integers written on the first line of a dump."""

    @classmethod
    @abstractmethod
    def from_topology(cls, topology: Sequence[int], **kwargs) -> 'NeuralNetwork':
        """Build a freshly initialised network of the given topology."""

    @abstractmethod
    def feed(self, input) -> np.ndarray:
        """Map an input vector to an output vector."""

    @abstractmethod
    def train(self, inputs, *args, **kwargs):
        """Adjust the weights in place from a training set."""

    @abstractmethod
    def _weight_arrays(self) -> List[np.ndarray]:
        """The weight arrays, in persisted order, as writable arrays."""

    @property
    def weight_count(self) -> int:
        """Number of weight lines in a dump of this network."""
        return sum(array.size for array in self._weight_arrays())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _write(self, stream: TextIO) -> None:
        stream.write(' '.join(str(n) for n in self.topology) + '\n')
        for array in self._weight_arrays():
            for value in array.ravel():
                stream.write(repr(float(value)) + '\n')

    def serialize(self, stream: TextIO) -> None:
        """
        Write the topology and weights to ``stream``, then close it.

        Args:
            stream: Writable text stream; must not be reused afterwards
        """
        try:
            self._write(stream)
        finally:
            stream.close()
        logger.debug(
            f"Serialized {self.kind} network {self.topology} "
            f"({self.weight_count} weights)"
        )

    @classmethod
    def deserialize(cls, stream: TextIO, **kwargs) -> 'NeuralNetwork':
        """
        Restore a network written by :meth:`serialize`.

        The caller keeps ownership of ``stream``. Keyword arguments are
        forwarded to the constructor (training parameters, ``rng``).

        Raises:
            MalformedPersistedStateError: If the topology line is missing or
                invalid, or if there are fewer weights than it requires
        """
        topology = _read_topology(stream)
        try:
            network = cls.from_topology(topology, **kwargs)
        except ValueError as e:
            raise MalformedPersistedStateError(
                f"Invalid {cls.kind} topology {topology}: {e}"
            ) from e

        read = 0
        total = network.weight_count
        for array in network._weight_arrays():
            flat = array.reshape(-1)
            for index in range(flat.size):
                flat[index] = _read_weight(stream, read, total)
                read += 1

        logger.debug(f"Deserialized {cls.kind} network {topology}")
        return network

    def dumps(self) -> str:
        """Return the persisted form as a string."""
        buffer = io.StringIO()
        self._write(buffer)
        return buffer.getvalue()

    @classmethod
    def loads(cls, text: str, **kwargs) -> 'NeuralNetwork':
        """Restore a network from the string returned by :meth:`dumps`."""
        return cls.deserialize(io.StringIO(text), **kwargs)

    def save(self, path: str) -> None:
        """Write the persisted form to the file at ``path``."""
        self.serialize(open(path, 'w', encoding='ascii'))
        logger.info(f"Saved {self.kind} network {self.topology} to {path}")

    @classmethod
    def load(cls, path: str, **kwargs) -> 'NeuralNetwork':
        """Restore a network from the file at ``path``."""
        with open(path, 'r', encoding='ascii') as stream:
            network = cls.deserialize(stream, **kwargs)
        logger.info(f"Loaded {cls.kind} network {network.topology} from {path}")
        return network


def _read_topology(stream: TextIO) -> Tuple[int, ...]:
    line = stream.readline()
    fields = line.split()
    if not fields:
        raise MalformedPersistedStateError("Missing topology line")
    try:
        return tuple(int(field) for field in fields)
    except ValueError as e:
        raise MalformedPersistedStateError(
            f"Invalid topology line {line.strip()!r}"
        ) from e


def _read_weight(stream: TextIO, index: int, total: int) -> float:
    line = stream.readline()
    if not line:
        raise MalformedPersistedStateError(
            f"Stream ended after {index} of {total} weights"
        )
    try:
        return float(line)
    except ValueError as e:
        raise MalformedPersistedStateError(
            f"Invalid weight {line.strip()!r} at position {index}"
        ) from e
