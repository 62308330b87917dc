"""
errors.py
~~~~~~~~~

Exceptions raised by hydranet networks.
"""


class HydranetError(Exception):
    """Base class for all hydranet errors."""


class DimensionMismatchError(HydranetError, ValueError):
    """A vector or dataset shape disagrees with the network topology."""

    def __init__(self, what: str, expected: int, actual: int):
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{what} has length {actual}, expected {expected}"
        )


class MalformedPersistedStateError(HydranetError, ValueError):
    """A persisted weight stream is truncated or cannot be parsed."""
