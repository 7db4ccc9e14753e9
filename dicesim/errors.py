"""
Exception types raised by the dice simulator.

Simulation itself cannot fail once its inputs are validated; everything here
is raised at a boundary (text entry, pool lifecycle, worker handles).
"""

from typing import Optional


class DiceSimError(Exception):
    """Base class for all dice simulator errors."""


class InvalidNotation(DiceSimError, ValueError):
    """
    Dice text (or a comparator symbol) does not match the grammar.

    Attributes:
        text: The rejected input
        position: Index of the first character that could not be accepted,
                  or None when the whole input is rejected
    """

    def __init__(self, text: str, message: str, position: Optional[int] = None):
        self.text = text
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid dice notation {text!r}{where}: {message}")


class PoolNotReady(DiceSimError, RuntimeError):
    """A parallel run was requested before the sampling pool finished initializing."""


class ResourceAlreadyReleased(DiceSimError, RuntimeError):
    """A worker handle was used after it had been released."""
