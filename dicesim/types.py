"""
Core data structures for the dice decision simulator.

Dice expressions, the comparator enumeration, and the Decision value type.
"""

import math
import numbers
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Tuple, Union

Number = Union[int, float]

# Wire form of a Decision: (comparator code, decision terms, threshold, dice terms)
TermPayload = Tuple[Tuple[int, int], ...]
DecisionPayload = Tuple[int, TermPayload, Number, TermPayload]


class Comparator(IntEnum):
    """
    Comparison applied between the decision roll and the threshold.

    The integer values are the fixed codes used whenever a comparator
    crosses a process boundary:
    ``<``=0, ``>``=1, ``<=``=2, ``>=``=3, ``=``=4.
    """
    LT = 0
    GT = 1
    LE = 2
    GE = 3
    EQ = 4

    @property
    def code(self) -> int:
        return int(self)

    @property
    def symbol(self) -> str:
        return _COMPARATOR_SYMBOLS[self]

    @classmethod
    def from_code(cls, code: int) -> 'Comparator':
        """Decode a comparator from its integer wire code."""
        try:
            return cls(int(code))
        except ValueError:
            raise ValueError(
                f"Unknown comparator code {code!r}; expected one of "
                f"{[c.code for c in cls]}"
            ) from None

    def apply(self, value, threshold):
        """
        Evaluate ``value <op> threshold`` exactly.

        Works element-wise when ``value`` is a numpy array.
        """
        if self is Comparator.LT:
            return value < threshold
        if self is Comparator.GT:
            return value > threshold
        if self is Comparator.LE:
            return value <= threshold
        if self is Comparator.GE:
            return value >= threshold
        return value == threshold

    def __str__(self) -> str:
        return self.symbol


_COMPARATOR_SYMBOLS = {
    Comparator.LT: "<",
    Comparator.GT: ">",
    Comparator.LE: "<=",
    Comparator.GE: ">=",
    Comparator.EQ: "=",
}


@dataclass(frozen=True)
class DiceTerm:
    """
    ``count`` independent dice, each uniform over [1, faces], summed.

    Attributes:
        count: Number of dice rolled (>= 1)
        faces: Number of faces per die (>= 1)
    """
    count: int
    faces: int

    def __post_init__(self) -> None:
        for name in ('count', 'faces'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise TypeError(f"DiceTerm.{name} must be an integer, got {value!r}")
            object.__setattr__(self, name, int(value))
        if self.count < 1 or self.faces < 1:
            raise ValueError(
                f"DiceTerm needs count >= 1 and faces >= 1, got "
                f"count={self.count}, faces={self.faces}"
            )

    @property
    def min_value(self) -> int:
        return self.count

    @property
    def max_value(self) -> int:
        return self.count * self.faces

    def __str__(self) -> str:
        return f"{self.count}d{self.faces}"


@dataclass(frozen=True)
class DiceExpression:
    """
    Ordered sum of dice terms. An empty expression always rolls 0.
    """
    terms: Tuple[DiceTerm, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept any iterable of terms but store a tuple so the value stays hashable
        object.__setattr__(self, 'terms', tuple(self.terms))
        for term in self.terms:
            if not isinstance(term, DiceTerm):
                raise TypeError(f"DiceExpression terms must be DiceTerm, got {term!r}")

    def __len__(self) -> int:
        return len(self.terms)

    def __iter__(self):
        return iter(self.terms)

    @property
    def min_value(self) -> int:
        """Smallest possible roll (every die shows 1)."""
        return sum(term.min_value for term in self.terms)

    @property
    def max_value(self) -> int:
        """Largest possible roll (every die shows its top face)."""
        return sum(term.max_value for term in self.terms)

    @property
    def n_dice(self) -> int:
        return sum(term.count for term in self.terms)

    def to_payload(self) -> TermPayload:
        return tuple((term.count, term.faces) for term in self.terms)

    @classmethod
    def from_payload(cls, payload: TermPayload) -> 'DiceExpression':
        return cls(tuple(DiceTerm(int(count), int(faces)) for count, faces in payload))

    def __str__(self) -> str:
        return ",".join(str(term) for term in self.terms)


@dataclass(frozen=True)
class Decision:
    """
    A gating roll controlling whether a payoff roll is recorded.

    Roll ``decision_dice``; if ``roll <comparator> threshold`` holds, roll
    ``dice`` and record its value, otherwise record nothing.

    Attributes:
        comparator: Comparison between the decision roll and the threshold
        decision_dice: Gating roll
        threshold: Any finite real value
        dice: Payoff roll
    """
    comparator: Comparator
    decision_dice: DiceExpression
    threshold: Number
    dice: DiceExpression

    def __post_init__(self) -> None:
        object.__setattr__(self, 'comparator', Comparator(self.comparator))
        for name in ('decision_dice', 'dice'):
            value = getattr(self, name)
            if not isinstance(value, DiceExpression):
                # text goes through Decision.from_text, which parses it
                raise TypeError(
                    f"Decision.{name} must be a DiceExpression, got {value!r}; "
                    f"use Decision.from_text() for dice notation"
                )
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, numbers.Real):
            raise ValueError(f"Decision threshold must be a number, got {self.threshold!r}")
        if not math.isfinite(self.threshold):
            raise ValueError(f"Decision threshold must be finite, got {self.threshold!r}")

    @classmethod
    def from_text(
        cls,
        comparator: Union[str, Comparator],
        decision_dice: str,
        threshold: Number,
        dice: str
    ) -> 'Decision':
        """
        Build a Decision from user-entered text.

        Raises:
            InvalidNotation: If either dice string or the comparator does not parse
            ValueError: If the threshold is not a finite number
        """
        from .notation.parser import parse, parse_comparator

        if not isinstance(comparator, Comparator):
            comparator = parse_comparator(comparator)
        return cls(
            comparator=comparator,
            decision_dice=parse(decision_dice),
            threshold=threshold,
            dice=parse(dice),
        )

    @property
    def max_value(self) -> int:
        """Largest recordable outcome; histograms have max_value + 1 buckets."""
        return self.dice.max_value

    def triggers(self, roll: Number) -> bool:
        return bool(self.comparator.apply(roll, self.threshold))

    def with_comparator(self, comparator: Comparator) -> 'Decision':
        return replace(self, comparator=comparator)

    def with_threshold(self, threshold: Number) -> 'Decision':
        return replace(self, threshold=threshold)

    def with_decision_dice(self, decision_dice: DiceExpression) -> 'Decision':
        return replace(self, decision_dice=decision_dice)

    def with_dice(self, dice: DiceExpression) -> 'Decision':
        return replace(self, dice=dice)

    def to_payload(self) -> DecisionPayload:
        """Plain-tuple form used to send a Decision to a worker process."""
        return (
            self.comparator.code,
            self.decision_dice.to_payload(),
            self.threshold,
            self.dice.to_payload(),
        )

    @classmethod
    def from_payload(cls, payload: DecisionPayload) -> 'Decision':
        code, decision_terms, threshold, dice_terms = payload
        return cls(
            comparator=Comparator.from_code(code),
            decision_dice=DiceExpression.from_payload(decision_terms),
            threshold=threshold,
            dice=DiceExpression.from_payload(dice_terms),
        )

    def __str__(self) -> str:
        gate = str(self.decision_dice) or "0"
        payoff = str(self.dice) or "0"
        return f"if {gate} {self.comparator.symbol} {self.threshold} then {payoff}"


def always(dice: DiceExpression) -> Decision:
    """Decision that triggers on every iteration (bare histogram of ``dice``)."""
    return Decision(
        comparator=Comparator.GE,
        decision_dice=DiceExpression(),
        threshold=0,
        dice=dice,
    )
