"""
Dice notation parsing and live validation.

Grammar:
    expression := term (',' term)*
    term       := [count] 'd' faces

``count`` and ``faces`` are positive integers; an omitted count means 1.
The empty string is a valid, empty expression.

``parse`` is used when a decision is committed. ``longest_valid_prefix`` and
``sanitize`` are the keystroke-time helpers: pure, stateless, never raising.
"""

import re
from typing import List, Tuple

from ..errors import InvalidNotation
from ..types import Comparator, DiceExpression, DiceTerm

TERM_PATTERN = re.compile(r"(?P<count>[0-9]*)d(?P<faces>[0-9]+)")
DIGITS = frozenset("0123456789")
TERM_SEPARATOR = ","

COMPARATOR_ALIASES = {
    "<": Comparator.LT,
    ">": Comparator.GT,
    "<=": Comparator.LE,
    ">=": Comparator.GE,
    "=": Comparator.EQ,
    "==": Comparator.EQ,
}


def _scan_terms(text: str) -> Tuple[List[DiceTerm], int, str]:
    """
    Consume as many complete terms as possible from the start of ``text``.

    Returns:
        (terms, end, reason): the accepted terms, the index just past the last
        accepted term, and why scanning stopped ("" when the whole text was
        consumed).
    """
    terms: List[DiceTerm] = []
    end = 0
    pos = 0
    while True:
        match = TERM_PATTERN.match(text, pos)
        if match is None:
            return terms, end, "expected a term of the form [count]d<faces>"

        count_digits = match.group('count')
        count = int(count_digits) if count_digits else 1
        faces = int(match.group('faces'))
        # digit runs are greedy, and an all-zero run is zero however it is cut
        if count < 1:
            return terms, end, "dice count must be positive"
        if faces < 1:
            return terms, end, "dice faces must be positive"

        terms.append(DiceTerm(count, faces))
        end = match.end()
        if end == len(text):
            return terms, end, ""
        if text[end] != TERM_SEPARATOR:
            return terms, end, f"unexpected character {text[end]!r}"
        pos = end + 1


def parse(text: str) -> DiceExpression:
    """
    Parse dice notation into a DiceExpression.

    Args:
        text: Dice text such as "1d20", "2d6,1d4" or "d8"

    Returns:
        The parsed expression (empty for empty text)

    Raises:
        InvalidNotation: If the text does not match the grammar
    """
    if text == "":
        return DiceExpression()

    terms, end, reason = _scan_terms(text)
    if end != len(text):
        raise InvalidNotation(text, reason, position=end)
    return DiceExpression(tuple(terms))


def longest_valid_prefix(text: str) -> str:
    """
    Return the longest prefix of ``text`` that ``parse`` accepts.

    Never raises. Idempotent: the result is its own longest valid prefix.
    """
    if not text:
        return ""
    _, end, _ = _scan_terms(text)
    return text[:end]


# States of the keystroke filter; each names what the next accepted character may be.
_START = "start"          # beginning of a term: count digit or 'd'
_COUNT = "count"          # inside the count: digit or 'd'
_D = "d"                  # just after 'd': faces digit
_FACES = "faces"          # inside faces: digit or ','


def sanitize(text: str) -> str:
    """
    Drop characters that cannot extend a valid expression.

    Unlike ``longest_valid_prefix`` this keeps in-progress input ("2d",
    "1d6,") so a text field stays editable while the user types. Zero-valued
    counts and faces are kept too, since a later digit can still make them
    valid ("1d0" then "1d05").

    Idempotent, and ``longest_valid_prefix(sanitize(s))`` always parses.
    """
    kept: List[str] = []
    state = _START
    for ch in text:
        if state == _START:
            if ch in DIGITS:
                state = _COUNT
            elif ch == 'd':
                state = _D
            else:
                continue
        elif state == _COUNT:
            if ch == 'd':
                state = _D
            elif ch not in DIGITS:
                continue
        elif state == _D:
            if ch in DIGITS:
                state = _FACES
            else:
                continue
        else:
            if ch == TERM_SEPARATOR:
                state = _START
            elif ch not in DIGITS:
                continue
        kept.append(ch)
    return "".join(kept)


def format_expression(expression: DiceExpression) -> str:
    """Canonical text for an expression; parses back to an equal expression."""
    return str(expression)


def parse_comparator(text: str) -> Comparator:
    """
    Parse a comparator symbol (``<``, ``>``, ``<=``, ``>=``, ``=`` or ``==``).

    Raises:
        InvalidNotation: If the symbol is not recognised
    """
    try:
        return COMPARATOR_ALIASES[text.strip()]
    except KeyError:
        raise InvalidNotation(
            text, f"expected one of {sorted(COMPARATOR_ALIASES)}"
        ) from None
