"""Dice notation parsing and keystroke validation."""

from .parser import (
    parse,
    longest_valid_prefix,
    sanitize,
    format_expression,
    parse_comparator,
)

__all__ = [
    "parse",
    "longest_valid_prefix",
    "sanitize",
    "format_expression",
    "parse_comparator",
]
