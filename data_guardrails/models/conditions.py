"""Parsed form of custom rule conditions such as ``volume < 500000``."""

import operator
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional


class RuleParseError(ValueError):
    """Raised when a rule condition cannot be parsed."""
    pass


OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}

_CONDITION_PATTERN = re.compile(
    r'^\s*(?P<field>[A-Za-z_][A-Za-z0-9_]*)\s*'
    r'(?P<op><=|>=|<|>)\s*'
    r'(?P<threshold>[-+]?[0-9][0-9_,]*(?:\.[0-9]+)?)\s*$'
)


@dataclass(frozen=True)
class Comparison:
    """A single ``<field> <op> <number>`` comparison."""
    field: str
    op: str
    threshold: float

    def matches(self, context: Optional[Mapping[str, Any]]) -> bool:
        """Evaluate against a context; a missing field never matches."""
        if not context:
            return False

        value = context.get(self.field)
        if value is None:
            return False

        try:
            return OPERATORS[self.op](float(value), self.threshold)
        except (TypeError, ValueError):
            return False

    def __str__(self) -> str:
        threshold = int(self.threshold) if self.threshold.is_integer() else self.threshold
        return f"{self.field} {self.op} {threshold}"


@lru_cache(maxsize=256)
def parse_condition(condition: str) -> Comparison:
    """
    Parse a condition string into a Comparison.

    Raises:
        RuleParseError: If the condition is not a supported comparison
    """
    if not isinstance(condition, str):
        raise RuleParseError(f"Condition must be a string, got {type(condition).__name__}")

    match = _CONDITION_PATTERN.match(condition)
    if match is None:
        raise RuleParseError(
            f"Unsupported condition '{condition}': expected '<field> <op> <number>' "
            f"with op one of {', '.join(OPERATORS)}"
        )

    threshold = match.group('threshold').replace('_', '').replace(',', '')

    return Comparison(
        field=match.group('field').lower(),
        op=match.group('op'),
        threshold=float(threshold),
    )
