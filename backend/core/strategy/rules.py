"""Declarative scoring rules.

A rule awards ``weight`` points to one side (long or short) when all of
its conditions hold. Each condition compares a snapshot field against
another field or a constant, so a profile swaps its rule table without
touching the scoring engine.
"""

from __future__ import annotations

import operator
from decimal import Decimal
from enum import Enum
from typing import Callable, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Fields a condition may reference
SCORE_FIELDS = (
    "price",
    "ema_fast",
    "ema_slow",
    "rsi",
    "macd_line",
    "macd_signal",
    "macd_histogram",
)

_OPERATORS: dict[str, Callable[[Decimal, Decimal], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


class Condition(BaseModel):
    """``left op right``; ``right`` is a field name or a constant."""

    model_config = ConfigDict(frozen=True)

    left: str
    op: Literal[">", ">=", "<", "<=", "==", "!="]
    right: str | Decimal

    @field_validator("left")
    @classmethod
    def _known_left(cls, value: str) -> str:
        if value not in SCORE_FIELDS:
            raise ValueError(f"Unknown field '{value}'. Available: {', '.join(SCORE_FIELDS)}")
        return value

    @field_validator("right")
    @classmethod
    def _known_right(cls, value: str | Decimal) -> str | Decimal:
        if isinstance(value, str) and value not in SCORE_FIELDS:
            raise ValueError(f"Unknown field '{value}'. Available: {', '.join(SCORE_FIELDS)}")
        return value

    def holds(self, values: Mapping[str, Decimal]) -> bool:
        right = values[self.right] if isinstance(self.right, str) else self.right
        return _OPERATORS[self.op](values[self.left], right)


class ScoreRule(BaseModel):
    """Award ``weight`` to ``side`` when every condition holds."""

    model_config = ConfigDict(frozen=True)

    side: Side
    weight: int = Field(ge=0)
    conditions: tuple[Condition, ...]
    name: str = ""

    def matches(self, values: Mapping[str, Decimal]) -> bool:
        return all(c.holds(values) for c in self.conditions)


def cond(left: str, op: str, right: str | Decimal | int | float) -> Condition:
    """Shorthand for building rule tables in code."""
    if isinstance(right, (int, float)):
        right = Decimal(str(right))
    return Condition(left=left, op=op, right=right)


def score(rules: Sequence[ScoreRule], values: Mapping[str, Decimal]) -> tuple[int, int]:
    """Sum rule weights per side.

    Returns:
        (long_score, short_score)
    """
    long_score = 0
    short_score = 0
    for rule in rules:
        if not rule.matches(values):
            continue
        if rule.side == Side.LONG:
            long_score += rule.weight
        else:
            short_score += rule.weight
    return long_score, short_score
