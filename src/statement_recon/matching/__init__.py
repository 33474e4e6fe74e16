"""Matching engine and scoring rules."""

from .engine import MatchingEngine
from .strategies import (
    MatchingRule,
    AmountRule,
    DateRule,
    TypeRule,
    DescriptionRule,
)

__all__ = [
    "MatchingEngine",
    "MatchingRule",
    "AmountRule",
    "DateRule",
    "TypeRule",
    "DescriptionRule",
]
