"""Scoring rules, profiles and the signal classifier.

Public API:
- ScoreRule / Condition / cond: declarative rule tables
- ScoringProfile / GatePolicy: a named rule table plus its gate policy
- register_profile / get_profile / list_profiles: profile registry
- SignalClassifier: snapshot + price -> ClassifiedSignal

Importing this package registers the built-in profiles.
"""

from core.strategy.rules import SCORE_FIELDS, Condition, ScoreRule, Side, cond, score
from core.strategy.registry import get_profile, list_profiles, register_profile
from core.strategy.profiles import (
    EMA_RSI_MACD,
    EMA_RSI_MACD_ATR,
    EMA_RSI_MACD_LABEL,
    EMA_RSI_MACD_RULES,
    GatePolicy,
    ScoringProfile,
)
from core.strategy.classifier import SignalClassifier, probabilities, strength_for

__all__ = [
    "SCORE_FIELDS",
    "Condition",
    "ScoreRule",
    "Side",
    "cond",
    "score",
    "get_profile",
    "list_profiles",
    "register_profile",
    "EMA_RSI_MACD",
    "EMA_RSI_MACD_ATR",
    "EMA_RSI_MACD_LABEL",
    "EMA_RSI_MACD_RULES",
    "GatePolicy",
    "ScoringProfile",
    "SignalClassifier",
    "probabilities",
    "strength_for",
]
