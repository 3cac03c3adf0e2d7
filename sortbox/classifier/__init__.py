"""Folder classification system for sortbox."""

from .engine import Classifier
from .feedback import FeedbackStore
from .rules import DEFAULT_RULES, RuleStore
from .scorer import Scorer

__all__ = [
    "Classifier",
    "RuleStore",
    "Scorer",
    "FeedbackStore",
    "DEFAULT_RULES",
]
