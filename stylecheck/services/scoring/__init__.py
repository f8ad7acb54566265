"""
Scoring Engine - deterministic pair scoring.

Turns a target and candidate list into one PairEvaluation per candidate:
weighted facet score, confidence tier, hard fails and cap reasons.
"""

from stylecheck.services.scoring.config import ScoringConfig
from stylecheck.services.scoring.engine import ScoringEngine, effective_evaluation, get_pair_type

__all__ = [
    "ScoringConfig",
    "ScoringEngine",
    "effective_evaluation",
    "get_pair_type",
]
