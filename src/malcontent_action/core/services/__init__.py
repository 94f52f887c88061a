from __future__ import annotations

from .aggregator import RiskAggregator
from .normalizer import ResultNormalizer
from .comment import CommentReconciler
from .diff_orchestrator import DiffOrchestrator

__all__ = [
    "RiskAggregator",
    "ResultNormalizer",
    "CommentReconciler",
    "DiffOrchestrator",
]
