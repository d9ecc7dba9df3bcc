"""
Core services for the navigator.

This package contains the derivation rules over benefits and claims,
appeal letter composition, and the coverage analysis contract.
"""

from .appeal_composer import AppealDraft, compose_letter, format_currency
from .benefit_tracker import is_limit_reached, status_for_percentage, usage_percentage
from .claims_ledger import appeal, can_appeal, summarize
from .coverage_analyzer import (
    AnalysisState,
    CoverageAnalysisSession,
    CoverageAnalyzer,
    StaticCoverageAnalyzer,
    TransportCoverageAnalyzer,
)
from .results import Result

__all__ = [
    "AnalysisState",
    "AppealDraft",
    "CoverageAnalysisSession",
    "CoverageAnalyzer",
    "Result",
    "StaticCoverageAnalyzer",
    "TransportCoverageAnalyzer",
    "appeal",
    "can_appeal",
    "compose_letter",
    "format_currency",
    "is_limit_reached",
    "status_for_percentage",
    "summarize",
    "usage_percentage",
]
