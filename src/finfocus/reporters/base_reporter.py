# src/finfocus/reporters/base_reporter.py
"""
Defines the abstract base class for all reporters and the row serialisation
they share.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..engine.aggregation import aggregate_results
from ..models.costs import CostResult, CostResultWithErrors
from ..models.plugins import Recommendation, RecommendationsResult


def cost_result_to_dict(result: CostResult) -> Dict[str, Any]:
    return result.model_dump(mode="json", exclude_none=True)


def recommendation_to_dict(recommendation: Recommendation) -> Dict[str, Any]:
    return recommendation.model_dump(mode="json")


def cost_report_to_dict(report: CostResultWithErrors) -> Dict[str, Any]:
    return {
        "summary": aggregate_results(report.results).model_dump(mode="json"),
        "resources": [cost_result_to_dict(r) for r in report.results],
        "errors": [e.to_dict() for e in report.errors],
        "warnings": list(report.warnings),
    }


def recommendations_report_to_dict(report: RecommendationsResult) -> Dict[str, Any]:
    return {
        "recommendations": [recommendation_to_dict(r) for r in report.recommendations],
        "total_savings": report.total_savings,
        "currency": report.currency,
        "errors": [e.to_dict() for e in report.errors],
    }


class BaseReporter(ABC):
    """
    Abstract Base Class for all reporters.
    """

    @abstractmethod
    def report(self, data: CostResultWithErrors):
        """
        Presents a cost batch in a specific format (e.g., console table, JSON).
        """
        pass

    @abstractmethod
    def report_recommendations(self, data: RecommendationsResult):
        pass


def rows_for_export(report: CostResultWithErrors) -> List[Dict[str, Any]]:
    return [cost_result_to_dict(r) for r in report.results]
