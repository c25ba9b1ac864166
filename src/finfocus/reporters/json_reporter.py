# src/finfocus/reporters/json_reporter.py
"""
Machine-readable reporters: one JSON document, or newline-delimited JSON with
one object per resource. Keys are sorted so identical results serialise to
identical bytes.
"""

import json
import sys
from typing import IO, Optional

from ..models.costs import CostResultWithErrors
from ..models.plugins import RecommendationsResult
from .base_reporter import (
    BaseReporter,
    cost_report_to_dict,
    cost_result_to_dict,
    recommendation_to_dict,
    recommendations_report_to_dict,
)


class JSONReporter(BaseReporter):
    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream or sys.stdout

    def report(self, data: CostResultWithErrors):
        self.stream.write(json.dumps(cost_report_to_dict(data), indent=2, sort_keys=True) + "\n")

    def report_recommendations(self, data: RecommendationsResult):
        self.stream.write(json.dumps(recommendations_report_to_dict(data), indent=2, sort_keys=True) + "\n")


class NDJSONReporter(BaseReporter):
    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream or sys.stdout

    def report(self, data: CostResultWithErrors):
        for result in data.results:
            self.stream.write(json.dumps(cost_result_to_dict(result), sort_keys=True) + "\n")

    def report_recommendations(self, data: RecommendationsResult):
        for rec in data.recommendations:
            self.stream.write(json.dumps(recommendation_to_dict(rec), sort_keys=True) + "\n")
