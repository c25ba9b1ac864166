from .console_reporter import ConsoleReporter
from .json_reporter import JSONReporter, NDJSONReporter

__all__ = ["ConsoleReporter", "JSONReporter", "NDJSONReporter"]
