"""Exporters package for file-based report outputs."""

from .base_exporter import BaseExporter
from .json_exporter import JSONExporter, NDJSONExporter

__all__ = ["BaseExporter", "JSONExporter", "NDJSONExporter"]
