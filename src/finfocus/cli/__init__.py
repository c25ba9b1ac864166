# src/finfocus/cli/__init__.py
"""
FinFocus CLI Package

This package exposes the top-level Typer `app` so tests and the console
entrypoint can import `finfocus.cli.app`.
"""

from .main import app

__all__ = ["app"]
