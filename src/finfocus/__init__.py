"""FinFocus: cloud cost calculation through out-of-process pricing plugins."""

__version__ = "0.3.0"
