"""Click commands and output helpers for an application security testing platform."""

__version__ = "2.0.0rc2"