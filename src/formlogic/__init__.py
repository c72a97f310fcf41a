"""Formlogic: conditional visibility and validation for dynamic forms."""

__version__ = "0.4.0"
