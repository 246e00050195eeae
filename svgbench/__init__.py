"""Regression testing, statistics and documentation tools for SVG cleaning programs."""

__version__ = "0.1.0"