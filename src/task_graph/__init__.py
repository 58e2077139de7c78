"""Dependency-aware task graph scheduler."""

__version__ = "0.1.0"
