"""Scheduling, matching and pricing engine for on-demand property photography."""

__version__ = "0.1.0"
