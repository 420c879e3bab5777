"""Worklite: a local tracker for projects and hierarchical work items."""

__version__ = "0.1.0"
