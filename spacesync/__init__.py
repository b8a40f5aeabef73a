"""Detect changes between a local folder and a remote workspace, tracked in an SQLite index."""

__version__ = "0.3.2"