"""Disk partitioning, filesystem creation and installation configuration types."""

__version__ = "0.1.0"