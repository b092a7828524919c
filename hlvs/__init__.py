"""Hierarchical Logic-Aware Video Summarization."""

__version__ = "1.0.0"
