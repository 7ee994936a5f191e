"""Incremental Hacker News crawler feeding LLM digests to a static site."""

__version__ = "0.1.0"
