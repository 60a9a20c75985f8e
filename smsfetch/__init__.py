"""Incremental VoIP.ms SMS fetcher with per-message handler dispatch."""

__version__ = "0.3.0"
