"""Momentum Rider - momentum score service with tiered caching and admission control."""

__version__ = "1.0.0"
