"""Study assistant service: Wikipedia-backed study packets with AI generation and deterministic fallbacks."""

__version__ = '1.0.0'
