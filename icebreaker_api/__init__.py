"""Ice-breaker channel and session service."""

__version__ = "0.4.0"
