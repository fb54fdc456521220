"""Signal ↔ Home Assistant bridge."""

__version__ = "0.3.0"
