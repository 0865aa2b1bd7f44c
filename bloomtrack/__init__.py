"""BloomTrack: bookkeeping API for flower sellers."""

__version__ = "1.0.0"
