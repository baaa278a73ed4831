"""Local semantic retrieval core for notebook chat."""

__version__ = "0.1.0"
