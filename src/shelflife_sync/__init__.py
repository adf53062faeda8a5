"""Local-cache-first synchronization layer for ShelfLife collections."""

__version__ = "0.1.0"
