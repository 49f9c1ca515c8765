"""HTTP GET forward proxy, request parser, LRU response cache and logging."""

__version__ = "0.1.0"
__all__ = ["__version__"]