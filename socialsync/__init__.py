"""Client-side realtime sync layer for the social backend."""

__version__ = "0.1.0"

__all__ = ["__version__"]
