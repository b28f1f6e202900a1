"""Header stores, header index, block notifications and caching for a compact-filter light client."""

__version__ = "0.1.0"