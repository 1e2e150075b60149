"""Multi-tenant library catalog search indexer."""

__version__ = "0.1.0"
