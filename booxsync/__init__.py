"""Sync a local folder of documents into a Boox e-reader library."""

__version__ = "0.1.0"
