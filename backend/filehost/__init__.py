"""Filehost: a small file hosting service with a local-disk record store."""

__version__ = "1.0.0"
