"""Wildcard certificate maintenance for Nginx Proxy Manager."""

__version__ = "0.1.0"
