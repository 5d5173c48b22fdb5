"""
HTTP surface of the exporter (Prometheus scrape and health endpoints).
"""

from .app import create_app

__all__ = ["create_app"]
