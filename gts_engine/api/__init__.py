"""
HTTP API for the GTS engine.
"""

from .http_server import create_app, run_http_server

__all__ = ["create_app", "run_http_server"]
