"""
HTTP API for ojcore.

This module exposes jobs, users, contests and ranklists over JSON.
"""

from .server import api_bp, create_app, run_api

__all__ = ["api_bp", "create_app", "run_api"]
