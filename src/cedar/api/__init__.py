"""
API HTTP del sitio de listados.
"""

from cedar.api.app import create_app

__all__ = ["create_app"]
