"""
SCIM 2.0 provisioning core.
"""

from .app import create_app

__all__ = ["create_app"]
