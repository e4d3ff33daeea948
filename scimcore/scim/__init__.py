"""
SCIM 2.0 resource engine.

Schema registry, attribute filtering, document codec and update validation
for SCIM Users and Groups, with a Flask blueprint exposing them over HTTP.
"""

from .routes import scim_bp

__all__ = ["scim_bp"]
