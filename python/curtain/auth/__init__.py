"""Authentication and authorization module.

This module provides:
- Token verification (JWKS verifier)
- Auth middleware for FastAPI
- Viewer identity and admin guard dependencies

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

from curtain.auth.middleware import AuthMiddleware, Viewer, get_viewer, require_admin
from curtain.auth.verifier import JwksTokenVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "require_admin",
    "JwksTokenVerifier",
    "TokenVerifier",
]
