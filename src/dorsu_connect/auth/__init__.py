"""
Auth Module - Accounts and tokens.
==================================

- service: JSON user store, argon2 password hashing and JWT issue/verify
"""

from dorsu_connect.auth.service import AuthService, get_auth_service

__all__ = ["AuthService", "get_auth_service"]
