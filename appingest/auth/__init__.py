"""Credential handling for AppIngest.

Public API:

- basic_auth_header: Build the Basic Authorization header value
- CredentialManager: Read UEM_* variables (and .env) with prompt fallback
"""

from .credentials import CredentialManager, basic_auth_header

__all__ = ["CredentialManager", "basic_auth_header"]
