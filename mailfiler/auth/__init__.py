"""Authentication: MSAL-backed token provider and Graph credential adapter."""

from mailfiler.auth.provider import (
    AuthProvider,
    AuthSettings,
    LocalAuthProvider,
    MsalAuthProvider,
    ProviderCredential,
)
from mailfiler.auth.token_cache import load_cache, save_cache

__all__ = [
    "AuthProvider",
    "AuthSettings",
    "LocalAuthProvider",
    "MsalAuthProvider",
    "ProviderCredential",
    "load_cache",
    "save_cache",
]
