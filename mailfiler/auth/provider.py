"""Token acquisition and silent renewal through MSAL."""

import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import msal
from azure.core.credentials import AccessToken, TokenCredential
from pydantic import BaseModel

from mailfiler import config
from mailfiler.auth.token_cache import load_cache, save_cache
from mailfiler.exceptions import AuthenticationError
from mailfiler.utils.logger import get_logger

logger = get_logger("mailfiler.auth")


class AuthSettings(BaseModel):
    """App registration and scopes used for every token request."""

    client_id: str
    tenant_id: str
    scopes: list[str]
    client_secret: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            client_id=config.AZURE_CLIENT_ID,
            tenant_id=config.AZURE_TENANT_ID,
            scopes=list(config.SCOPES),
            client_secret=config.AZURE_CLIENT_SECRET or None,
        )


class AuthProvider(Protocol):
    """Token source consumed by MailSender and ProviderCredential."""

    def acquire_token(
        self,
        client_id: str,
        tenant_id: str,
        scopes: list[str],
        integrated_auth: bool = False,
    ) -> AccessToken:
        ...

    def renew_token_silently(self, client_id: str, tenant_id: str, scopes: list[str]) -> AccessToken:
        """Raise AuthenticationError when no cached session can be renewed."""
        ...


def _to_access_token(result: dict[str, Any]) -> AccessToken:
    expires_on = int(time.time()) + int(result.get("expires_in", 0))
    return AccessToken(token=result["access_token"], expires_on=expires_on)


def _error_text(result: Optional[dict[str, Any]], fallback: str) -> str:
    if not result:
        return fallback
    return result.get("error_description") or result.get("error") or fallback


class MsalAuthProvider:
    """AuthProvider using MSAL with a persistent file-based token cache.

    Public client by default: interactive sign-in (``integrated_auth``, through
    the OS broker when ``use_broker``) or device code flow, then silent renewal
    from the cache. With a client secret it uses the client-credential flow,
    whose tokens MSAL also serves from the cache.
    """

    def __init__(
        self,
        client_secret: Optional[str] = None,
        cache_path: Path = config.TOKEN_CACHE_PATH,
        authority_host: str = config.AUTHORITY_HOST,
        use_broker: bool = config.USE_BROKER,
        on_device_code: Callable[[str], None] = print,
    ):
        self._client_secret = client_secret
        self._cache_path = cache_path
        self._authority_host = authority_host
        self._use_broker = use_broker
        self._on_device_code = on_device_code
        self._cache = load_cache(cache_path)
        self._apps: dict[tuple[str, str], msal.ClientApplication] = {}

    @classmethod
    def from_settings(cls, settings: AuthSettings, **kwargs: Any) -> "MsalAuthProvider":
        return cls(client_secret=settings.client_secret, **kwargs)

    def _app(self, client_id: str, tenant_id: str) -> msal.ClientApplication:
        key = (client_id, tenant_id)
        if key not in self._apps:
            authority = f"{self._authority_host}/{tenant_id}"
            if self._client_secret:
                self._apps[key] = msal.ConfidentialClientApplication(
                    client_id=client_id,
                    client_credential=self._client_secret,
                    authority=authority,
                    token_cache=self._cache,
                )
            else:
                kwargs: dict[str, Any] = {}
                if self._use_broker:
                    kwargs["enable_broker_on_windows"] = True
                self._apps[key] = msal.PublicClientApplication(
                    client_id=client_id,
                    authority=authority,
                    token_cache=self._cache,
                    **kwargs,
                )
        return self._apps[key]

    def _silent(self, app: msal.ClientApplication, scopes: list[str]) -> Optional[dict[str, Any]]:
        if self._client_secret:
            return app.acquire_token_for_client(scopes=scopes)
        accounts = app.get_accounts()
        if not accounts:
            return None
        return app.acquire_token_silent(scopes, account=accounts[0])

    def acquire_token(
        self,
        client_id: str,
        tenant_id: str,
        scopes: list[str],
        integrated_auth: bool = False,
    ) -> AccessToken:
        app = self._app(client_id, tenant_id)
        result = self._silent(app, scopes)
        if result and "access_token" in result:
            save_cache(self._cache, self._cache_path)
            logger.debug("auth.token_from_cache", client_id=client_id[:8])
            return _to_access_token(result)

        if self._client_secret:
            raise AuthenticationError(
                _error_text(result, "Client credential flow failed"),
                client_id=client_id,
                tenant_id=tenant_id,
            )

        if integrated_auth:
            logger.info("auth.interactive", client_id=client_id[:8], broker=self._use_broker)
            result = app.acquire_token_interactive(
                scopes,
                parent_window_handle=msal.PublicClientApplication.CONSOLE_WINDOW_HANDLE,
            )
        else:
            flow = app.initiate_device_flow(scopes=scopes)
            if "user_code" not in flow:
                raise AuthenticationError(
                    _error_text(flow, "Failed to create device flow"),
                    client_id=client_id,
                    tenant_id=tenant_id,
                )
            self._on_device_code(flow["message"])
            result = app.acquire_token_by_device_flow(flow)

        if not result or "access_token" not in result:
            raise AuthenticationError(
                _error_text(result, "Sign-in failed"),
                client_id=client_id,
                tenant_id=tenant_id,
            )
        save_cache(self._cache, self._cache_path)
        logger.info("auth.signed_in", client_id=client_id[:8])
        return _to_access_token(result)

    def renew_token_silently(self, client_id: str, tenant_id: str, scopes: list[str]) -> AccessToken:
        app = self._app(client_id, tenant_id)
        result = self._silent(app, scopes)
        if not result or "access_token" not in result:
            raise AuthenticationError(
                _error_text(result, "No cached session to renew; run `mailfiler login`"),
                client_id=client_id,
                tenant_id=tenant_id,
            )
        save_cache(self._cache, self._cache_path)
        logger.debug("auth.token_renewed", client_id=client_id[:8])
        return _to_access_token(result)


class ProviderCredential(TokenCredential):
    """azure-core TokenCredential that renews through an AuthProvider, for GraphServiceClient."""

    def __init__(self, auth_provider: AuthProvider, settings: AuthSettings):
        self._auth_provider = auth_provider
        self._settings = settings

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        return self._auth_provider.renew_token_silently(
            self._settings.client_id,
            self._settings.tenant_id,
            list(scopes) if scopes else self._settings.scopes,
        )


class LocalAuthProvider:
    """AuthProvider for the local JSON mock mailbox: hands out a placeholder token, no network."""

    TOKEN = "local-mock-token"

    def acquire_token(
        self,
        client_id: str,
        tenant_id: str,
        scopes: list[str],
        integrated_auth: bool = False,
    ) -> AccessToken:
        return self.renew_token_silently(client_id, tenant_id, scopes)

    def renew_token_silently(self, client_id: str, tenant_id: str, scopes: list[str]) -> AccessToken:
        return AccessToken(token=self.TOKEN, expires_on=int(time.time()) + 3600)
