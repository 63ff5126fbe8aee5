"""Tests for MsalAuthProvider against a fake MSAL application, and the token cache file."""

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import msal

from mailfiler.auth import AuthSettings, MsalAuthProvider, ProviderCredential
from mailfiler.auth.token_cache import load_cache, save_cache
from mailfiler.exceptions import AuthenticationError

SCOPES = ["https://graph.microsoft.com/Mail.Send"]
TOKEN_RESULT = {"access_token": "abc", "expires_in": 3600}


class TestMsalAuthProvider(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cache_path = Path(self.tmp.name) / "token_cache.json"
        patcher = mock.patch("mailfiler.auth.provider.msal.PublicClientApplication")
        self.app_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.app = self.app_cls.return_value
        self.prompts = []
        self.provider = MsalAuthProvider(cache_path=self.cache_path, on_device_code=self.prompts.append)

    def tearDown(self):
        self.tmp.cleanup()

    def test_renew_silently_uses_cached_account(self):
        self.app.get_accounts.return_value = [{"username": "a@b.com"}]
        self.app.acquire_token_silent.return_value = TOKEN_RESULT

        token = self.provider.renew_token_silently("client", "tenant", SCOPES)

        self.assertEqual(token.token, "abc")
        self.app.acquire_token_silent.assert_called_once_with(SCOPES, account={"username": "a@b.com"})
        _, kwargs = self.app_cls.call_args
        self.assertEqual(kwargs["authority"], "https://login.microsoftonline.com/tenant")
        self.assertEqual(kwargs["client_id"], "client")

    def test_renew_silently_without_session_fails(self):
        self.app.get_accounts.return_value = []
        with self.assertRaises(AuthenticationError) as ctx:
            self.provider.renew_token_silently("client", "tenant", SCOPES)
        self.assertIn("mailfiler login", str(ctx.exception))
        self.app.initiate_device_flow.assert_not_called()

    def test_renew_silently_surfaces_msal_error(self):
        self.app.get_accounts.return_value = [{"username": "a@b.com"}]
        self.app.acquire_token_silent.return_value = {
            "error": "invalid_grant",
            "error_description": "AADSTS70043: refresh token expired",
        }
        with self.assertRaises(AuthenticationError) as ctx:
            self.provider.renew_token_silently("client", "tenant", SCOPES)
        self.assertIn("AADSTS70043", str(ctx.exception))

    def test_acquire_prefers_cache(self):
        self.app.get_accounts.return_value = [{"username": "a@b.com"}]
        self.app.acquire_token_silent.return_value = TOKEN_RESULT
        self.provider.acquire_token("client", "tenant", SCOPES)
        self.app.initiate_device_flow.assert_not_called()
        self.app.acquire_token_interactive.assert_not_called()

    def test_acquire_device_code_flow(self):
        self.app.get_accounts.return_value = []
        self.app.initiate_device_flow.return_value = {"user_code": "XYZ", "message": "Go to the URL and enter XYZ"}
        self.app.acquire_token_by_device_flow.return_value = TOKEN_RESULT

        token = self.provider.acquire_token("client", "tenant", SCOPES)

        self.assertEqual(token.token, "abc")
        self.assertEqual(self.prompts, ["Go to the URL and enter XYZ"])

    def test_acquire_integrated(self):
        self.app.get_accounts.return_value = []
        self.app.acquire_token_interactive.return_value = TOKEN_RESULT
        self.provider.acquire_token("client", "tenant", SCOPES, integrated_auth=True)
        self.app.acquire_token_interactive.assert_called_once()
        self.app.initiate_device_flow.assert_not_called()

    def test_acquire_failure(self):
        self.app.get_accounts.return_value = []
        self.app.acquire_token_interactive.return_value = {"error": "access_denied"}
        with self.assertRaises(AuthenticationError) as ctx:
            self.provider.acquire_token("client", "tenant", SCOPES, integrated_auth=True)
        self.assertIn("access_denied", str(ctx.exception))

    def test_app_reused_per_client_and_tenant(self):
        self.app.get_accounts.return_value = [{"username": "a@b.com"}]
        self.app.acquire_token_silent.return_value = TOKEN_RESULT
        self.provider.renew_token_silently("client", "tenant", SCOPES)
        self.provider.renew_token_silently("client", "tenant", SCOPES)
        self.assertEqual(self.app_cls.call_count, 1)

    def test_credential_adapter(self):
        self.app.get_accounts.return_value = [{"username": "a@b.com"}]
        self.app.acquire_token_silent.return_value = TOKEN_RESULT
        settings = AuthSettings(client_id="client", tenant_id="tenant", scopes=SCOPES)
        credential = ProviderCredential(self.provider, settings)

        self.assertEqual(credential.get_token().token, "abc")
        credential.get_token("https://graph.microsoft.com/.default")
        self.assertEqual(
            self.app.acquire_token_silent.call_args[0][0],
            ["https://graph.microsoft.com/.default"],
        )


class TestConfidentialClient(unittest.TestCase):
    def test_client_credentials(self):
        with tempfile.TemporaryDirectory() as tmp, mock.patch(
            "mailfiler.auth.provider.msal.ConfidentialClientApplication"
        ) as app_cls:
            app_cls.return_value.acquire_token_for_client.return_value = TOKEN_RESULT
            provider = MsalAuthProvider(client_secret="secret", cache_path=Path(tmp) / "cache.json")

            token = provider.renew_token_silently("client", "tenant", ["https://graph.microsoft.com/.default"])

            self.assertEqual(token.token, "abc")
            self.assertEqual(app_cls.call_args.kwargs["client_credential"], "secret")

    def test_client_credentials_error(self):
        with tempfile.TemporaryDirectory() as tmp, mock.patch(
            "mailfiler.auth.provider.msal.ConfidentialClientApplication"
        ) as app_cls:
            app_cls.return_value.acquire_token_for_client.return_value = {"error": "invalid_client"}
            provider = MsalAuthProvider(client_secret="bad", cache_path=Path(tmp) / "cache.json")
            with self.assertRaises(AuthenticationError):
                provider.acquire_token("client", "tenant", ["https://graph.microsoft.com/.default"])


class TestTokenCache(unittest.TestCase):
    def test_corrupt_cache_starts_empty(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "token_cache.json"
            path.write_text("not json", encoding="utf-8")
            cache = load_cache(path)
            self.assertIsInstance(cache, msal.SerializableTokenCache)

    def test_save_only_when_changed(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "sub" / "token_cache.json"
            cache = msal.SerializableTokenCache()
            save_cache(cache, path)
            self.assertFalse(path.exists())

            cache.has_state_changed = True
            save_cache(cache, path)
            self.assertIsInstance(json.loads(path.read_text(encoding="utf-8")), dict)
            self.assertFalse(cache.has_state_changed)


if __name__ == "__main__":
    unittest.main()
