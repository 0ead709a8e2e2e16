"""Tests for VaultClient - AppRole auth and scoped secret reads."""

from unittest.mock import MagicMock

import hvac
import pytest
from hvac.exceptions import Forbidden, InvalidPath

import clients.vault_client as vault_client
from clients.vault_client import VaultClient


@pytest.fixture
def vault_env(monkeypatch):
    monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com")
    monkeypatch.setenv("VAULT_ROLE_ID", "role")
    monkeypatch.setenv("VAULT_SECRET_ID", "secret")
    monkeypatch.delenv("VAULT_NAMESPACE", raising=False)


@pytest.fixture
def hvac_client(monkeypatch, vault_env):
    mock = MagicMock()
    mock.auth.approle.login.return_value = {"auth": {"client_token": "tok"}}
    mock.is_authenticated.return_value = True
    monkeypatch.setattr(hvac, "Client", MagicMock(return_value=mock))
    return mock


@pytest.fixture(autouse=True)
def reset_singleton(monkeypatch):
    monkeypatch.setattr(vault_client, "_vault_client_instance", None)
    monkeypatch.setattr(vault_client, "_secret_cache", {})


class TestVaultClientInit:

    def test_missing_vault_addr(self, monkeypatch):
        monkeypatch.delenv("VAULT_ADDR", raising=False)

        with pytest.raises(ValueError, match="VAULT_ADDR"):
            VaultClient()

    def test_missing_approle_credentials(self, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com")
        monkeypatch.delenv("VAULT_ROLE_ID", raising=False)

        with pytest.raises(ValueError, match="VAULT_ROLE_ID"):
            VaultClient()

    def test_login_failure(self, hvac_client):
        hvac_client.auth.approle.login.side_effect = Forbidden("bad role")

        with pytest.raises(PermissionError, match="AppRole"):
            VaultClient()

    def test_authenticates(self, hvac_client):
        client = VaultClient()

        assert hvac_client.token == "tok"
        assert client.vault_addr == "https://vault.example.com"


class TestGetSecret:

    def test_scoped_path(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"url": "postgresql://db"}}
        }

        assert VaultClient().get_secret("database", "url") == "postgresql://db"
        kwargs = hvac_client.secrets.kv.v2.read_secret_version.call_args.kwargs
        assert kwargs["path"] == "tickets/database"

    def test_missing_field(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {"data": {"data": {"url": "x"}}}

        with pytest.raises(KeyError, match="Available: url"):
            VaultClient().get_secret("database", "password")

    def test_missing_path(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath()

        with pytest.raises(PermissionError, match="tickets/nope"):
            VaultClient().get_secret("nope", "url")


class TestCachedHelpers:

    def test_secret_read_once(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"url": "redis://valkey"}}
        }

        assert vault_client.get_valkey_url() == "redis://valkey"
        assert vault_client.get_valkey_url() == "redis://valkey"
        assert hvac_client.secrets.kv.v2.read_secret_version.call_count == 1

    def test_email_config(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"gateway_url": "https://gw", "api_key": "k", "hmac_secret": "s"}}
        }

        assert vault_client.get_email_config() == {
            "gateway_url": "https://gw", "api_key": "k", "hmac_secret": "s"
        }
