"""Tests for loading the settings file into StoreConfig."""

from __future__ import annotations

import pathlib
import textwrap

import pytest

from vault_auth_negotiator.config import (
    CLUSTER_SECRET_STORE_KIND,
    AuthConfig,
    SecretKeyRef,
    StoreConfig,
    load_store_config,
)
from vault_auth_negotiator.errors import ConfigError


def _write(tmp_path: pathlib.Path, body: str) -> pathlib.Path:
    path = tmp_path / "settings.yaml"
    path.write_text(textwrap.dedent(body))
    return path


class TestLoadStoreConfig:
    def test_shipped_settings_file_loads(self) -> None:
        real_path = pathlib.Path(__file__).resolve().parents[1] / "config" / "settings.yaml"
        store = load_store_config(real_path)
        assert store.auth is not None
        assert store.auth.configured_mechanisms() == ["kubernetes"]
        assert store.auth.kubernetes.service_account_ref.audiences == ("vault",)

    def test_app_role_store(self, tmp_path: pathlib.Path) -> None:
        path = _write(tmp_path, """
            vault:
              server: https://vault.example.com:8200
              namespace: team-a
              kind: ClusterSecretStore
              resourceNamespace: platform
              auth:
                namespace: admin
                appRole:
                  roleId: role-123
                  secretRef: {name: vault-approle, key: secret-id, namespace: ops}
        """)
        store = load_store_config(path)
        assert store.server == "https://vault.example.com:8200"
        assert store.namespace == "team-a"
        assert store.kind == CLUSTER_SECRET_STORE_KIND
        assert store.resource_namespace == "platform"
        assert store.auth.namespace == "admin"
        assert store.auth.app_role.path == "approle"
        assert store.auth.app_role.secret_ref == SecretKeyRef("vault-approle", "secret-id", "ops")

    def test_jwt_service_account_defaults(self, tmp_path: pathlib.Path) -> None:
        path = _write(tmp_path, """
            vault:
              server: http://127.0.0.1:8200
              auth:
                jwt:
                  role: ci
                  kubernetesServiceAccountToken:
                    serviceAccountRef: {name: ci-runner}
        """)
        sa_token = load_store_config(path).auth.jwt.kubernetes_service_account_token
        assert sa_token.audiences == ("vault",)
        assert sa_token.expiration_seconds == 600

    def test_missing_auth_block_means_optional_auth(self, tmp_path: pathlib.Path) -> None:
        path = _write(tmp_path, """
            vault:
              server: http://127.0.0.1:8200
        """)
        assert load_store_config(path).auth is None

    def test_two_mechanisms_rejected(self, tmp_path: pathlib.Path) -> None:
        path = _write(tmp_path, """
            vault:
              server: http://127.0.0.1:8200
              auth:
                ldap: {username: alice, secretRef: {name: s, key: k}}
                userPass: {username: alice, secretRef: {name: s, key: k}}
        """)
        with pytest.raises(ConfigError, match="ldap, user_pass"):
            load_store_config(path)

    def test_malformed_mechanism_rejected(self, tmp_path: pathlib.Path) -> None:
        path = _write(tmp_path, """
            vault:
              server: http://127.0.0.1:8200
              auth:
                ldap: {username: alice}
        """)
        with pytest.raises(ConfigError, match="secretRef"):
            load_store_config(path)

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_store_config(tmp_path / "absent.yaml")

    def test_missing_vault_block(self, tmp_path: pathlib.Path) -> None:
        path = _write(tmp_path, "other: {}\n")
        with pytest.raises(ConfigError, match="'vault'"):
            load_store_config(path)

    def test_unknown_store_kind(self) -> None:
        with pytest.raises(ConfigError, match="Unknown store kind"):
            StoreConfig.from_dict({"server": "http://x", "kind": "Vault"})


class TestAuthConfig:
    def test_no_mechanisms(self) -> None:
        assert AuthConfig(namespace="admin").configured_mechanisms() == []

    def test_frozen(self) -> None:
        with pytest.raises(AttributeError):
            AuthConfig().namespace = "other"  # type: ignore[misc]
