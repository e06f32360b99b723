"""Store and auth configuration loaded from a YAML settings file.

Pattern: One Store, One Mechanism
----------------------------------
The settings file mirrors the operator's SecretStore manifest: a ``vault``
block holding the server address, the operating namespace, and an ``auth``
block that populates *exactly one* mechanism sub-config.  Each mechanism is
its own frozen dataclass and ``AuthConfig`` holds them as optional fields, so
the populated field *is* the tag of the variant.

Exclusivity is validated here, at load time.  The negotiation core trusts the
shape it is handed and never re-validates; a hand-built ``AuthConfig`` with two
mechanisms simply resolves to whichever comes first in the chain order.
"""

from __future__ import annotations

import dataclasses
import pathlib
from typing import Any

import hvac
import yaml

from vault_auth_negotiator.errors import ConfigError

SECRET_STORE_KIND = "SecretStore"
CLUSTER_SECRET_STORE_KIND = "ClusterSecretStore"

DEFAULT_TOKEN_EXPIRATION_SECONDS = 600


@dataclasses.dataclass(frozen=True)
class SecretKeyRef:
    """A key inside a Kubernetes Secret.

    ``namespace`` is only honoured for a ``ClusterSecretStore``.
    """

    name: str
    key: str
    namespace: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecretKeyRef:
        return cls(name=data["name"], key=data["key"], namespace=data.get("namespace"))


@dataclasses.dataclass(frozen=True)
class ServiceAccountRef:
    name: str
    audiences: tuple[str, ...] = ()
    namespace: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceAccountRef:
        return cls(
            name=data["name"],
            audiences=tuple(data.get("audiences", [])),
            namespace=data.get("namespace"),
        )


@dataclasses.dataclass(frozen=True)
class TokenSecretRefAuth:
    secret_ref: SecretKeyRef


@dataclasses.dataclass(frozen=True)
class AppRoleAuth:
    secret_ref: SecretKeyRef
    path: str = "approle"
    role_id: str | None = None
    role_ref: SecretKeyRef | None = None


@dataclasses.dataclass(frozen=True)
class KubernetesAuth:
    role: str
    mount_path: str = "kubernetes"
    service_account_ref: ServiceAccountRef | None = None
    secret_ref: SecretKeyRef | None = None
    expiration_seconds: int = DEFAULT_TOKEN_EXPIRATION_SECONDS


@dataclasses.dataclass(frozen=True)
class LdapAuth:
    username: str
    secret_ref: SecretKeyRef
    path: str = "ldap"


@dataclasses.dataclass(frozen=True)
class UserPassAuth:
    username: str
    secret_ref: SecretKeyRef
    path: str = "userpass"


@dataclasses.dataclass(frozen=True)
class KubernetesServiceAccountToken:
    service_account_ref: ServiceAccountRef
    audiences: tuple[str, ...] = ("vault",)
    expiration_seconds: int = DEFAULT_TOKEN_EXPIRATION_SECONDS


@dataclasses.dataclass(frozen=True)
class JwtAuth:
    path: str = "jwt"
    role: str | None = None
    secret_ref: SecretKeyRef | None = None
    kubernetes_service_account_token: KubernetesServiceAccountToken | None = None


@dataclasses.dataclass(frozen=True)
class CertAuth:
    client_cert: SecretKeyRef
    secret_ref: SecretKeyRef
    path: str = "cert"
    name: str | None = None


@dataclasses.dataclass(frozen=True)
class IamSecretRef:
    access_key_id: SecretKeyRef
    secret_access_key: SecretKeyRef
    session_token: SecretKeyRef | None = None


@dataclasses.dataclass(frozen=True)
class IamAuth:
    path: str = "aws"
    region: str = "us-east-1"
    role: str | None = None
    vault_aws_iam_server_id: str | None = None
    secret_ref: IamSecretRef | None = None


@dataclasses.dataclass(frozen=True)
class AuthConfig:
    """Auth block of a store: at most one mechanism plus an auth namespace.

    Attributes:
        namespace: Vault namespace to log in under, when it differs from the
                   store's operating namespace.
    """

    namespace: str | None = None
    token_secret_ref: TokenSecretRefAuth | None = None
    app_role: AppRoleAuth | None = None
    kubernetes: KubernetesAuth | None = None
    ldap: LdapAuth | None = None
    user_pass: UserPassAuth | None = None
    jwt: JwtAuth | None = None
    cert: CertAuth | None = None
    iam: IamAuth | None = None

    def configured_mechanisms(self) -> list[str]:
        """Return the names of every populated mechanism field."""
        return [
            field.name
            for field in dataclasses.fields(self)
            if field.name != "namespace" and getattr(self, field.name) is not None
        ]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthConfig:
        return cls(
            namespace=data.get("namespace"),
            token_secret_ref=_optional(data, "tokenSecretRef", lambda d: TokenSecretRefAuth(
                secret_ref=SecretKeyRef.from_dict(d),
            )),
            app_role=_optional(data, "appRole", lambda d: AppRoleAuth(
                secret_ref=SecretKeyRef.from_dict(d["secretRef"]),
                path=d.get("path", "approle"),
                role_id=d.get("roleId"),
                role_ref=_optional(d, "roleRef", SecretKeyRef.from_dict),
            )),
            kubernetes=_optional(data, "kubernetes", lambda d: KubernetesAuth(
                role=d["role"],
                mount_path=d.get("mountPath", "kubernetes"),
                service_account_ref=_optional(d, "serviceAccountRef", ServiceAccountRef.from_dict),
                secret_ref=_optional(d, "secretRef", SecretKeyRef.from_dict),
                expiration_seconds=d.get("expirationSeconds", DEFAULT_TOKEN_EXPIRATION_SECONDS),
            )),
            ldap=_optional(data, "ldap", lambda d: LdapAuth(
                username=d["username"],
                secret_ref=SecretKeyRef.from_dict(d["secretRef"]),
                path=d.get("path", "ldap"),
            )),
            user_pass=_optional(data, "userPass", lambda d: UserPassAuth(
                username=d["username"],
                secret_ref=SecretKeyRef.from_dict(d["secretRef"]),
                path=d.get("path", "userpass"),
            )),
            jwt=_optional(data, "jwt", lambda d: JwtAuth(
                path=d.get("path", "jwt"),
                role=d.get("role"),
                secret_ref=_optional(d, "secretRef", SecretKeyRef.from_dict),
                kubernetes_service_account_token=_optional(
                    d, "kubernetesServiceAccountToken", _parse_sa_token,
                ),
            )),
            cert=_optional(data, "cert", lambda d: CertAuth(
                client_cert=SecretKeyRef.from_dict(d["clientCert"]),
                secret_ref=SecretKeyRef.from_dict(d["secretRef"]),
                path=d.get("path", "cert"),
                name=d.get("name"),
            )),
            iam=_optional(data, "iam", lambda d: IamAuth(
                path=d.get("path", "aws"),
                region=d.get("region", "us-east-1"),
                role=d.get("role"),
                vault_aws_iam_server_id=d.get("vaultAwsIamServerID"),
                secret_ref=_optional(d, "secretRef", lambda s: IamSecretRef(
                    access_key_id=SecretKeyRef.from_dict(s["accessKeyIDSecretRef"]),
                    secret_access_key=SecretKeyRef.from_dict(s["secretAccessKeySecretRef"]),
                    session_token=_optional(s, "sessionTokenSecretRef", SecretKeyRef.from_dict),
                )),
            )),
        )


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Everything needed to build a client and negotiate its token.

    Attributes:
        server:             Vault address.
        namespace:          Vault operating namespace (Enterprise), if any.
        kind:               ``SecretStore`` or ``ClusterSecretStore``.
        resource_namespace: Kubernetes namespace the store lives in.
        auth:               Auth block; ``None`` means authentication is optional.
        ca_bundle:          Path to a CA bundle for TLS verification.
        timeout:            Per-request timeout in seconds for hvac calls.
    """

    server: str
    namespace: str | None = None
    kind: str = SECRET_STORE_KIND
    resource_namespace: str = "default"
    auth: AuthConfig | None = None
    ca_bundle: str | None = None
    timeout: int = 30

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoreConfig:
        if "server" not in data:
            raise ConfigError("vault block must define 'server'")
        kind = data.get("kind", SECRET_STORE_KIND)
        if kind not in (SECRET_STORE_KIND, CLUSTER_SECRET_STORE_KIND):
            raise ConfigError(f"Unknown store kind: {kind}")

        auth: AuthConfig | None = None
        if data.get("auth") is not None:
            try:
                auth = AuthConfig.from_dict(data["auth"])
            except (KeyError, TypeError) as exc:
                raise ConfigError(f"Malformed auth block: missing or invalid {exc}") from exc
            mechanisms = auth.configured_mechanisms()
            if len(mechanisms) > 1:
                raise ConfigError(
                    f"Only one auth mechanism may be configured, found: {', '.join(mechanisms)}"
                )

        return cls(
            server=data["server"],
            namespace=data.get("namespace"),
            kind=kind,
            resource_namespace=data.get("resourceNamespace", "default"),
            auth=auth,
            ca_bundle=data.get("caBundle"),
            timeout=data.get("timeout", 30),
        )


def load_store_config(path: str | pathlib.Path) -> StoreConfig:
    """Read the ``vault`` block of the settings file at *path*."""
    path = pathlib.Path(path)
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")
    with open(path) as fh:
        data = yaml.safe_load(fh)
    if not isinstance(data, dict) or not isinstance(data.get("vault"), dict):
        raise ConfigError("Settings file must contain a top-level 'vault' mapping")
    return StoreConfig.from_dict(data["vault"])


def build_client(store: StoreConfig, token: str | None = None) -> hvac.Client:
    """Create an ``hvac.Client`` for *store*, optionally seeded with *token*."""
    return hvac.Client(
        url=store.server,
        token=token or "",
        namespace=store.namespace,
        verify=store.ca_bundle or True,
        timeout=store.timeout,
    )


# -- private helpers ---------------------------------------------------------

def _optional(data: dict[str, Any], key: str, parse: Any) -> Any:
    value = data.get(key)
    if value is None:
        return None
    return parse(value)


def _parse_sa_token(data: dict[str, Any]) -> KubernetesServiceAccountToken:
    return KubernetesServiceAccountToken(
        service_account_ref=ServiceAccountRef.from_dict(data["serviceAccountRef"]),
        audiences=tuple(data.get("audiences", ["vault"])),
        expiration_seconds=data.get("expirationSeconds", DEFAULT_TOKEN_EXPIRATION_SECONDS),
    )
