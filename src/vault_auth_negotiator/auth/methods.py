"""Login strategies, one per auth mechanism, in fixed priority order.

Pattern: Ordered Strategy Chain
--------------------------------
Each ``AuthMethod`` owns exactly one field of ``AuthConfig`` and exposes one
capability, ``try_acquire``:

  - ``False``: the field is empty; the orchestrator moves on.
  - ``True``: the field was populated and a login succeeded.  The session's
    credential now holds the new token.
  - raises ``MechanismAcquisitionError``: the field was populated and the
    login failed.  The orchestrator stops here and surfaces it.

``DEFAULT_CHAIN`` fixes the order.  A config that populates two mechanisms
(rejected by the loader, but constructible by hand) always resolves to the
earlier one, so the order is part of the contract and must not be shuffled.
"""

from __future__ import annotations

import abc
import dataclasses
import logging
import pathlib
import tempfile
from collections.abc import Callable
from typing import Any

import boto3
import hvac
import requests

from vault_auth_negotiator.auth.session import VaultSession
from vault_auth_negotiator.cluster.secrets import SecretReader
from vault_auth_negotiator.cluster.service_account import (
    ServiceAccountTokenIssuer,
    build_token_request,
)
from vault_auth_negotiator.config import (
    SECRET_STORE_KIND,
    AppRoleAuth,
    AuthConfig,
    CertAuth,
    IamAuth,
    JwtAuth,
    KubernetesAuth,
    LdapAuth,
    SecretKeyRef,
    TokenSecretRefAuth,
    UserPassAuth,
)
from vault_auth_negotiator.errors import ClusterIdentityError, MechanismAcquisitionError
from vault_auth_negotiator.observability import PROVIDER_VAULT, CallObserver, LoggingCallObserver

logger = logging.getLogger(__name__)

DEFAULT_SA_TOKEN_PATH = pathlib.Path("/var/run/secrets/kubernetes.io/serviceaccount/token")

_ACQUISITION_ERRORS = (
    hvac.exceptions.VaultError,
    requests.exceptions.RequestException,
    ClusterIdentityError,
    OSError,
)


@dataclasses.dataclass
class AuthContext:
    """Collaborators a strategy may need during one negotiation.

    Attributes:
        secrets:            Reads credential material referenced by the config.
        token_issuer:       Requests short-lived service-account tokens.
        observer:           Receives one event per login call.
        store_kind:         ``SecretStore`` or ``ClusterSecretStore``; decides
                            whether reference-level namespaces are honoured.
        resource_namespace: Kubernetes namespace of the store.
        sa_token_path:      Mounted service-account token used by Kubernetes
                            auth when no other JWT source is configured.
    """

    secrets: SecretReader
    token_issuer: ServiceAccountTokenIssuer
    observer: CallObserver = dataclasses.field(default_factory=LoggingCallObserver)
    store_kind: str = SECRET_STORE_KIND
    resource_namespace: str = "default"
    sa_token_path: pathlib.Path = DEFAULT_SA_TOKEN_PATH

    def read_secret(self, ref: SecretKeyRef) -> str:
        return self.secrets.read(ref, self.store_kind, self.resource_namespace)


class AuthMethod(abc.ABC):
    """Base strategy.  Subclasses set ``name``/``field`` and implement ``_login``."""

    name: str = ""
    field: str = ""
    # Operation name reported to the observer for the Vault login call; empty
    # for mechanisms that make none.
    operation: str = ""

    def config_for(self, auth: AuthConfig) -> Any:
        return getattr(auth, self.field)

    def try_acquire(self, session: VaultSession, auth: AuthConfig, context: AuthContext) -> bool:
        config = self.config_for(auth)
        if config is None:
            return False

        identity = self.identity(config)
        previous_token = session.token
        try:
            self._login(session, config, context)
        except _ACQUISITION_ERRORS as exc:
            raise MechanismAcquisitionError(self.name, identity, exc) from exc

        if not session.has_token:
            raise MechanismAcquisitionError(self.name, identity, "login returned no client token")
        if self.operation and session.token == previous_token:
            raise MechanismAcquisitionError(self.name, identity, "login did not issue a new client token")
        logger.info("Retrieved new token using %s auth (%s)", self.name, identity)
        return True

    def identity(self, config: Any) -> str:
        return f"path={config.path}"

    @abc.abstractmethod
    def _login(self, session: VaultSession, config: Any, context: AuthContext) -> None:
        """Obtain a token and store it on *session*."""

    def _vault_login(self, context: AuthContext, login: Callable[..., Any], **kwargs: Any) -> Any:
        """Run one hvac login call and report its outcome to the observer."""
        try:
            response = login(**kwargs)
        except BaseException as exc:
            context.observer.observe(PROVIDER_VAULT, self.operation, exc)
            raise
        context.observer.observe(PROVIDER_VAULT, self.operation, None)
        return response


class TokenSecretRefMethod(AuthMethod):
    name = "token"
    field = "token_secret_ref"

    def identity(self, config: TokenSecretRefAuth) -> str:
        return f"secret={config.secret_ref.name}/{config.secret_ref.key}"

    def _login(self, session: VaultSession, config: TokenSecretRefAuth, context: AuthContext) -> None:
        token = context.read_secret(config.secret_ref).strip()
        if not token:
            raise ClusterIdentityError(
                f"secret {config.secret_ref.name} holds an empty token under {config.secret_ref.key!r}"
            )
        session.set_token(token)


class AppRoleMethod(AuthMethod):
    name = "AppRole"
    field = "app_role"
    operation = "LoginAppRole"

    def identity(self, config: AppRoleAuth) -> str:
        if config.role_id:
            return f"path={config.path} roleId={config.role_id}"
        role_ref = config.role_ref.name if config.role_ref else "<unset>"
        return f"path={config.path} roleRef={role_ref}"

    def _login(self, session: VaultSession, config: AppRoleAuth, context: AuthContext) -> None:
        if config.role_id:
            role_id = config.role_id
        elif config.role_ref is not None:
            role_id = context.read_secret(config.role_ref).strip()
        else:
            raise ClusterIdentityError("either roleId or roleRef must be set")
        secret_id = context.read_secret(config.secret_ref).strip()
        self._vault_login(
            context,
            session.client.auth.approle.login,
            role_id=role_id,
            secret_id=secret_id,
            mount_point=config.path,
        )


class KubernetesMethod(AuthMethod):
    name = "Kubernetes"
    field = "kubernetes"
    operation = "LoginKubernetes"

    def identity(self, config: KubernetesAuth) -> str:
        if config.service_account_ref is not None:
            return f"role={config.role} serviceAccount={config.service_account_ref.name}"
        return f"role={config.role}"

    def _login(self, session: VaultSession, config: KubernetesAuth, context: AuthContext) -> None:
        jwt = self._jwt(config, context)
        self._vault_login(
            context,
            session.client.auth.kubernetes.login,
            role=config.role,
            jwt=jwt,
            mount_point=config.mount_path,
        )

    @staticmethod
    def _jwt(config: KubernetesAuth, context: AuthContext) -> str:
        if config.service_account_ref is not None:
            request = build_token_request(
                config.service_account_ref,
                store_kind=context.store_kind,
                namespace=context.resource_namespace,
                expiration_seconds=config.expiration_seconds,
            )
            return context.token_issuer.create_token(request)
        if config.secret_ref is not None:
            return context.read_secret(config.secret_ref).strip()
        return context.sa_token_path.read_text().strip()


class LdapMethod(AuthMethod):
    name = "LDAP"
    field = "ldap"
    operation = "LoginLDAP"

    def identity(self, config: LdapAuth) -> str:
        return f"path={config.path} username={config.username}"

    def _login(self, session: VaultSession, config: LdapAuth, context: AuthContext) -> None:
        password = context.read_secret(config.secret_ref)
        self._vault_login(
            context,
            session.client.auth.ldap.login,
            username=config.username,
            password=password,
            mount_point=config.path,
        )


class UserPassMethod(AuthMethod):
    name = "userPass"
    field = "user_pass"
    operation = "LoginUserPass"

    def identity(self, config: UserPassAuth) -> str:
        return f"path={config.path} username={config.username}"

    def _login(self, session: VaultSession, config: UserPassAuth, context: AuthContext) -> None:
        password = context.read_secret(config.secret_ref)
        self._vault_login(
            context,
            session.client.auth.userpass.login,
            username=config.username,
            password=password,
            mount_point=config.path,
        )


class JwtMethod(AuthMethod):
    name = "JWT"
    field = "jwt"
    operation = "LoginJWT"

    def identity(self, config: JwtAuth) -> str:
        return f"path={config.path} role={config.role or '<default>'}"

    def _login(self, session: VaultSession, config: JwtAuth, context: AuthContext) -> None:
        jwt = self._jwt(config, context)
        self._vault_login(
            context,
            session.client.auth.jwt.jwt_login,
            role=config.role or "",
            jwt=jwt,
            path=config.path,
        )

    @staticmethod
    def _jwt(config: JwtAuth, context: AuthContext) -> str:
        if config.secret_ref is not None:
            return context.read_secret(config.secret_ref).strip()
        sa_token = config.kubernetes_service_account_token
        if sa_token is None:
            raise ClusterIdentityError(
                "neither secretRef nor kubernetesServiceAccountToken is set"
            )
        request = build_token_request(
            sa_token.service_account_ref,
            store_kind=context.store_kind,
            namespace=context.resource_namespace,
            expiration_seconds=sa_token.expiration_seconds,
            additional_audiences=sa_token.audiences,
        )
        return context.token_issuer.create_token(request)


class CertMethod(AuthMethod):
    name = "certificate"
    field = "cert"
    operation = "LoginCert"

    def identity(self, config: CertAuth) -> str:
        return f"path={config.path} clientCert={config.client_cert.name}"

    def _login(self, session: VaultSession, config: CertAuth, context: AuthContext) -> None:
        cert_pem = context.read_secret(config.client_cert)
        key_pem = context.read_secret(config.secret_ref)
        # hvac presents the client certificate from files; they live only for
        # the duration of the login.
        with tempfile.TemporaryDirectory(prefix="vault-cert-") as tmp:
            cert_path = pathlib.Path(tmp, "tls.crt")
            key_path = pathlib.Path(tmp, "tls.key")
            cert_path.write_text(cert_pem)
            key_path.touch(mode=0o600)
            key_path.write_text(key_pem)
            self._vault_login(
                context,
                session.client.auth.cert.login,
                name=config.name or "",
                cert_pem=str(cert_path),
                key_pem=str(key_path),
                mount_point=config.path,
            )


class IamMethod(AuthMethod):
    name = "IAM"
    field = "iam"
    operation = "LoginIAM"

    def identity(self, config: IamAuth) -> str:
        return f"path={config.path} role={config.role or '<default>'} region={config.region}"

    def _login(self, session: VaultSession, config: IamAuth, context: AuthContext) -> None:
        if config.secret_ref is not None:
            access_key = context.read_secret(config.secret_ref.access_key_id).strip()
            secret_key = context.read_secret(config.secret_ref.secret_access_key).strip()
            session_token = None
            if config.secret_ref.session_token is not None:
                session_token = context.read_secret(config.secret_ref.session_token).strip()
        else:
            # boto3's default chain: environment, shared config, web identity, instance role.
            credentials = boto3.Session(region_name=config.region).get_credentials()
            if credentials is None:
                raise MechanismAcquisitionError(
                    self.name, self.identity(config), "no AWS credentials found"
                )
            frozen = credentials.get_frozen_credentials()
            access_key, secret_key, session_token = frozen.access_key, frozen.secret_key, frozen.token
        if not access_key or not secret_key:
            raise MechanismAcquisitionError(
                self.name, self.identity(config), "no AWS credentials found"
            )

        self._vault_login(
            context,
            session.client.auth.aws.iam_login,
            access_key=access_key,
            secret_key=secret_key,
            session_token=session_token,
            header_value=config.vault_aws_iam_server_id,
            mount_point=config.path,
            role=config.role,
            region=config.region,
        )


DEFAULT_CHAIN: tuple[AuthMethod, ...] = (
    TokenSecretRefMethod(),
    AppRoleMethod(),
    KubernetesMethod(),
    LdapMethod(),
    UserPassMethod(),
    JwtMethod(),
    CertMethod(),
    IamMethod(),
)
