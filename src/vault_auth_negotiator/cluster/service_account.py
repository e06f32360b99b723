"""Short-lived service-account tokens for Kubernetes and JWT auth.

A token request is built fresh for every login attempt and never cached: the
issued JWT is exchanged with Vault immediately and then discarded.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Protocol

from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException

from vault_auth_negotiator.cluster.secrets import load_core_v1_api, resolve_namespace
from vault_auth_negotiator.config import ServiceAccountRef
from vault_auth_negotiator.errors import ClusterIdentityError
from vault_auth_negotiator.observability import (
    CALL_CREATE_SA_TOKEN,
    PROVIDER_KUBERNETES,
    CallObserver,
    LoggingCallObserver,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ServiceAccountTokenRequest:
    service_account: str
    audiences: tuple[str, ...]
    expiration_seconds: int
    namespace: str


def build_token_request(
    service_account_ref: ServiceAccountRef,
    store_kind: str,
    namespace: str,
    expiration_seconds: int,
    additional_audiences: tuple[str, ...] = (),
) -> ServiceAccountTokenRequest:
    """Combine the ref's audiences with *additional_audiences* and pick the namespace.

    Order is preserved and duplicates are dropped.
    """
    audiences = tuple(dict.fromkeys(service_account_ref.audiences + tuple(additional_audiences)))
    return ServiceAccountTokenRequest(
        service_account=service_account_ref.name,
        audiences=audiences,
        expiration_seconds=expiration_seconds,
        namespace=resolve_namespace(store_kind, namespace, service_account_ref.namespace),
    )


class ServiceAccountTokenIssuer(Protocol):
    def create_token(self, request: ServiceAccountTokenRequest) -> str: ...


class KubernetesTokenIssuer:
    """Issues tokens through the ``TokenRequest`` subresource of a ServiceAccount."""

    def __init__(
        self,
        core_v1: k8s_client.CoreV1Api | None = None,
        observer: CallObserver | None = None,
    ) -> None:
        self._core_v1 = core_v1
        self._observer = observer or LoggingCallObserver()

    def create_token(self, request: ServiceAccountTokenRequest) -> str:
        body = k8s_client.AuthenticationV1TokenRequest(
            spec=k8s_client.V1TokenRequestSpec(
                audiences=list(request.audiences),
                expiration_seconds=request.expiration_seconds,
            ),
        )
        try:
            response = self._api().create_namespaced_service_account_token(
                name=request.service_account,
                namespace=request.namespace,
                body=body,
            )
        except ApiException as exc:
            self._observer.observe(PROVIDER_KUBERNETES, CALL_CREATE_SA_TOKEN, exc)
            raise ClusterIdentityError(
                f"cannot request Kubernetes service account token for service account "
                f"{request.service_account!r}: {exc.reason}"
            ) from exc
        self._observer.observe(PROVIDER_KUBERNETES, CALL_CREATE_SA_TOKEN, None)

        logger.debug(
            "Issued token for service account %s/%s, audiences=%s, expiration=%ss",
            request.namespace,
            request.service_account,
            list(request.audiences),
            request.expiration_seconds,
        )
        return response.status.token

    def _api(self) -> k8s_client.CoreV1Api:
        if self._core_v1 is None:
            self._core_v1 = load_core_v1_api()
        return self._core_v1
