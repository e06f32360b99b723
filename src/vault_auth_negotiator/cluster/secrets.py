"""Reads credential material from Kubernetes Secrets.

Every mechanism except Kubernetes-with-a-service-account needs some secret
material (a password, a secret id, a client key).  It is referenced from the
auth config by ``SecretKeyRef`` and fetched at login time; nothing is cached.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Protocol

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from vault_auth_negotiator.config import CLUSTER_SECRET_STORE_KIND, SecretKeyRef
from vault_auth_negotiator.errors import ClusterIdentityError

logger = logging.getLogger(__name__)


class SecretReader(Protocol):
    def read(self, ref: SecretKeyRef, store_kind: str, namespace: str) -> str: ...


def resolve_namespace(store_kind: str, namespace: str, override: str | None) -> str:
    """Return the namespace a reference should be resolved in.

    A ``ClusterSecretStore`` may point at any namespace; a namespaced store is
    pinned to its own.
    """
    if store_kind == CLUSTER_SECRET_STORE_KIND and override:
        return override
    return namespace


def load_core_v1_api() -> k8s_client.CoreV1Api:
    """Build a CoreV1 client from the in-cluster config, falling back to kubeconfig."""
    try:
        k8s_config.load_incluster_config()
    except k8s_config.ConfigException:
        k8s_config.load_kube_config()
    return k8s_client.CoreV1Api()


class KubernetesSecretReader:
    """``SecretReader`` backed by the Kubernetes API."""

    def __init__(self, core_v1: k8s_client.CoreV1Api | None = None) -> None:
        self._core_v1 = core_v1

    def read(self, ref: SecretKeyRef, store_kind: str, namespace: str) -> str:
        target_ns = resolve_namespace(store_kind, namespace, ref.namespace)
        try:
            secret = self._api().read_namespaced_secret(name=ref.name, namespace=target_ns)
        except ApiException as exc:
            raise ClusterIdentityError(
                f"cannot get Kubernetes secret {target_ns}/{ref.name}: {exc.reason}"
            ) from exc

        data = secret.data or {}
        if ref.key not in data:
            raise ClusterIdentityError(
                f"cannot find secret data for key {ref.key!r} in {target_ns}/{ref.name}"
            )
        try:
            return base64.b64decode(data[ref.key]).decode()
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ClusterIdentityError(
                f"cannot decode key {ref.key!r} of {target_ns}/{ref.name}: {exc}"
            ) from exc

    def _api(self) -> k8s_client.CoreV1Api:
        if self._core_v1 is None:
            self._core_v1 = load_core_v1_api()
        return self._core_v1
