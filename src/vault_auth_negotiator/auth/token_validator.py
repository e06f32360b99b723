"""Decides whether the session's current token can be reused.

Pattern: Early-Expiry Buffer
-----------------------------
A token that is technically valid for another thirty seconds is a trap: it can
expire between this check and the secret read that follows.  Any *expirable*
token with less than a minute left is therefore reported as invalid.

Two asymmetries are kept on purpose:

  - Batch tokens are never reused, regardless of TTL.
  - A token with a low TTL but no ``expire_time`` (root or other non-expiring
    tokens) is still valid.  Only the combination "low TTL *and* an expiry"
    trips the buffer.

A malformed lookup response is an error, never a silent "valid".
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

import hvac
import requests

from vault_auth_negotiator.auth.session import VaultSession
from vault_auth_negotiator.errors import IntrospectionError
from vault_auth_negotiator.observability import (
    CALL_LOOKUP_SELF,
    PROVIDER_VAULT,
    CallObserver,
    LoggingCallObserver,
)

logger = logging.getLogger(__name__)

BATCH_TOKEN_TYPE = "batch"
EXPIRY_BUFFER_SECONDS = 60


@dataclasses.dataclass(frozen=True)
class TokenIntrospection:
    """Result of a single ``lookup-self`` call.

    Attributes:
        token_type:  ``service`` or ``batch``.
        ttl_seconds: Remaining TTL reported by Vault.
        expire_time: ISO-8601 expiry, or ``None`` for non-expiring tokens.
    """

    token_type: str
    ttl_seconds: int
    expire_time: str | None

    @property
    def is_batch(self) -> bool:
        return self.token_type == BATCH_TOKEN_TYPE

    @property
    def expires_soon(self) -> bool:
        return self.ttl_seconds < EXPIRY_BUFFER_SECONDS and self.expire_time is not None


class TokenValidator:
    """Runs ``lookup-self`` and applies the reuse policy."""

    def __init__(self, observer: CallObserver | None = None) -> None:
        self._observer = observer or LoggingCallObserver()

    def is_valid(self, session: VaultSession) -> bool:
        """Return whether *session*'s token may be reused.

        Raises ``IntrospectionError`` if the lookup fails or its response is
        malformed.
        """
        data = self._lookup(session)

        token_type = data.get("type")
        if token_type is None:
            raise IntrospectionError("could not assert token type")
        if token_type == BATCH_TOKEN_TYPE:
            return False

        introspection = self._parse(data, token_type)
        if introspection.expires_soon:
            logger.debug(
                "Token expires in %ss, treating it as expired", introspection.ttl_seconds
            )
            return False
        return True

    def introspect(self, session: VaultSession) -> TokenIntrospection:
        """Return the parsed lookup response without applying the reuse policy."""
        data = self._lookup(session)
        token_type = data.get("type")
        if token_type is None:
            raise IntrospectionError("could not assert token type")
        return self._parse(data, token_type)

    # -- private helpers -----------------------------------------------------

    def _lookup(self, session: VaultSession) -> dict[str, Any]:
        # https://developer.hashicorp.com/vault/api-docs/auth/token#lookup-a-token-self
        try:
            response = session.client.auth.token.lookup_self()
        except (hvac.exceptions.VaultError, requests.exceptions.RequestException) as exc:
            self._observer.observe(PROVIDER_VAULT, CALL_LOOKUP_SELF, exc)
            raise IntrospectionError(f"token lookup failed: {exc}") from exc
        except BaseException as exc:
            self._observer.observe(PROVIDER_VAULT, CALL_LOOKUP_SELF, exc)
            raise
        self._observer.observe(PROVIDER_VAULT, CALL_LOOKUP_SELF, None)

        if not response:
            raise IntrospectionError("no response nor error for token lookup")
        data = response.get("data")
        if not isinstance(data, dict):
            raise IntrospectionError("token lookup response has no data")
        return data

    @staticmethod
    def _parse(data: dict[str, Any], token_type: str) -> TokenIntrospection:
        if "ttl" not in data:
            raise IntrospectionError("no TTL found in response")
        try:
            ttl = int(data["ttl"])
        except (TypeError, ValueError) as exc:
            raise IntrospectionError(f"invalid token TTL: {data['ttl']!r}") from exc
        if "expire_time" not in data:
            raise IntrospectionError("no expiration time found in response")

        return TokenIntrospection(
            token_type=str(token_type),
            ttl_seconds=ttl,
            expire_time=data["expire_time"],
        )
