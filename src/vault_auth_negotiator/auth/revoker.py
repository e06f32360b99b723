"""Revokes a session's token on teardown."""

from __future__ import annotations

import logging

import hvac
import requests

from vault_auth_negotiator.auth.session import VaultSession
from vault_auth_negotiator.auth.token_validator import TokenValidator
from vault_auth_negotiator.errors import IntrospectionError, RevocationError
from vault_auth_negotiator.observability import (
    CALL_REVOKE_SELF,
    PROVIDER_VAULT,
    CallObserver,
    LoggingCallObserver,
)

logger = logging.getLogger(__name__)


class SessionRevoker:
    """Revokes the session token if it is still valid, then forgets it."""

    def __init__(
        self,
        validator: TokenValidator | None = None,
        observer: CallObserver | None = None,
    ) -> None:
        self._observer = observer or LoggingCallObserver()
        self._validator = validator or TokenValidator(observer=self._observer)

    def revoke_if_valid(self, session: VaultSession) -> None:
        """Revoke *session*'s token.  Absent or already-invalid tokens are a no-op.

        Raises ``RevocationError`` if the validity check or the revoke call
        fails.
        """
        if not session.has_token:
            return

        try:
            valid = self._validator.is_valid(session)
        except IntrospectionError as exc:
            raise RevocationError(f"error while revoking token: {exc}") from exc
        if not valid:
            return

        try:
            session.client.auth.token.revoke_self()
        except (hvac.exceptions.VaultError, requests.exceptions.RequestException) as exc:
            self._observer.observe(PROVIDER_VAULT, CALL_REVOKE_SELF, exc)
            raise RevocationError(f"error while revoking token: {exc}") from exc
        except BaseException as exc:
            self._observer.observe(PROVIDER_VAULT, CALL_REVOKE_SELF, exc)
            raise
        self._observer.observe(PROVIDER_VAULT, CALL_REVOKE_SELF, None)

        session.clear_token()
        logger.info("Revoked Vault token for %s", session.client.url)
