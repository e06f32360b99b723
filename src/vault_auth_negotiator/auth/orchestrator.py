"""Top-level token negotiation for one Vault session.

Pattern: Reuse, Else First Configured Mechanism
------------------------------------------------
``ensure_authenticated`` is a pure decision function over one session:

  1. No auth block: nothing to do, authentication is optional.
  2. Switch into the auth namespace (restored on every exit path).
  3. A held token that passes ``TokenValidator`` is reused and no mechanism
     is touched.
  4. Otherwise the chain is walked in order and the first configured
     mechanism decides the outcome.
  5. An auth block with nothing populated is a configuration error.

There are no retries here.  A failed login surfaces immediately and the
caller's control loop owns backoff.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from vault_auth_negotiator.auth.methods import DEFAULT_CHAIN, AuthContext, AuthMethod
from vault_auth_negotiator.auth.namespace import auth_namespace_scope
from vault_auth_negotiator.auth.session import VaultSession
from vault_auth_negotiator.auth.token_validator import TokenValidator
from vault_auth_negotiator.config import StoreConfig
from vault_auth_negotiator.errors import IntrospectionError, NoAuthMethodConfigured

logger = logging.getLogger(__name__)


class AuthOrchestrator:
    """Keeps a session's token valid using the store's configured mechanism."""

    def __init__(
        self,
        context: AuthContext,
        validator: TokenValidator | None = None,
        chain: Sequence[AuthMethod] = DEFAULT_CHAIN,
    ) -> None:
        self._context = context
        self._validator = validator or TokenValidator(observer=context.observer)
        self._chain = tuple(chain)

    def ensure_authenticated(self, session: VaultSession, store: StoreConfig) -> None:
        """Make sure *session* holds a usable token.

        Raises ``NoAuthMethodConfigured`` if the auth block populates no
        mechanism, and ``MechanismAcquisitionError`` if the selected mechanism
        fails.
        """
        auth = store.auth
        if auth is None:
            return

        # The store owns the operating namespace; the auth scope restores to it.
        session.operating_namespace = store.namespace
        if store.namespace:
            session.namespace = store.namespace

        with auth_namespace_scope(session, auth.namespace):
            if self._reusable(session):
                logger.debug("Re-using existing token")
                return

            for method in self._chain:
                if method.try_acquire(session, auth, self._context):
                    return

        raise NoAuthMethodConfigured()

    def _reusable(self, session: VaultSession) -> bool:
        if not session.has_token:
            return False
        try:
            return self._validator.is_valid(session)
        except IntrospectionError as exc:
            # An expired or revoked token fails lookup outright; log in again.
            logger.warning("Existing token could not be validated, re-authenticating: %s", exc)
            return False
