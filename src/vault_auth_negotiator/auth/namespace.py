"""Temporary switch into the auth namespace for the duration of a login.

The store may read secrets from one Vault namespace while its auth mount lives
in another (typically a parent).  The client is switched for the login and
switched back afterwards, on every exit path.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterator

from vault_auth_negotiator.auth.session import VaultSession

logger = logging.getLogger(__name__)


def _noop() -> None:
    pass


def enter_auth_namespace(session: VaultSession, auth_namespace: str | None) -> Callable[[], None]:
    """Switch *session* to *auth_namespace* if needed and return the restore function."""
    operating = session.operating_namespace or ""
    if auth_namespace is None or auth_namespace == operating:
        return _noop

    logger.debug("Using namespace=%s for the vault login", auth_namespace)
    session.namespace = auth_namespace

    def restore() -> None:
        logger.debug("Restoring client namespace to namespace=%s", operating)
        session.namespace = operating

    return restore


@contextlib.contextmanager
def auth_namespace_scope(session: VaultSession, auth_namespace: str | None) -> Iterator[None]:
    restore = enter_auth_namespace(session, auth_namespace)
    try:
        yield
    finally:
        restore()
