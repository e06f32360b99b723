"""Client session that owns the Vault credential and active namespace.

Pattern: Single-Owner Credential
---------------------------------
A ``VaultSession`` wraps one ``hvac.Client`` and is the only place the bearer
token lives.  The orchestrator's login strategies set it (hvac logins run with
``use_token=True``), the revoker clears it, and nothing else copies it out.

Unlike an immutable identity snapshot, this session is deliberately mutable:
the token is refreshed in place so every component holding the session sees
the new credential.  Callers must serialise ``ensure_authenticated`` per
session; no locking happens here.
"""

from __future__ import annotations

import dataclasses

import hvac


@dataclasses.dataclass
class VaultSession:
    """One client handle plus the namespace it normally operates in.

    Attributes:
        client:              The hvac client whose token and namespace header
                             this session manages.
        operating_namespace: Vault namespace used for secret operations.
                             ``None`` is treated as the root namespace.
    """

    client: hvac.Client
    operating_namespace: str | None = None

    @property
    def token(self) -> str | None:
        return self.client.token or None

    def set_token(self, token: str) -> None:
        self.client.token = token

    def clear_token(self) -> None:
        self.client.token = None

    @property
    def has_token(self) -> bool:
        return bool(self.client.token)

    @property
    def namespace(self) -> str:
        """Namespace header currently sent with every request ("" for none)."""
        return self.client.adapter.namespace or ""

    @namespace.setter
    def namespace(self, value: str | None) -> None:
        self.client.adapter.namespace = value or None

    def __str__(self) -> str:
        return (
            f"VaultSession(url={self.client.url}, namespace={self.namespace or '<root>'}, "
            f"authenticated={self.has_token})"
        )
