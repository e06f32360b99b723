"""Error taxonomy for Vault auth negotiation.

Nothing in this package retries a network call.  Every error below is the
first definitive failure encountered, wrapped with enough context (mechanism,
identity) to be actionable by whatever control loop owns retry and backoff.
"""

from __future__ import annotations


class VaultAuthError(Exception):
    """Base class for all auth negotiation failures."""


class ConfigError(VaultAuthError):
    """Raised when the settings file is missing or malformed."""


class NoAuthMethodConfigured(VaultAuthError):
    """Raised when an auth block is present but no mechanism is populated."""

    def __init__(self) -> None:
        super().__init__("cannot initialize Vault client: no valid auth method specified")


class IntrospectionError(VaultAuthError):
    """Raised when a token self-lookup fails or returns a malformed response."""


class MechanismAcquisitionError(VaultAuthError):
    """Raised when a configured mechanism was attempted and failed."""

    def __init__(self, mechanism: str, identity: str, reason: object) -> None:
        self.mechanism = mechanism
        self.identity = identity
        super().__init__(f"{mechanism} auth failed for {identity}: {reason}")


class RevocationError(VaultAuthError):
    """Raised when revoking the session token fails.

    Callers should treat the local credential as stale either way.
    """


class ClusterIdentityError(VaultAuthError):
    """Raised when a Kubernetes token request or secret read fails."""
