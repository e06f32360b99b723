"""Call-result observers for backend interactions.

Every Vault call made during negotiation (lookup, revoke, each login) is
reported to a ``CallObserver`` as ``(provider, operation, error)``.  The
observer is injected wherever it is needed rather than reached through a
module global, so tests can substitute a ``RecordingCallObserver`` and assert
on exactly which calls were made.

Observers are for dashboards and audit trails only.  Nothing in the
negotiation path reads an observer back to make a decision.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Protocol

logger = logging.getLogger(__name__)

PROVIDER_VAULT = "HashiCorp/Vault"
PROVIDER_KUBERNETES = "Kubernetes"

CALL_LOOKUP_SELF = "LookupSelf"
CALL_REVOKE_SELF = "RevokeSelf"
CALL_CREATE_SA_TOKEN = "CreateServiceAccountToken"


class CallObserver(Protocol):
    def observe(self, provider: str, operation: str, error: BaseException | None) -> None: ...


class LoggingCallObserver:
    """Default observer: one log line per backend call."""

    def observe(self, provider: str, operation: str, error: BaseException | None) -> None:
        if error is None:
            logger.debug("api call provider=%s call=%s status=success", provider, operation)
        else:
            logger.info(
                "api call provider=%s call=%s status=error error=%s", provider, operation, error
            )


@dataclasses.dataclass(frozen=True)
class ObservedCall:
    provider: str
    operation: str
    error: BaseException | None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class RecordingCallObserver:
    """Keeps every observed call in memory, in order."""

    def __init__(self) -> None:
        self.calls: list[ObservedCall] = []

    def observe(self, provider: str, operation: str, error: BaseException | None) -> None:
        self.calls.append(ObservedCall(provider=provider, operation=operation, error=error))

    def operations(self) -> list[str]:
        return [call.operation for call in self.calls]
