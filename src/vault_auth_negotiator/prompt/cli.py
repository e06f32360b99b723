"""Console rendering for the negotiation CLI.

The CLI knows nothing about mechanisms or namespaces; it builds a session,
hands it to the orchestrator or revoker, and prints what came back.  Rich is
used for display only.
"""

from __future__ import annotations

import logging
import os
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vault_auth_negotiator.auth.methods import AuthContext
from vault_auth_negotiator.auth.orchestrator import AuthOrchestrator
from vault_auth_negotiator.auth.revoker import SessionRevoker
from vault_auth_negotiator.auth.session import VaultSession
from vault_auth_negotiator.auth.token_validator import TokenIntrospection, TokenValidator
from vault_auth_negotiator.cluster.secrets import KubernetesSecretReader
from vault_auth_negotiator.cluster.service_account import KubernetesTokenIssuer
from vault_auth_negotiator.config import StoreConfig, build_client
from vault_auth_negotiator.errors import VaultAuthError
from vault_auth_negotiator.observability import RecordingCallObserver

logger = logging.getLogger(__name__)
console = Console()


def _print_banner(store: StoreConfig) -> None:
    mechanisms = store.auth.configured_mechanisms() if store.auth else []
    console.print(
        Panel(
            f"[bold]Vault auth negotiator[/bold]\n"
            f"Server: {store.server}\n"
            f"Namespace: {store.namespace or '<root>'}  "
            f"Auth namespace: {(store.auth.namespace if store.auth else None) or '<same>'}\n"
            f"Mechanism: {', '.join(mechanisms) or '(none)'}",
            border_style="blue",
        )
    )


def _print_token(info: TokenIntrospection) -> None:
    table = Table(title="Vault Token")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("type", info.token_type)
    table.add_row("ttl", f"{info.ttl_seconds}s")
    table.add_row("expire_time", info.expire_time or "(never)")
    console.print(table)


def _print_calls(observer: RecordingCallObserver) -> None:
    for call in observer.calls:
        status = "[green]ok[/green]" if call.succeeded else f"[red]{call.error}[/red]"
        console.print(f"  [dim]{call.provider}[/dim] {call.operation}: {status}")


def _session(store: StoreConfig) -> VaultSession:
    client = build_client(store, token=os.environ.get("VAULT_TOKEN"))
    return VaultSession(client=client, operating_namespace=store.namespace)


def _fail(exc: VaultAuthError) -> None:
    console.print(f"[red]Failed:[/red] {exc}")
    sys.exit(1)


def run_login(store: StoreConfig) -> None:
    """Negotiate a token for *store* and show it."""
    _print_banner(store)
    observer = RecordingCallObserver()
    context = AuthContext(
        secrets=KubernetesSecretReader(),
        token_issuer=KubernetesTokenIssuer(observer=observer),
        observer=observer,
        store_kind=store.kind,
        resource_namespace=store.resource_namespace,
    )
    session = _session(store)
    orchestrator = AuthOrchestrator(context=context)

    try:
        orchestrator.ensure_authenticated(session, store)
        info = TokenValidator(observer=observer).introspect(session) if session.has_token else None
    except VaultAuthError as exc:
        _print_calls(observer)
        _fail(exc)
        return

    _print_calls(observer)
    if info is None:
        console.print("[yellow]No auth configured; client is unauthenticated.[/yellow]")
        return
    console.print(f"\n  [green]Authenticated[/green] against [bold]{store.server}[/bold]\n")
    _print_token(info)


def run_status(store: StoreConfig) -> None:
    """Show the reuse verdict for the token in ``VAULT_TOKEN``."""
    session = _session(store)
    if not session.has_token:
        console.print("[yellow]VAULT_TOKEN is not set.[/yellow]")
        return

    validator = TokenValidator()
    try:
        info = validator.introspect(session)
        valid = validator.is_valid(session)
    except VaultAuthError as exc:
        _fail(exc)
        return

    _print_token(info)
    verdict = "[green]reusable[/green]" if valid else "[red]not reusable[/red]"
    console.print(f"  Verdict: {verdict}")


def run_revoke(store: StoreConfig) -> None:
    """Revoke the token in ``VAULT_TOKEN`` if it is still valid."""
    session = _session(store)
    if not session.has_token:
        console.print("[yellow]VAULT_TOKEN is not set.[/yellow]")
        return

    observer = RecordingCallObserver()
    try:
        SessionRevoker(observer=observer).revoke_if_valid(session)
    except VaultAuthError as exc:
        _fail(exc)
        return

    _print_calls(observer)
    if session.has_token:
        console.print("[yellow]Token was not valid; nothing revoked.[/yellow]")
    else:
        console.print("[green]Token revoked.[/green]")
