"""CLI entry point: load settings, then log in, inspect, or revoke."""

from __future__ import annotations

import argparse
import logging
import pathlib

from rich.console import Console

from vault_auth_negotiator.config import load_store_config
from vault_auth_negotiator.errors import ConfigError


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Vault auth negotiator: obtain, inspect and revoke Vault tokens",
    )
    parser.add_argument(
        "--config",
        default=str(pathlib.Path(__file__).resolve().parents[2] / "config" / "settings.yaml"),
        help="Path to settings.yaml",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "command",
        choices=("login", "status", "revoke"),
        help="login: negotiate a token; status: check VAULT_TOKEN; revoke: revoke VAULT_TOKEN",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        store = load_store_config(args.config)
    except ConfigError as exc:
        Console().print(f"[red]Invalid configuration:[/red] {exc}")
        raise SystemExit(1) from exc

    from vault_auth_negotiator.prompt.cli import run_login, run_revoke, run_status

    commands = {"login": run_login, "status": run_status, "revoke": run_revoke}
    commands[args.command](store)


if __name__ == "__main__":
    main()
