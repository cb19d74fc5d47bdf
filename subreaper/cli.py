"""Subreaper CLI - delete NEAR subaccounts found in the local keystore."""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from rich.table import Table

from . import __version__
from .account import validate_account_id
from .keystore import KeyStore, default_credentials_dir
from .remover import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
    AccountRemover,
    CleanupRun,
    PollPolicy,
    RunReport,
)
from .rpc import NearRpc, get_rpc_url
from .selector import WILDCARD, select_candidates
from .types import (
    NETWORKS,
    InvalidAccountIdError,
    KeystoreError,
    Network,
    RemovalError,
    RpcError,
)

# .env in the working directory may provide NEAR_NETWORK, NEAR_RPC_URL, ...
load_dotenv()

CHOOSE_NETWORK_PROMPT = "Chose your NEAR network"
SETUP_BENEFIT_PROMPT = "Setup beneficiary account"
SETUP_MASTER_PROMPT = "Setup master account or `*` for show all accounts"
CONFIRM_ACCOUNT_PROMPT = "Is the account entered correctly: '{account_id}' ?"
FIND_SUBACCOUNTS_PROMPT = "Find subaccounts for: '{account_id}' ?"

app = typer.Typer(
    name="subreaper",
    help="Subreaper - delete NEAR subaccounts and sweep their balance to a beneficiary",
    rich_markup_mode="markdown",
)
console = Console()


# ──────────────────────────────────────────────────────────────────────────────
# Prompts
# ──────────────────────────────────────────────────────────────────────────────


def approve_action(prompt: str, default: bool = False) -> bool:
    """Yes/no approval gate used by the removal protocol."""
    return Confirm.ask(prompt, default=default, console=console)


def prompt_network() -> Network:
    choice = Prompt.ask(
        CHOOSE_NETWORK_PROMPT,
        choices=list(NETWORKS),
        default="mainnet",
        console=console,
    )
    return choice  # type: ignore[return-value]


def prompt_account_id(
    prompt: str, network: Network, *, allow_wildcard: bool = False
) -> str:
    """Ask until the operator enters a valid account id (or ``*`` if allowed)."""
    while True:
        value = Prompt.ask(prompt, console=console).strip()
        if allow_wildcard and value == WILDCARD:
            return value
        try:
            return validate_account_id(value, network)
        except InvalidAccountIdError as e:
            console.print(f"[red]{escape(str(e))}[/red]")


def prompt_beneficiary(network: Network) -> str:
    while True:
        account_id = prompt_account_id(SETUP_BENEFIT_PROMPT, network)
        if approve_action(CONFIRM_ACCOUNT_PROMPT.format(account_id=account_id), True):
            return account_id


def prompt_master(beneficiary_id: str, network: Network) -> str:
    """Pick the account whose subaccounts are offered, or ``*`` for all."""
    while True:
        if approve_action(
            FIND_SUBACCOUNTS_PROMPT.format(account_id=beneficiary_id), True
        ):
            return beneficiary_id

        value = prompt_account_id(SETUP_MASTER_PROMPT, network, allow_wildcard=True)
        if value == WILDCARD:
            return value
        if approve_action(CONFIRM_ACCOUNT_PROMPT.format(account_id=value), True):
            return value


# ──────────────────────────────────────────────────────────────────────────────
# Option resolution
# ──────────────────────────────────────────────────────────────────────────────


def resolve_network(network: str | None) -> Network:
    if network is None:
        return prompt_network()
    network = network.lower()
    if network not in NETWORKS:
        console.print(
            f"[red]Unknown network {network!r}, expected one of: {', '.join(NETWORKS)}[/red]"
        )
        raise typer.Exit(1)
    return network  # type: ignore[return-value]


def resolve_account(
    value: str | None, network: Network, label: str, *, allow_wildcard: bool = True
) -> str | None:
    if value is None:
        return value
    if value == WILDCARD:
        if allow_wildcard:
            return value
        console.print(f"[red]Invalid {label}: `*` only selects the master account[/red]")
        raise typer.Exit(1)
    try:
        return validate_account_id(value, network)
    except InvalidAccountIdError as e:
        console.print(f"[red]Invalid {label}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def print_summary(report: RunReport) -> None:
    table = Table(title="Cleanup Summary")
    table.add_column("Account", style="cyan")
    table.add_column("Outcome", style="green")
    table.add_column("Key deleted", style="blue")

    for result in report.results:
        table.add_row(
            result.account_id, result.outcome, "yes" if result.key_deleted else "no"
        )
    for account_id in report.declined:
        table.add_row(account_id, "[dim]not approved[/dim]", "no")

    console.print(table)
    if report.aborted:
        console.print("[yellow]Run stopped by operator.[/yellow]")


def handle_error(e: Exception) -> None:
    """Print errors that end a command."""
    if isinstance(e, KeystoreError):
        console.print(f"[red]🔑 {escape(str(e))}[/red]")
    elif isinstance(e, RemovalError):
        console.print(f"[red]⏱ {escape(str(e))}[/red]")
    elif isinstance(e, RpcError):
        console.print(f"[red]🌐 {escape(str(e))}[/red]")
    else:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")


# ──────────────────────────────────────────────────────────────────────────────
# Commands
# ──────────────────────────────────────────────────────────────────────────────


@app.command()
def sweep(
    network: Annotated[
        Optional[str],
        typer.Option(
            "--network", "-n", envvar="NEAR_NETWORK", help="mainnet or testnet"
        ),
    ] = None,
    beneficiary: Annotated[
        Optional[str],
        typer.Option("--beneficiary", "-b", help="Account receiving the balances"),
    ] = None,
    master: Annotated[
        Optional[str],
        typer.Option(
            "--master", "-m", help="Only offer subaccounts of this account (`*` for all)"
        ),
    ] = None,
    credentials_dir: Annotated[
        Optional[Path],
        typer.Option("--credentials-dir", help="Keystore directory for the network"),
    ] = None,
    rpc_url: Annotated[
        Optional[str],
        typer.Option("--rpc-url", help="JSON-RPC endpoint (default: rpc.<network>.near.org)"),
    ] = None,
    poll_interval: Annotated[
        float,
        typer.Option(
            "--poll-interval",
            envvar="SUBREAPER_POLL_INTERVAL",
            help="Seconds between transaction status polls",
        ),
    ] = DEFAULT_POLL_INTERVAL,
    poll_timeout: Annotated[
        float,
        typer.Option(
            "--poll-timeout",
            envvar="SUBREAPER_POLL_TIMEOUT",
            help="Seconds to wait for a transaction outcome before giving up",
        ),
    ] = DEFAULT_POLL_TIMEOUT,
) -> None:
    """Delete subaccounts found in the keystore, one confirmation at a time.

    Each approved account is deleted on-chain with its balance sent to the
    beneficiary; its key file is removed once the deletion is confirmed.
    """
    selected_network = resolve_network(network)
    beneficiary_id = resolve_account(beneficiary, selected_network, "beneficiary")
    if beneficiary_id is None or beneficiary_id == WILDCARD:
        beneficiary_id = prompt_beneficiary(selected_network)
    master_id = resolve_account(master, selected_network, "master account")
    if master_id is None:
        master_id = prompt_master(beneficiary_id, selected_network)

    keystore = KeyStore(credentials_dir or default_credentials_dir(selected_network))
    policy = PollPolicy(interval=poll_interval, timeout=poll_timeout)

    async def _sweep() -> RunReport:
        async with NearRpc(rpc_url or get_rpc_url(selected_network)) as rpc:
            remover = AccountRemover(
                rpc, keystore, approve_action, console=console, policy=policy
            )
            run = CleanupRun(
                keystore,
                remover,
                approve_action,
                beneficiary_id,
                None if master_id == WILDCARD else master_id,
                console=console,
            )
            return await run.run()

    try:
        report = asyncio.run(_sweep())
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)

    print_summary(report)
    if report.fatal is not None:
        handle_error(report.fatal)
    raise typer.Exit(report.exit_code)


@app.command()
def candidates(
    beneficiary: Annotated[str, typer.Argument(help="Account receiving the balances")],
    network: Annotated[
        str,
        typer.Option(
            "--network", "-n", envvar="NEAR_NETWORK", help="mainnet or testnet"
        ),
    ] = "testnet",
    master: Annotated[
        Optional[str],
        typer.Option(
            "--master", "-m", help="Only include subaccounts of this account (`*` for all)"
        ),
    ] = WILDCARD,
    credentials_dir: Annotated[
        Optional[Path],
        typer.Option("--credentials-dir", help="Keystore directory for the network"),
    ] = None,
) -> None:
    """Show which keystore accounts a sweep would offer, without touching the network."""
    selected_network = resolve_network(network)
    beneficiary_id = resolve_account(
        beneficiary, selected_network, "beneficiary", allow_wildcard=False
    )
    master_id = resolve_account(master, selected_network, "master account")
    keystore = KeyStore(credentials_dir or default_credentials_dir(selected_network))

    try:
        account_ids = keystore.account_ids()
    except KeystoreError as e:
        handle_error(e)
        raise typer.Exit(1)

    table = Table(title=f"Candidates in {keystore.directory}")
    table.add_column("Account", style="cyan")
    table.add_column("Status", style="green")
    for candidate in select_candidates(account_ids, beneficiary_id, master_id):
        status = "included" if candidate.included else "[dim]skipped[/dim]"
        table.add_row(candidate.account_id, status)
    console.print(table)


def version_callback(value: bool) -> None:
    """Handle version flag."""
    if value:
        console.print(f"Subreaper v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, help="Show version"),
    ] = None,
) -> None:
    """Subreaper - delete NEAR subaccounts and sweep their balance to a beneficiary.

    CONFIGURATION (environment variables or a `.env` file in the working directory):

    * `NEAR_NETWORK`: mainnet or testnet
    * `NEAR_RPC_URL`: JSON-RPC endpoint override
    * `NEAR_CREDENTIALS_DIR`: keystore root (default `~/.near-credentials`)
    * `SUBREAPER_POLL_INTERVAL` / `SUBREAPER_POLL_TIMEOUT`: status polling policy
    * `RPC_DEBUG=true`: print every RPC request
    """
    pass


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
