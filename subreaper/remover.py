"""Account removal protocol and the run driver.

``AccountRemover`` drives one account through
query access key → sign → broadcast → poll → local cleanup.
``CleanupRun`` walks the keystore candidates and stops when the operator
declines to continue or a fatal error occurs.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from rich.console import Console
from rich.markup import escape

from .crypto import build_delete_account_tx
from .keystore import Credential, KeyStore
from .rpc import NearRpc
from .selector import select_candidates
from .types import (
    AccessKeyNotFound,
    BroadcastError,
    DeletionRequest,
    FinalExecutionOutcome,
    KeystoreError,
    Outcome,
    RemovalError,
    RemovalResult,
    RpcError,
    TimeLimitExceeded,
    TransientNetworkError,
)

# Approval gate: (prompt, default answer) -> answer
Approve = Callable[[str, bool], bool]

CONTINUE_PROMPT = "Do you want to continue?"
UNKNOWN_PROMPT = "An unhandled error occurred. Do you want to continue?"
UNKNOWN_ACCESS_KEY_PROMPT = (
    "It seems that the account with this key has already been deleted. "
    "Do you want to delete this private key from your keystore?"
)
REMOVE_PROMPT = "Are you sure to remove: '{account_id}' ?"
SHOW_SKIPPED_PROMPT = "Show skipped accounts?"

# Final value returned by a DeleteAccount that did not happen
REFUSED_VALUE = b"false"

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_TIMEOUT = 60.0


@dataclass
class PollPolicy:
    """Transaction status polling policy."""

    interval: float = DEFAULT_POLL_INTERVAL  # seconds between polls on transient errors
    timeout: float = DEFAULT_POLL_TIMEOUT  # budget measured from broadcast


def decode_success_value(value: str) -> bytes:
    """Decode the base64 ``SuccessValue`` of a final outcome."""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return value.encode()


# ──────────────────────────────────────────────────────────────────────────────
# Per-account protocol
# ──────────────────────────────────────────────────────────────────────────────


class AccountRemover:
    """Deletes one account on-chain: query key, sign, broadcast, poll."""

    def __init__(
        self,
        rpc: NearRpc,
        keystore: KeyStore,
        approve: Approve,
        *,
        console: Console | None = None,
        policy: PollPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.rpc = rpc
        self.keystore = keystore
        self.approve = approve
        self.console = console or Console()
        self.policy = policy or PollPolicy()
        self._clock = clock
        self._sleep = sleep

    async def remove(self, request: DeletionRequest) -> RemovalResult:
        """Delete one account on-chain and its local key on success.

        Args:
            request: Beneficiary and credential of the account to delete

        Returns:
            Terminal result for this account. ``aborted`` means the operator
            declined to continue the run.

        Raises:
            BroadcastError: If the transaction could not be submitted
            TimeLimitExceeded: If the node did not report a final outcome in time
        """
        credential = request.credential
        account_id = credential.account_id

        try:
            access_key = await self.rpc.view_access_key(
                account_id, credential.public_key
            )
        except AccessKeyNotFound as e:
            return self._handle_missing_key(credential, e)
        except RpcError as e:
            self.report_error(e)
            return self.continue_or_abort(account_id, UNKNOWN_PROMPT, str(e))

        tx = build_delete_account_tx(
            signer_id=account_id,
            public_key=credential.public_key,
            nonce=access_key["nonce"] + 1,
            block_hash=access_key["block_hash"],
            beneficiary_id=request.beneficiary_id,
        )
        signed_tx = tx.sign(credential.signer)

        sent_at = self._clock()
        tx_hash = await self.rpc.broadcast_tx_async(signed_tx)
        self.console.print(f"[dim]Transaction sent: {tx_hash}[/dim]")

        return await self._poll(credential, tx_hash, sent_at)

    async def _poll(
        self, credential: Credential, tx_hash: str, sent_at: float
    ) -> RemovalResult:
        account_id = credential.account_id

        while True:
            error: RpcError | None = None
            outcome: FinalExecutionOutcome | None = None
            try:
                outcome = await self.rpc.tx_status(tx_hash, account_id)
            except RpcError as e:
                error = e

            if self._clock() - sent_at > self.policy.timeout:
                raise TimeLimitExceeded(
                    "time limit exceeded for the transaction to be recognized "
                    f"({tx_hash})"
                )

            if isinstance(error, TransientNetworkError):
                await self._sleep(self.policy.interval)
                continue

            if error is not None:
                self.report_error(error)
                return self.continue_or_abort(account_id, UNKNOWN_PROMPT, str(error))

            assert outcome is not None
            status = outcome.get("status")

            if isinstance(status, dict) and "SuccessValue" in status:
                value = decode_success_value(status["SuccessValue"])
                if value == REFUSED_VALUE:
                    self.console.print("[yellow]Account wasn't removed[/yellow]")
                    return RemovalResult(
                        account_id, "refused_on_chain", detail=value.decode()
                    )
                return self._handle_removed(credential, outcome)

            if isinstance(status, dict) and "Failure" in status:
                self.console.print_json(data=status["Failure"])
                self.console.print(
                    "[red]❌ Removing the account failed, check above for full logs[/red]"
                )
                return self.continue_or_abort(
                    account_id, CONTINUE_PROMPT, str(status["Failure"])
                )

            # NotStarted / Started, or no final status yet
            await self._sleep(self.policy.interval)

    # ───────────────────────── Terminal handlers ─────────────────────────────

    def _handle_removed(
        self, credential: Credential, outcome: FinalExecutionOutcome
    ) -> RemovalResult:
        self.console.print_json(data=outcome)
        self.console.print("[green]✅ Account successfully removed[/green]")
        key_deleted = self.delete_key(credential.path)
        return RemovalResult(credential.account_id, "removed", key_deleted=key_deleted)

    def _handle_missing_key(
        self, credential: Credential, error: AccessKeyNotFound
    ) -> RemovalResult:
        self.report_error(error)
        key_deleted = False
        if self.approve(UNKNOWN_ACCESS_KEY_PROMPT, False):
            key_deleted = self.delete_key(credential.path)
        return RemovalResult(
            credential.account_id,
            "key_missing_remotely",
            detail=str(error),
            key_deleted=key_deleted,
        )

    def delete_key(self, path: Path) -> bool:
        """Delete a key file, reporting instead of raising on failure."""
        try:
            self.keystore.delete(path)
        except KeystoreError as e:
            self.console.print(
                f"[red]❌ Can't remove private key for this account:[/red] {escape(str(e))}"
            )
            return False
        self.console.print("[green]✅ Private key was removed for this account[/green]")
        return True

    def report_error(self, error: Exception) -> None:
        self.console.print(f"[red]{escape(repr(error))}[/red]")

    def continue_or_abort(
        self, account_id: str, prompt: str, detail: str | None = None
    ) -> RemovalResult:
        """Ask whether to go on with the run after an error on this account."""
        outcome: Outcome = "failed" if self.approve(prompt, False) else "aborted"
        return RemovalResult(account_id, outcome, detail=detail)


# ──────────────────────────────────────────────────────────────────────────────
# Run driver
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class RunReport:
    """What happened during one cleanup run."""

    results: list[RemovalResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # filtered out by master
    declined: list[str] = field(default_factory=list)  # operator said no
    aborted: bool = False
    fatal: RemovalError | None = None

    @property
    def exit_code(self) -> int:
        # Operator-declined aborts still exit 0
        return 1 if self.fatal is not None else 0

    def by_outcome(self, outcome: Outcome) -> list[str]:
        return [r.account_id for r in self.results if r.outcome == outcome]


class CleanupRun:
    """One pass over the keystore for a fixed beneficiary."""

    def __init__(
        self,
        keystore: KeyStore,
        remover: AccountRemover,
        approve: Approve,
        beneficiary_id: str,
        master: str | None = None,
        *,
        console: Console | None = None,
    ) -> None:
        self.keystore = keystore
        self.remover = remover
        self.approve = approve
        self.beneficiary_id = beneficiary_id
        self.master = master
        self.console = console or Console()
        # Asked lazily on the first skipped account: None = not asked yet
        self.show_skipped: bool | None = None

    async def run(self) -> RunReport:
        """Offer every eligible account for removal.

        Raises:
            KeystoreError: If the keystore directory cannot be read
        """
        report = RunReport()
        entries = self.keystore.entries()
        paths = dict(entries)

        candidates = select_candidates(
            [account_id for account_id, _ in entries], self.beneficiary_id, self.master
        )

        for candidate in candidates:
            account_id = candidate.account_id

            if not candidate.included:
                report.skipped.append(account_id)
                self._report_skipped(account_id)
                continue

            if not self.approve(REMOVE_PROMPT.format(account_id=account_id), False):
                report.declined.append(account_id)
                continue

            result = await self._remove_one(account_id, paths[account_id], report)
            report.results.append(result)

            if result.outcome == "aborted":
                report.aborted = True
            if result.aborts_run or report.fatal is not None:
                break

        return report

    async def _remove_one(
        self, account_id: str, path: Path, report: RunReport
    ) -> RemovalResult:
        try:
            credential = self.keystore.load(path)
        except KeystoreError as e:
            self.remover.report_error(e)
            return self.remover.continue_or_abort(account_id, UNKNOWN_PROMPT, str(e))

        # Only the account the operator approved may be signed for
        if (
            credential.account_id != account_id
            or credential.account_id == self.beneficiary_id
        ):
            e = KeystoreError(
                f"Key file {path} is for {credential.account_id!r}, not {account_id!r}"
            )
            self.remover.report_error(e)
            return self.remover.continue_or_abort(account_id, UNKNOWN_PROMPT, str(e))

        try:
            return await self.remover.remove(
                DeletionRequest(beneficiary_id=self.beneficiary_id, credential=credential)
            )
        except TimeLimitExceeded as e:
            self.console.print(f"[red]{escape(str(e))}[/red]")
            report.fatal = e
            return RemovalResult(account_id, "timed_out", detail=str(e))
        except BroadcastError as e:
            self.console.print(f"[red]{escape(str(e))}[/red]")
            report.fatal = e
            return RemovalResult(account_id, "failed", detail=str(e))

    def _report_skipped(self, account_id: str) -> None:
        if self.show_skipped is None:
            self.show_skipped = self.approve(SHOW_SKIPPED_PROMPT, False)
        if self.show_skipped:
            self.console.print(f"[red]✘[/red] Skip account: {account_id}")
