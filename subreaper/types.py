"""Type definitions for the subreaper package following NEAR JSON-RPC shapes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypedDict

if TYPE_CHECKING:
    from .keystore import Credential


# ──────────────────────────────────────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────────────────────────────────────


class InvalidAccountIdError(ValueError):
    """Raised when an account id fails NEAR account id validation."""


class KeystoreError(Exception):
    """Base exception for credential store errors."""

    pass


class RpcError(Exception):
    """Base exception for NEAR JSON-RPC errors.

    Keeps the structured error payload so it can be printed in full before
    the operator is asked to decide anything.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        cause: str | None = None,
        info: dict[str, Any] | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.name = name
        self.cause = cause
        self.info = info or {}
        self.data = data

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({str(self)!r}, name={self.name!r}, cause={self.cause!r}, "
            f"info={self.info!r}, data={self.data!r})"
        )


class AccessKeyNotFound(RpcError):
    """The chain has no record of the queried access key."""


class TransientNetworkError(RpcError):
    """The node has not produced a result yet (TIMEOUT_ERROR / UNKNOWN_TRANSACTION)."""


class UnclassifiedRpcError(RpcError):
    """Any RPC or transport failure without a dedicated recovery policy."""


class RemovalError(Exception):
    """Base exception for errors that abort the whole run."""

    pass


class BroadcastError(RemovalError):
    """Submitting the signed transaction failed."""


class TimeLimitExceeded(RemovalError):
    """The transaction was not recognized within the polling budget."""


# ──────────────────────────────────────────────────────────────────────────────
# Network selector
# ──────────────────────────────────────────────────────────────────────────────

Network = Literal["mainnet", "testnet"]

NETWORKS: tuple[Network, ...] = ("mainnet", "testnet")

# Top-level account suffix per network (alice.near / alice.testnet)
ACCOUNT_SUFFIXES: dict[str, str] = {
    "mainnet": "near",
    "testnet": "testnet",
}


def rpc_url_for(network: Network) -> str:
    """Return the public RPC endpoint for a network."""
    return f"https://rpc.{network}.near.org"


# ──────────────────────────────────────────────────────────────────────────────
# Outcomes
# ──────────────────────────────────────────────────────────────────────────────

Outcome = Literal[
    "removed",  # account deleted on-chain, local key deleted
    "refused_on_chain",  # final value was `false`, key kept
    "failed",  # operator chose to continue after an error
    "timed_out",  # polling budget exhausted, run aborted
    "key_missing_remotely",  # access key unknown to the chain
    "aborted",  # operator declined to continue the run
]


@dataclass
class DeletionRequest:
    """One account to delete and where its balance goes."""

    beneficiary_id: str
    credential: Credential


@dataclass
class RemovalResult:
    """Terminal state of one candidate."""

    account_id: str
    outcome: Outcome
    detail: str | None = None
    key_deleted: bool = False

    @property
    def aborts_run(self) -> bool:
        return self.outcome in ("aborted", "timed_out")


# ──────────────────────────────────────────────────────────────────────────────
# RPC response shapes
# ──────────────────────────────────────────────────────────────────────────────


class AccessKeyView(TypedDict):
    """Result of `query` with `request_type=view_access_key`."""

    nonce: int
    permission: Any
    block_height: int
    block_hash: str  # base58


class ExecutionStatus(TypedDict, total=False):
    """`status` of a final execution outcome.

    Exactly one key is present. `SuccessValue` is base64 encoded.
    """

    SuccessValue: str
    Failure: dict[str, Any]
    SuccessReceiptId: str


class FinalExecutionOutcome(TypedDict, total=False):
    """Result of the `tx` method."""

    status: ExecutionStatus | str  # "NotStarted" / "Started" while pending
    final_execution_status: str
    transaction: dict[str, Any]
    transaction_outcome: dict[str, Any]
    receipts_outcome: list[dict[str, Any]]


class CredentialFile(TypedDict, total=False):
    """On-disk key file written by near-cli."""

    account_id: str
    public_key: str
    private_key: str
    secret_key: str
