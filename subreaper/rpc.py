"""
NEAR JSON-RPC client wrapper."""

from __future__ import annotations

import os
from typing import Any, cast

import httpx

from .crypto import PublicKey, SignedTransaction
from .types import (
    AccessKeyNotFound,
    AccessKeyView,
    BroadcastError,
    FinalExecutionOutcome,
    Network,
    RpcError,
    TransientNetworkError,
    UnclassifiedRpcError,
    rpc_url_for,
)

RPC_URL_ENV_VAR = "NEAR_RPC_URL"

# Handler error causes the node reports while a transaction is not indexed yet
TRANSIENT_CAUSES = ("TIMEOUT_ERROR", "UNKNOWN_TRANSACTION")
UNKNOWN_ACCESS_KEY_CAUSE = "UNKNOWN_ACCESS_KEY"


def get_rpc_url(network: Network) -> str:
    """RPC endpoint for a network, ``NEAR_RPC_URL`` takes priority."""
    return os.getenv(RPC_URL_ENV_VAR) or rpc_url_for(network)


def classify_error(error: dict[str, Any]) -> RpcError:
    """Map a JSON-RPC ``error`` object onto the error taxonomy.

    NEAR nodes report structured errors as::

        {"name": "HANDLER_ERROR", "cause": {"name": "UNKNOWN_ACCESS_KEY", "info": {...}},
         "code": -32000, "message": "Server error", "data": "..."}

    Only ``cause.name`` decides the class; everything else is kept for display.
    """
    cause = error.get("cause") or {}
    cause_name = cause.get("name") if isinstance(cause, dict) else None
    info = cause.get("info") if isinstance(cause, dict) else None
    name = error.get("name")
    detail = error.get("data") or error.get("message") or "unknown error"

    message = f"{name or 'RPC_ERROR'}"
    if cause_name:
        message += f" ({cause_name})"
    message += f": {detail}"

    error_class: type[RpcError]
    if cause_name == UNKNOWN_ACCESS_KEY_CAUSE:
        error_class = AccessKeyNotFound
    elif cause_name in TRANSIENT_CAUSES:
        error_class = TransientNetworkError
    else:
        error_class = UnclassifiedRpcError

    return error_class(
        message, name=name, cause=cause_name, info=info, data=error.get("data")
    )


# ──────────────────────────────────────────────────────────────────────────────
# RPC client
# ──────────────────────────────────────────────────────────────────────────────


class NearRpc:
    """Async NEAR JSON-RPC client."""

    def __init__(self, url: str, *, client: httpx.AsyncClient | None = None) -> None:
        self.url = url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=30.0)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self.client:
            await self.client.aclose()

    async def __aenter__(self) -> NearRpc:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _call(self, method: str, params: Any) -> Any:
        """Send one JSON-RPC request and return its ``result``.

        Raises:
            RpcError: Classified from the response ``error`` object, or
                UnclassifiedRpcError for transport failures and malformed replies
        """
        payload = {
            "jsonrpc": "2.0",
            "id": "dontcare",
            "method": method,
            "params": params,
        }
        if os.environ.get("RPC_DEBUG", "false").lower() == "true":
            print(f"RPC_DEBUG {method} request to {self.url}: {params}")

        try:
            response = await self.client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise UnclassifiedRpcError(f"Request to {self.url} failed: {e!r}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        # Error statuses (408, 400, 500) still carry a structured error body
        if isinstance(body, dict) and body.get("error"):
            raise classify_error(body["error"])

        if response.status_code >= 400 or not isinstance(body, dict):
            raise UnclassifiedRpcError(
                f"RPC returned {response.status_code}: {response.text}"
            )

        if "result" not in body:
            raise UnclassifiedRpcError(f"RPC response without result: {body}")

        return body["result"]

    # ───────────────────────── Access keys ─────────────────────────────────

    async def view_access_key(
        self, account_id: str, public_key: PublicKey | str
    ) -> AccessKeyView:
        """Query an access key at the latest final block.

        Args:
            account_id: Account owning the key
            public_key: Key to look up

        Returns:
            Access key view with ``nonce`` and the ``block_hash`` it was read at

        Raises:
            AccessKeyNotFound: If the chain has no such key (account deleted or key removed)
            UnclassifiedRpcError: For any other failure
        """
        result = await self._call(
            "query",
            {
                "request_type": "view_access_key",
                "finality": "final",
                "account_id": account_id,
                "public_key": str(public_key),
            },
        )

        # Older nodes answer unknown keys with a successful result carrying an error string
        if isinstance(result, dict) and "error" in result:
            message = str(result["error"])
            if "does not exist" in message:
                raise AccessKeyNotFound(
                    message,
                    name="HANDLER_ERROR",
                    cause=UNKNOWN_ACCESS_KEY_CAUSE,
                    info={
                        "block_hash": result.get("block_hash"),
                        "block_height": result.get("block_height"),
                    },
                )
            raise UnclassifiedRpcError(message, data=result)

        if not isinstance(result, dict) or "nonce" not in result:
            raise UnclassifiedRpcError(f"failed to extract current nonce: {result}")

        return cast(AccessKeyView, result)

    # ───────────────────────── Transactions ─────────────────────────────────

    async def broadcast_tx_async(self, signed_tx: SignedTransaction) -> str:
        """Submit a signed transaction without waiting for inclusion.

        Returns:
            Transaction hash (base58)

        Raises:
            BroadcastError: If the node rejected or never received the submission
        """
        try:
            result = await self._call("broadcast_tx_async", [signed_tx.to_base64()])
        except RpcError as e:
            raise BroadcastError(f"Can't send transaction: {e}") from e

        if not isinstance(result, str):
            raise BroadcastError(f"Unexpected broadcast result: {result!r}")
        return result

    async def tx_status(
        self, tx_hash: str, sender_account_id: str
    ) -> FinalExecutionOutcome:
        """Fetch the execution outcome of a submitted transaction.

        Raises:
            TransientNetworkError: Node has not indexed the transaction yet
            UnclassifiedRpcError: For any other failure
        """
        result = await self._call(
            "tx",
            {"tx_hash": tx_hash, "sender_account_id": sender_account_id},
        )
        if not isinstance(result, dict):
            raise UnclassifiedRpcError(f"Unexpected tx status result: {result!r}")
        return cast(FinalExecutionOutcome, result)
