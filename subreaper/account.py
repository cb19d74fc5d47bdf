"""NEAR account id validation and relations."""

from __future__ import annotations

import re

from .types import ACCOUNT_SUFFIXES, InvalidAccountIdError, Network

MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64

# Parts of lowercase alphanumerics joined by a single `-` or `_`, parts joined by `.`
_ACCOUNT_ID_RE = re.compile(r"^(([a-z\d]+[\-_])*[a-z\d]+\.)*([a-z\d]+[\-_])*[a-z\d]+$")
_NEAR_IMPLICIT_RE = re.compile(r"^[0-9a-f]{64}$")
_ETH_IMPLICIT_RE = re.compile(r"^0x[0-9a-f]{40}$")


def is_valid_account_id(account_id: str) -> bool:
    """Check account id syntax (length and charset)."""
    if not MIN_ACCOUNT_ID_LEN <= len(account_id) <= MAX_ACCOUNT_ID_LEN:
        return False
    return bool(_ACCOUNT_ID_RE.match(account_id))


def is_implicit(account_id: str) -> bool:
    """Implicit accounts are derived from a public key and have no parent."""
    return bool(
        _NEAR_IMPLICIT_RE.match(account_id) or _ETH_IMPLICIT_RE.match(account_id)
    )


def is_subaccount_of(account_id: str, parent_id: str) -> bool:
    """True if `account_id` is a direct or indirect subaccount of `parent_id`.

    >>> is_subaccount_of("bob.alice.testnet", "alice.testnet")
    True
    >>> is_subaccount_of("alice2.testnet", "alice.testnet")
    False
    """
    return account_id.endswith(f".{parent_id}")


def validate_account_id(account_id: str, network: Network | None = None) -> str:
    """Validate an account id entered by the operator.

    Args:
        account_id: Raw input, surrounding whitespace is ignored
        network: When given, named accounts must live under the network's
            top-level account (``.near`` on mainnet, ``.testnet`` on testnet)

    Returns:
        The normalized account id

    Raises:
        InvalidAccountIdError: If the id is malformed or on the wrong network
    """
    account_id = account_id.strip()
    if not is_valid_account_id(account_id):
        raise InvalidAccountIdError(f"Not valid account: {account_id!r}")

    if network is not None and not is_implicit(account_id):
        suffix = ACCOUNT_SUFFIXES[network]
        if not is_subaccount_of(account_id, suffix):
            raise InvalidAccountIdError(
                f"Account {account_id!r} does not belong to {network} "
                f"(expected a '.{suffix}' account)"
            )

    return account_id
