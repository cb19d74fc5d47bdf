"""Candidate selection: which keystore entries may be offered for deletion."""

from __future__ import annotations

from typing import Iterable, NamedTuple

from .account import is_subaccount_of

WILDCARD = "*"


class Candidate(NamedTuple):
    account_id: str
    included: bool


def matches_master(account_id: str, master: str | None) -> bool:
    """True if the account passes the master filter."""
    if master is None or master == WILDCARD:
        return True
    return account_id == master or is_subaccount_of(account_id, master)


def select_candidates(
    account_ids: Iterable[str],
    beneficiary_id: str,
    master: str | None = None,
) -> list[Candidate]:
    """Decide which accounts are eligible for deletion.

    The beneficiary is never emitted. With a specific master, accounts outside
    its tree are still emitted once with ``included=False`` so the caller can
    report them as skipped.

    Args:
        account_ids: Identifiers in keystore enumeration order
        beneficiary_id: Account receiving the remaining balances
        master: Parent account to narrow to, ``"*"`` or None for all accounts

    Returns:
        Candidates in input order
    """
    return [
        Candidate(account_id, matches_master(account_id, master))
        for account_id in account_ids
        if account_id != beneficiary_id
    ]
