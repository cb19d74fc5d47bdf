"""Subreaper - bulk deletion of NEAR subaccounts from the local keystore.

Deletes each approved account on-chain, sends its balance to a beneficiary
and removes the local key file once the chain confirms the deletion.
"""

__version__ = "0.1.0"

from .remover import AccountRemover, CleanupRun, PollPolicy
from .rpc import NearRpc
from .selector import select_candidates

__all__ = [
    # Removal protocol
    "AccountRemover",
    "CleanupRun",
    "PollPolicy",
    # Network client
    "NearRpc",
    # Candidate selection
    "select_candidates",
]
