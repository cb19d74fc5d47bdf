"""Unit tests for account id validation."""

import pytest

from subreaper.account import (
    is_implicit,
    is_subaccount_of,
    is_valid_account_id,
    validate_account_id,
)
from subreaper.types import InvalidAccountIdError


class TestAccountIdSyntax:
    @pytest.mark.parametrize(
        "account_id",
        ["alice.testnet", "bob.alice.near", "a-b_c.testnet", "ok", "0x" + "a" * 40],
    )
    def test_valid(self, account_id):
        assert is_valid_account_id(account_id)

    @pytest.mark.parametrize(
        "account_id",
        ["a", "Alice.testnet", "alice..testnet", ".alice", "alice.", "a--b", "x" * 65, ""],
    )
    def test_invalid(self, account_id):
        assert not is_valid_account_id(account_id)

    def test_implicit(self):
        assert is_implicit("ab" * 32)
        assert is_implicit("0x" + "12" * 20)
        assert not is_implicit("alice.testnet")


class TestSubaccountRelation:
    def test_direct_and_indirect(self):
        assert is_subaccount_of("bob.alice.testnet", "alice.testnet")
        assert is_subaccount_of("x.bob.alice.testnet", "alice.testnet")

    def test_not_subaccount(self):
        assert not is_subaccount_of("alice2.testnet", "alice.testnet")
        assert not is_subaccount_of("alice.testnet", "alice.testnet")


class TestValidateAccountId:
    def test_strips_whitespace(self):
        assert validate_account_id("  alice.testnet ") == "alice.testnet"

    def test_network_suffix_enforced(self):
        assert validate_account_id("alice.testnet", "testnet") == "alice.testnet"
        assert validate_account_id("alice.near", "mainnet") == "alice.near"

        with pytest.raises(InvalidAccountIdError, match="does not belong to mainnet"):
            validate_account_id("alice.testnet", "mainnet")

    def test_implicit_skips_network_check(self):
        implicit = "cd" * 32
        assert validate_account_id(implicit, "testnet") == implicit

    def test_malformed(self):
        with pytest.raises(InvalidAccountIdError, match="Not valid account"):
            validate_account_id("Not An Account", "testnet")
