"""Unit tests for candidate selection."""

from subreaper.selector import Candidate, matches_master, select_candidates


class TestBeneficiaryExclusion:
    """The beneficiary is never offered for deletion."""

    def test_beneficiary_excluded_with_wildcard(self):
        result = select_candidates(
            ["alice.testnet", "bob.alice.testnet"], "alice.testnet", "*"
        )
        assert [c.account_id for c in result] == ["bob.alice.testnet"]

    def test_beneficiary_excluded_with_master(self):
        result = select_candidates(
            ["alice.testnet", "bob.alice.testnet"], "alice.testnet", "alice.testnet"
        )
        assert "alice.testnet" not in [c.account_id for c in result]

    def test_beneficiary_is_sole_candidate(self):
        assert select_candidates(["alice.testnet"], "alice.testnet", None) == []
        assert select_candidates(["alice.testnet"], "alice.testnet", "*") == []
        assert (
            select_candidates(["alice.testnet"], "alice.testnet", "alice.testnet") == []
        )

    def test_empty_keystore(self):
        assert select_candidates([], "alice.testnet", None) == []


class TestWildcard:
    def test_every_other_account_included_once(self):
        ids = ["a.testnet", "b.testnet", "c.b.testnet", "beneficiary.testnet"]
        result = select_candidates(ids, "beneficiary.testnet", "*")

        assert result == [
            Candidate("a.testnet", True),
            Candidate("b.testnet", True),
            Candidate("c.b.testnet", True),
        ]

    def test_absent_master_behaves_as_wildcard(self):
        ids = ["a.testnet", "b.testnet"]
        assert select_candidates(ids, "x.testnet", None) == select_candidates(
            ids, "x.testnet", "*"
        )


class TestMasterFilter:
    def test_subaccounts_included_others_excluded(self):
        ids = ["bob.alice.testnet", "alice2.testnet", "deep.bob.alice.testnet"]
        result = select_candidates(ids, "zed.testnet", "alice.testnet")

        assert result == [
            Candidate("bob.alice.testnet", True),
            Candidate("alice2.testnet", False),
            Candidate("deep.bob.alice.testnet", True),
        ]

    def test_master_itself_included(self):
        result = select_candidates(["alice.testnet"], "zed.testnet", "alice.testnet")
        assert result == [Candidate("alice.testnet", True)]

    def test_suffix_without_dot_does_not_match(self):
        assert not matches_master("malice.testnet", "alice.testnet")
        assert matches_master("m.alice.testnet", "alice.testnet")

    def test_order_follows_enumeration(self):
        ids = ["z.alice.testnet", "carol.testnet", "a.alice.testnet"]
        result = select_candidates(ids, "alice.testnet", "alice.testnet")
        assert [c.account_id for c in result] == ids


def test_end_to_end_candidate_sequence():
    """Store {alice, bob.alice, carol}, beneficiary and master alice."""
    ids = ["alice.testnet", "bob.alice.testnet", "carol.testnet"]
    result = select_candidates(ids, "alice.testnet", "alice.testnet")

    assert result == [
        Candidate("bob.alice.testnet", True),
        Candidate("carol.testnet", False),
    ]
