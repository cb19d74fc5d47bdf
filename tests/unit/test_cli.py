"""CLI tests with prompts and the RPC client patched out."""

from unittest.mock import AsyncMock, Mock, patch

import base58
from typer.testing import CliRunner

from subreaper import __version__
from subreaper.cli import app
from subreaper.types import BroadcastError

runner = CliRunner()


def fake_rpc_factory(rpc: Mock):
    """Stand-in for ``NearRpc`` used as an async context manager."""

    class FakeNearRpc:
        def __init__(self, url: str) -> None:
            rpc.url = url

        async def __aenter__(self):
            return rpc

        async def __aexit__(self, exc_type, exc, tb) -> None:
            return None

    return FakeNearRpc


def make_rpc() -> Mock:
    rpc = Mock()
    rpc.view_access_key = AsyncMock(
        return_value={
            "nonce": 1,
            "permission": "FullAccess",
            "block_height": 1,
            "block_hash": base58.b58encode(bytes(32)).decode(),
        }
    )
    rpc.broadcast_tx_async = AsyncMock(return_value="HASH")
    rpc.tx_status = AsyncMock(return_value={"status": {"SuccessValue": ""}})
    return rpc


class TestCandidatesCommand:
    def test_lists_included_and_skipped(self, keystore_dir, key_file_factory):
        for account_id in ["alice.testnet", "bob.alice.testnet", "carol.testnet"]:
            key_file_factory(account_id)

        result = runner.invoke(
            app,
            [
                "candidates",
                "alice.testnet",
                "--master",
                "alice.testnet",
                "--credentials-dir",
                str(keystore_dir),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "bob.alice.testnet" in result.output
        assert "included" in result.output
        assert "carol.testnet" in result.output
        assert "skipped" in result.output

    def test_missing_keystore(self, tmp_path):
        result = runner.invoke(
            app,
            ["candidates", "alice.testnet", "--credentials-dir", str(tmp_path / "nope")],
        )
        assert result.exit_code == 1
        assert "Can't read working dir" in result.output

    def test_invalid_beneficiary(self, keystore_dir):
        result = runner.invoke(
            app, ["candidates", "alice.near", "--credentials-dir", str(keystore_dir)]
        )
        assert result.exit_code == 1
        assert "Invalid beneficiary" in result.output

    def test_wildcard_beneficiary_rejected(self, keystore_dir, key_file_factory):
        key_file_factory("bob.alice.testnet")
        result = runner.invoke(
            app, ["candidates", "*", "--credentials-dir", str(keystore_dir)]
        )
        assert result.exit_code == 1
        assert "Invalid beneficiary" in result.output
        assert "bob.alice.testnet" not in result.output


class TestSweepCommand:
    def _args(self, keystore_dir, *extra: str) -> list[str]:
        return [
            "sweep",
            "--network",
            "testnet",
            "--beneficiary",
            "alice.testnet",
            "--master",
            "alice.testnet",
            "--credentials-dir",
            str(keystore_dir),
            *extra,
        ]

    def test_removes_approved_subaccount(self, keystore_dir, key_file_factory):
        key_file_factory("alice.testnet")
        bob = key_file_factory("bob.alice.testnet")
        rpc = make_rpc()

        with patch("subreaper.cli.NearRpc", fake_rpc_factory(rpc)), patch(
            "subreaper.cli.approve_action", return_value=True
        ):
            result = runner.invoke(app, self._args(keystore_dir))

        assert result.exit_code == 0, result.output
        assert not bob.exists()
        assert (keystore_dir / "alice.testnet.json").exists()
        assert "Cleanup Summary" in result.output
        assert rpc.url == "https://rpc.testnet.near.org"

    def test_rpc_url_option(self, keystore_dir, key_file_factory):
        key_file_factory("bob.alice.testnet")
        rpc = make_rpc()

        with patch("subreaper.cli.NearRpc", fake_rpc_factory(rpc)), patch(
            "subreaper.cli.approve_action", return_value=False
        ):
            result = runner.invoke(
                app, self._args(keystore_dir, "--rpc-url", "http://localhost:3030")
            )

        assert result.exit_code == 0, result.output
        assert rpc.url == "http://localhost:3030"
        rpc.view_access_key.assert_not_called()

    def test_broadcast_error_exits_nonzero(self, keystore_dir, key_file_factory):
        bob = key_file_factory("bob.alice.testnet")
        rpc = make_rpc()
        rpc.broadcast_tx_async.side_effect = BroadcastError("Can't send transaction")

        with patch("subreaper.cli.NearRpc", fake_rpc_factory(rpc)), patch(
            "subreaper.cli.approve_action", return_value=True
        ):
            result = runner.invoke(app, self._args(keystore_dir))

        assert result.exit_code == 1
        assert bob.exists()
        assert "Can't send transaction" in result.output

    def test_operator_abort_exits_zero(self, keystore_dir, key_file_factory):
        key_file_factory("a.alice.testnet")
        key_file_factory("b.alice.testnet")
        rpc = make_rpc()
        rpc.tx_status.return_value = {"status": {"Failure": {"ActionError": {}}}}

        def approve(prompt: str, default: bool = False) -> bool:
            return prompt.startswith("Are you sure")

        with patch("subreaper.cli.NearRpc", fake_rpc_factory(rpc)), patch(
            "subreaper.cli.approve_action", side_effect=approve
        ):
            result = runner.invoke(app, self._args(keystore_dir))

        assert result.exit_code == 0, result.output
        assert rpc.broadcast_tx_async.await_count == 1
        assert "Run stopped by operator" in result.output

    def test_unknown_network(self, keystore_dir):
        result = runner.invoke(app, ["sweep", "--network", "devnet"])
        assert result.exit_code == 1
        assert "Unknown network" in result.output


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
