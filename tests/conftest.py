"""Shared fixtures: throwaway keystores, a quiet console and a fake clock."""

import io
import json
from pathlib import Path

import base58
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from rich.console import Console


def make_ed25519_key_file(directory: Path, account_id: str) -> Path:
    """Write a near-cli style key file and return its path."""
    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes_raw()
    public = private_key.public_key().public_bytes_raw()

    path = directory / f"{account_id}.json"
    path.write_text(
        json.dumps(
            {
                "account_id": account_id,
                "public_key": f"ed25519:{base58.b58encode(public).decode()}",
                "private_key": f"ed25519:{base58.b58encode(seed + public).decode()}",
            }
        )
    )
    return path


class FakeClock:
    """Monotonic clock that only moves when the code under test sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def keystore_dir(tmp_path):
    directory = tmp_path / ".near-credentials" / "testnet"
    directory.mkdir(parents=True)
    return directory


@pytest.fixture
def key_file_factory(keystore_dir):
    def _make(account_id: str) -> Path:
        return make_ed25519_key_file(keystore_dir, account_id)

    return _make


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def clock():
    return FakeClock()
