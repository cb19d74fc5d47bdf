"""Local credential store (near-cli ``~/.near-credentials`` layout)."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .crypto import PublicKey, Signer, signer_from_secret_key
from .types import CredentialFile, KeystoreError, Network

CREDENTIALS_DIR_NAME = ".near-credentials"
CREDENTIALS_DIR_ENV_VAR = "NEAR_CREDENTIALS_DIR"
KEY_FILE_SUFFIX = ".json"


@dataclass
class Credential:
    """Signing material for one account, loaded from one key file."""

    account_id: str
    public_key: PublicKey
    signer: Signer
    path: Path


def default_credentials_dir(network: Network) -> Path:
    """Return the keystore directory for a network.

    ``NEAR_CREDENTIALS_DIR`` replaces the ``~/.near-credentials`` root.
    """
    root = os.getenv(CREDENTIALS_DIR_ENV_VAR)
    base = Path(root).expanduser() if root else Path.home() / CREDENTIALS_DIR_NAME
    return base / network


class KeyStore:
    """Key files of one network, one JSON file per account."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def entries(self) -> list[tuple[str, Path]]:
        """List ``(account_id, path)`` pairs, sorted by file name.

        Raises:
            KeystoreError: If the directory cannot be read
        """
        try:
            paths = sorted(
                p
                for p in self.directory.iterdir()
                if p.is_file() and p.name.endswith(KEY_FILE_SUFFIX)
            )
        except OSError as e:
            raise KeystoreError(f"Can't read working dir {self.directory}: {e}") from e

        return [(p.name[: -len(KEY_FILE_SUFFIX)], p) for p in paths]

    def account_ids(self) -> list[str]:
        return [account_id for account_id, _ in self.entries()]

    def load(self, path: Path) -> Credential:
        """Parse a key file into a Credential.

        The account id stored inside the file wins over the file name; the
        file name is only used when the field is missing.
        """
        try:
            data: CredentialFile = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise KeystoreError(f"Can't read key file {path}: {e}") from e

        secret = data.get("private_key") or data.get("secret_key")
        if not secret:
            raise KeystoreError(f"Key file {path} has no private key")

        try:
            signer = signer_from_secret_key(secret)
            if "public_key" in data:
                public_key = PublicKey.from_string(data["public_key"])
            else:
                public_key = signer.public_key
        except ValueError as e:
            raise KeystoreError(f"Invalid key in {path}: {e}") from e

        if public_key != signer.public_key:
            raise KeystoreError(f"Public key in {path} does not match its private key")

        account_id = data.get("account_id") or Path(path).name[: -len(KEY_FILE_SUFFIX)]
        return Credential(
            account_id=account_id, public_key=public_key, signer=signer, path=Path(path)
        )

    def delete(self, path: Path) -> None:
        """Remove one key file.

        Raises:
            KeystoreError: If the file could not be removed
        """
        try:
            Path(path).unlink()
        except OSError as e:
            raise KeystoreError(f"Can't remove private key file {path}: {e}") from e
