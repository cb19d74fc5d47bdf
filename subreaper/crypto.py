"""NEAR key handling and Borsh transaction encoding.

Supports the two key types near-cli writes to the keystore:
ed25519 (``cryptography``) and secp256k1 (``coincurve``).
"""

from __future__ import annotations

import base64
import hashlib
import struct
from dataclasses import dataclass, field

import base58
from coincurve import PrivateKey as Secp256k1PrivateKey
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

KEY_TYPE_ED25519 = 0
KEY_TYPE_SECP256K1 = 1

KEY_TYPE_NAMES: dict[str, int] = {
    "ed25519": KEY_TYPE_ED25519,
    "secp256k1": KEY_TYPE_SECP256K1,
}

# Index of DeleteAccount in the NEAR `Action` enum
ACTION_DELETE_ACCOUNT = 7


def _split_key_string(value: str) -> tuple[int, bytes]:
    """Split ``"<type>:<base58>"`` into key type and raw bytes.

    Keys without a prefix are treated as ed25519, as near-cli does.
    """
    if ":" in value:
        type_name, encoded = value.split(":", 1)
    else:
        type_name, encoded = "ed25519", value

    key_type = KEY_TYPE_NAMES.get(type_name.lower())
    if key_type is None:
        raise ValueError(f"Unknown key type: {type_name}")

    try:
        return key_type, base58.b58decode(encoded)
    except ValueError as e:
        raise ValueError(f"Invalid base58 key data: {e}") from e


# ──────────────────────────────────────────────────────────────────────────────
# Borsh primitives
# ──────────────────────────────────────────────────────────────────────────────


def _u8(value: int) -> bytes:
    return struct.pack("<B", value)


def _u32(value: int) -> bytes:
    return struct.pack("<I", value)


def _u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def _string(value: str) -> bytes:
    encoded = value.encode("utf-8")
    return _u32(len(encoded)) + encoded


# ──────────────────────────────────────────────────────────────────────────────
# Keys
# ──────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PublicKey:
    """A typed NEAR public key."""

    key_type: int
    data: bytes

    @classmethod
    def from_string(cls, value: str) -> PublicKey:
        key_type, data = _split_key_string(value)
        expected = 32 if key_type == KEY_TYPE_ED25519 else 64
        if len(data) != expected:
            raise ValueError(
                f"Public key must be {expected} bytes, got {len(data)}"
            )
        return cls(key_type, data)

    def to_string(self) -> str:
        type_name = "ed25519" if self.key_type == KEY_TYPE_ED25519 else "secp256k1"
        return f"{type_name}:{base58.b58encode(self.data).decode()}"

    def serialize(self) -> bytes:
        return _u8(self.key_type) + self.data

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class Signature:
    key_type: int
    data: bytes

    def serialize(self) -> bytes:
        return _u8(self.key_type) + self.data


class Signer:
    """Base class for in-memory signers."""

    public_key: PublicKey

    def sign(self, message: bytes) -> Signature:
        raise NotImplementedError


class Ed25519Signer(Signer):
    def __init__(self, secret: bytes) -> None:
        # near-cli stores seed || public key (64 bytes); a bare 32-byte seed is also accepted
        if len(secret) not in (32, 64):
            raise ValueError(f"ed25519 secret key must be 32 or 64 bytes, got {len(secret)}")
        self._key = Ed25519PrivateKey.from_private_bytes(secret[:32])
        self.public_key = PublicKey(
            KEY_TYPE_ED25519, self._key.public_key().public_bytes_raw()
        )

    def sign(self, message: bytes) -> Signature:
        return Signature(KEY_TYPE_ED25519, self._key.sign(message))


class Secp256k1Signer(Signer):
    def __init__(self, secret: bytes) -> None:
        if len(secret) != 32:
            raise ValueError(f"secp256k1 secret key must be 32 bytes, got {len(secret)}")
        self._key = Secp256k1PrivateKey(secret)
        # NEAR drops the 0x04 prefix of the uncompressed point
        self.public_key = PublicKey(
            KEY_TYPE_SECP256K1, self._key.public_key.format(compressed=False)[1:]
        )

    def sign(self, message: bytes) -> Signature:
        """Sign a 32-byte digest, producing r || s || recovery id."""
        return Signature(
            KEY_TYPE_SECP256K1, self._key.sign_recoverable(message, hasher=None)
        )


def signer_from_secret_key(value: str) -> Signer:
    """Build a signer from a keystore ``private_key`` string.

    Args:
        value: ``"ed25519:<base58>"`` or ``"secp256k1:<base58>"``

    Returns:
        Signer matching the key type

    Raises:
        ValueError: If the key string is malformed
    """
    key_type, secret = _split_key_string(value)
    if key_type == KEY_TYPE_ED25519:
        return Ed25519Signer(secret)
    return Secp256k1Signer(secret)


# ──────────────────────────────────────────────────────────────────────────────
# Transactions
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class DeleteAccountAction:
    beneficiary_id: str

    def serialize(self) -> bytes:
        return _u8(ACTION_DELETE_ACCOUNT) + _string(self.beneficiary_id)


@dataclass
class Transaction:
    """Unsigned NEAR transaction (Borsh layout of ``Transaction::V0``)."""

    signer_id: str
    public_key: PublicKey
    nonce: int
    receiver_id: str
    block_hash: bytes
    actions: list[DeleteAccountAction] = field(default_factory=list)

    def serialize(self) -> bytes:
        if len(self.block_hash) != 32:
            raise ValueError("Block hash must be 32 bytes")
        return b"".join(
            [
                _string(self.signer_id),
                self.public_key.serialize(),
                _u64(self.nonce),
                _string(self.receiver_id),
                self.block_hash,
                _u32(len(self.actions)),
                *(action.serialize() for action in self.actions),
            ]
        )

    def hash(self) -> bytes:
        return hashlib.sha256(self.serialize()).digest()

    def sign(self, signer: Signer) -> SignedTransaction:
        return SignedTransaction(self, signer.sign(self.hash()))


@dataclass
class SignedTransaction:
    transaction: Transaction
    signature: Signature

    def serialize(self) -> bytes:
        return self.transaction.serialize() + self.signature.serialize()

    def to_base64(self) -> str:
        """Payload accepted by ``broadcast_tx_async``."""
        return base64.b64encode(self.serialize()).decode()

    @property
    def hash(self) -> str:
        """Transaction hash as reported by the node (base58)."""
        return base58.b58encode(self.transaction.hash()).decode()


def build_delete_account_tx(
    signer_id: str,
    public_key: PublicKey,
    nonce: int,
    block_hash: str,
    beneficiary_id: str,
) -> Transaction:
    """Create a self-addressed DeleteAccount transaction.

    Args:
        signer_id: Account being deleted (also the receiver)
        public_key: Access key the transaction is signed with
        nonce: Next nonce for that access key
        block_hash: Recent block hash, base58 encoded
        beneficiary_id: Account that receives the remaining balance
    """
    return Transaction(
        signer_id=signer_id,
        public_key=public_key,
        nonce=nonce,
        receiver_id=signer_id,
        block_hash=base58.b58decode(block_hash),
        actions=[DeleteAccountAction(beneficiary_id=beneficiary_id)],
    )
