"""
Ephemeral-static encryption of checkpoint deltas.

Algorithm (version 1):
1. Generate a one-time secp256k1 keypair per checkpoint
2. ECDH(one-time private, recipient public) -> shared x-coordinate
3. SHA-256(x) -> shared secret
4. HKDF-SHA256(shared secret, salt=None, info=HKDF_INFO_V1) -> 32-byte key
5. XChaCha20-Poly1305 with a fresh 24-byte nonce

The one-time private key lives only inside seal() and is never persisted,
which gives forward secrecy per checkpoint.
"""

import hashlib
import os
from dataclasses import dataclass
from typing import Union

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError

from ..core.errors import EncryptionError, VerificationError

ENVELOPE_VERSION = 1
HKDF_INFO_V1 = b"checkpoint-delta-encryption-v1"
KEY_LENGTH = 32
NONCE_LENGTH = 24
CURVE = ec.SECP256K1()


def _strip_hex(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def public_key_to_hex(public_key: ec.EllipticCurvePublicKey) -> str:
    """Compressed (33-byte) SEC1 encoding, 0x-prefixed."""
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )
    return "0x" + raw.hex()


def load_public_key(value: Union[str, bytes]) -> ec.EllipticCurvePublicKey:
    """
    Parse a compressed or uncompressed secp256k1 public key.

    Raises:
        EncryptionError: If the key is malformed or not on the curve
    """
    try:
        raw = _strip_hex(value) if isinstance(value, str) else bytes(value)
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, raw)
    except (ValueError, TypeError) as e:
        raise EncryptionError(f"Invalid secp256k1 public key: {e}") from e


def load_private_key(value: str) -> ec.EllipticCurvePrivateKey:
    """
    Parse a 32-byte hex private key (0x optional).

    Raises:
        EncryptionError: If the scalar is malformed or out of range
    """
    try:
        scalar = int.from_bytes(_strip_hex(value), "big")
        return ec.derive_private_key(scalar, CURVE)
    except (ValueError, TypeError) as e:
        raise EncryptionError(f"Invalid secp256k1 private key: {e}") from e


class RecoveryKeyPair:
    """
    Client's stable recovery keypair.

    The public half is handed to the host at session start; the private half
    never leaves the client and is used to decrypt deltas during recovery.
    """

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        self.private_key = private_key
        self.public_key = private_key.public_key()

    @classmethod
    def generate(cls) -> "RecoveryKeyPair":
        return cls(ec.generate_private_key(CURVE))

    @classmethod
    def from_private_key_hex(cls, value: str) -> "RecoveryKeyPair":
        return cls(load_private_key(value))

    @property
    def private_key_hex(self) -> str:
        return "0x" + self.private_key.private_numbers().private_value.to_bytes(32, "big").hex()

    @property
    def public_key_hex(self) -> str:
        return public_key_to_hex(self.public_key)


def derive_delta_key(
    private_key: ec.EllipticCurvePrivateKey,
    peer_public_key: ec.EllipticCurvePublicKey,
) -> bytes:
    """
    Derive the 32-byte symmetric key shared by (private_key, peer_public_key).

    Both sides obtain the same key: the host from (one-time private, recipient
    public), the client from (recipient private, one-time public).
    """
    shared_x = private_key.exchange(ec.ECDH(), peer_public_key)
    shared_secret = hashlib.sha256(shared_x).digest()
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=HKDF_INFO_V1,
    )
    return hkdf.derive(shared_secret)


@dataclass(frozen=True)
class SealedPayload:
    """Output of seal(): everything the recipient needs except its private key."""
    recipient_public_key: str
    ephemeral_public_key: str
    nonce: bytes
    ciphertext: bytes


def seal(plaintext: bytes, recipient_public_key: str) -> SealedPayload:
    """
    Encrypt plaintext to a recipient public key with a fresh one-time key.

    Raises:
        EncryptionError: If the recipient key is malformed or encryption fails
    """
    recipient = load_public_key(recipient_public_key)
    ephemeral = ec.generate_private_key(CURVE)
    key = derive_delta_key(ephemeral, recipient)
    nonce = os.urandom(NONCE_LENGTH)

    try:
        ciphertext = crypto_aead_xchacha20poly1305_ietf_encrypt(plaintext, None, nonce, key)
    except (CryptoError, TypeError, ValueError) as e:
        raise EncryptionError(f"XChaCha20-Poly1305 encryption failed: {e}") from e

    return SealedPayload(
        recipient_public_key=public_key_to_hex(recipient),
        ephemeral_public_key=public_key_to_hex(ephemeral.public_key()),
        nonce=nonce,
        ciphertext=ciphertext,
    )


def open_sealed(
    recipient_private_key: ec.EllipticCurvePrivateKey,
    ephemeral_public_key: str,
    nonce: bytes,
    ciphertext: bytes,
) -> bytes:
    """
    Decrypt a sealed payload with the recipient's private key.

    Raises:
        VerificationError: If the ephemeral key or nonce is malformed, or the
            ciphertext fails authentication
    """
    if len(nonce) != NONCE_LENGTH:
        raise VerificationError(f"Nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")
    try:
        ephemeral = load_public_key(ephemeral_public_key)
    except EncryptionError as e:
        raise VerificationError(str(e)) from e

    key = derive_delta_key(recipient_private_key, ephemeral)
    try:
        return crypto_aead_xchacha20poly1305_ietf_decrypt(ciphertext, None, nonce, key)
    except CryptoError as e:
        raise VerificationError("Ciphertext failed authentication") from e
