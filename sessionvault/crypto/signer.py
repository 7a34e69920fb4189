"""
secp256k1 signing for checkpoint deltas and indexes.

Signatures are EIP-191 personal messages: 65 bytes (r || s || v), hex encoded
with a 0x prefix. A signer is identified by its lowercase Ethereum address,
which is recovered from the signature during verification.

Key management:
- Dev mode: ~/.sessionvault/keys/host_secp256k1
- Prod mode: mounted secret (SESSIONVAULT_HOST_KEY_PATH)
"""

import hashlib
import os
from pathlib import Path
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from eth_account import Account
from eth_account.messages import encode_defunct

SIGNATURE_LENGTH = 65


def _scalar_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.private_numbers().private_value.to_bytes(32, "big")


def signature_to_hex(signature: bytes) -> str:
    """Render a raw 65-byte signature as 0x-prefixed hex."""
    if len(signature) != SIGNATURE_LENGTH:
        raise ValueError(f"signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    return "0x" + signature.hex()


def signature_from_hex(signature_hex: str) -> bytes:
    """
    Parse a 0x-prefixed hex signature.

    Raises:
        ValueError: If the value is not 65 bytes of hex
    """
    if not isinstance(signature_hex, str):
        raise ValueError("signature must be a hex string")
    raw = bytes.fromhex(signature_hex[2:] if signature_hex.startswith("0x") else signature_hex)
    if len(raw) != SIGNATURE_LENGTH:
        raise ValueError(f"signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}")
    return raw


def _bytes_message(data: bytes):
    # Arbitrary-length payloads are signed through their SHA-256 digest
    return encode_defunct(primitive=hashlib.sha256(data).digest())


class HostSigner:
    """
    Host's long-term secp256k1 signing key.

    Provides:
    - Key generation
    - PEM load/save
    - EIP-191 signing of text and of byte payloads
    - Address derivation
    """

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        if not isinstance(private_key.curve, ec.SECP256K1):
            raise ValueError("Host key must be on secp256k1")
        self.private_key = private_key
        self._key_bytes = _scalar_bytes(private_key)
        self.address = Account.from_key(self._key_bytes).address.lower()

    @classmethod
    def generate(cls) -> "HostSigner":
        """Generate new secp256k1 keypair."""
        return cls(ec.generate_private_key(ec.SECP256K1()))

    @classmethod
    def from_hex(cls, private_key_hex: str) -> "HostSigner":
        """Build a signer from a 32-byte hex private key (0x optional)."""
        value = int(private_key_hex[2:] if private_key_hex.startswith("0x") else private_key_hex, 16)
        return cls(ec.derive_private_key(value, ec.SECP256K1()))

    @classmethod
    def load_from_file(cls, path: str) -> "HostSigner":
        """
        Load private key from PEM file.

        Raises:
            FileNotFoundError: If key file doesn't exist
            ValueError: If key is not a secp256k1 private key
        """
        with open(path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=None)

        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise ValueError("Key file is not an EC private key")

        return cls(private_key)

    def save_to_file(self, path: str) -> None:
        """Save private key to PEM file (mode 0600)."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

        private_pem = self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        with open(path, "wb") as f:
            f.write(private_pem)
        os.chmod(path, 0o600)

    def sign_text(self, text: str) -> str:
        """Sign a UTF-8 text message, returning a 0x-prefixed 65-byte signature."""
        signed = Account.sign_message(encode_defunct(text=text), private_key=self._key_bytes)
        return signature_to_hex(bytes(signed.signature))

    def sign_bytes(self, data: bytes) -> str:
        """Sign an arbitrary byte payload (e.g. a ciphertext)."""
        signed = Account.sign_message(_bytes_message(data), private_key=self._key_bytes)
        return signature_to_hex(bytes(signed.signature))


def recover_text_signer(text: str, signature_hex: str) -> str:
    """Recover the lowercase address that signed text."""
    raw = signature_from_hex(signature_hex)
    return Account.recover_message(encode_defunct(text=text), signature=raw).lower()


def recover_bytes_signer(data: bytes, signature_hex: str) -> str:
    """Recover the lowercase address that signed a byte payload."""
    raw = signature_from_hex(signature_hex)
    return Account.recover_message(_bytes_message(data), signature=raw).lower()


def verify_text_signature(text: str, signature_hex: str, address: str) -> bool:
    """
    Verify a text signature against an address.

    Returns:
        True if signature is valid and recovers to address, False otherwise
    """
    try:
        return recover_text_signer(text, signature_hex) == address.lower()
    except Exception:
        return False


def verify_bytes_signature(data: bytes, signature_hex: str, address: str) -> bool:
    """Verify a byte-payload signature against an address."""
    try:
        return recover_bytes_signer(data, signature_hex) == address.lower()
    except Exception:
        return False


def get_default_key_path() -> Path:
    """Default host key path (~/.sessionvault/keys/host_secp256k1.pem)."""
    return Path.home() / ".sessionvault" / "keys" / "host_secp256k1.pem"


def ensure_host_key(key_path: Optional[str] = None) -> HostSigner:
    """
    Load the host key, generating it first if missing.

    Args:
        key_path: Optional custom key path (default: get_default_key_path())
    """
    if key_path is None:
        key_path = str(get_default_key_path())

    if not os.path.exists(key_path):
        HostSigner.generate().save_to_file(key_path)

    return HostSigner.load_from_file(key_path)
