"""
Primitive layer: secp256k1 signing, ECDH + HKDF key agreement, and
XChaCha20-Poly1305 authenticated encryption.
"""

from .signer import (
    HostSigner,
    SIGNATURE_LENGTH,
    signature_from_hex,
    signature_to_hex,
    recover_text_signer,
    recover_bytes_signer,
    verify_text_signature,
    verify_bytes_signature,
    ensure_host_key,
    get_default_key_path,
)
from .envelope import (
    ENVELOPE_VERSION,
    HKDF_INFO_V1,
    KEY_LENGTH,
    NONCE_LENGTH,
    RecoveryKeyPair,
    SealedPayload,
    derive_delta_key,
    load_private_key,
    load_public_key,
    public_key_to_hex,
    seal,
    open_sealed,
)

__all__ = [
    "HostSigner",
    "SIGNATURE_LENGTH",
    "signature_from_hex",
    "signature_to_hex",
    "recover_text_signer",
    "recover_bytes_signer",
    "verify_text_signature",
    "verify_bytes_signature",
    "ensure_host_key",
    "get_default_key_path",
    "ENVELOPE_VERSION",
    "HKDF_INFO_V1",
    "KEY_LENGTH",
    "NONCE_LENGTH",
    "RecoveryKeyPair",
    "SealedPayload",
    "derive_delta_key",
    "load_private_key",
    "load_public_key",
    "public_key_to_hex",
    "seal",
    "open_sealed",
]
