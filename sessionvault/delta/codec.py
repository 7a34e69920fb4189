"""
Delta codec: canonical encoding, signing, and sealing of checkpoint deltas.

Signed byte forms:
- messages signature: EIP-191 over canonical_json_str([message, ...])
- ciphertext signature: EIP-191 over SHA-256(ciphertext)
"""

import json
from typing import Iterable, List, Sequence

from cryptography.hazmat.primitives.asymmetric import ec

from ..core.canonical import canonical_json_bytes, canonical_json_str
from ..core.errors import VerificationError
from ..crypto.envelope import ENVELOPE_VERSION, open_sealed, seal
from ..crypto.signer import HostSigner, verify_bytes_signature, verify_text_signature
from .model import CheckpointDelta, EncryptedCheckpointDelta, Message


def messages_payload(messages: Iterable[Message]) -> List[dict]:
    return [m.to_dict() for m in messages]


def encode_messages(messages: Sequence[Message]) -> bytes:
    """Canonical bytes of a message list."""
    return canonical_json_bytes(messages_payload(messages))


def decode_messages(data: bytes) -> List[Message]:
    """Inverse of encode_messages()."""
    raw = json.loads(data.decode("utf-8"))
    if not isinstance(raw, list):
        raise ValueError("Encoded messages must be a JSON array")
    return [Message.from_dict(m) for m in raw]


def sign_messages(signer: HostSigner, messages: Sequence[Message]) -> str:
    return signer.sign_text(canonical_json_str(messages_payload(messages)))


def verify_messages_signature(
    messages: Sequence[Message], signature: str, address: str
) -> bool:
    return verify_text_signature(canonical_json_str(messages_payload(messages)), signature, address)


def build_delta(
    signer: HostSigner,
    session_id: str,
    checkpoint_index: int,
    proof_hash: str,
    start_token: int,
    end_token: int,
    messages: Sequence[Message],
) -> CheckpointDelta:
    """Assemble a plaintext delta signed over its messages."""
    return CheckpointDelta(
        session_id=session_id,
        checkpoint_index=checkpoint_index,
        proof_hash=proof_hash,
        start_token=start_token,
        end_token=end_token,
        messages=tuple(messages),
        host_signature=sign_messages(signer, messages),
    )


def encode_delta(delta: CheckpointDelta) -> bytes:
    return canonical_json_bytes(delta.to_dict())


def decode_delta(data: bytes) -> CheckpointDelta:
    return CheckpointDelta.from_dict(json.loads(data.decode("utf-8")))


def encrypt_delta(
    delta: CheckpointDelta, signer: HostSigner, recipient_public_key: str
) -> EncryptedCheckpointDelta:
    """
    Seal a signed plaintext delta to the recipient and sign the ciphertext.

    Raises:
        EncryptionError: If the recipient key is malformed or sealing fails
    """
    sealed = seal(encode_delta(delta), recipient_public_key)
    return EncryptedCheckpointDelta(
        version=ENVELOPE_VERSION,
        user_recovery_pub_key=sealed.recipient_public_key,
        ephemeral_public_key=sealed.ephemeral_public_key,
        nonce=sealed.nonce.hex(),
        ciphertext=sealed.ciphertext.hex(),
        host_signature=signer.sign_bytes(sealed.ciphertext),
    )


def verify_ciphertext_signature(encrypted: EncryptedCheckpointDelta, address: str) -> bool:
    try:
        ciphertext = bytes.fromhex(encrypted.ciphertext)
    except ValueError:
        return False
    return verify_bytes_signature(ciphertext, encrypted.host_signature, address)


def decrypt_delta(
    encrypted: EncryptedCheckpointDelta, recipient_private_key: ec.EllipticCurvePrivateKey
) -> CheckpointDelta:
    """
    Open an encrypted delta.

    Raises:
        VerificationError: On unsupported version, malformed fields,
            authentication failure, or an undecodable plaintext
    """
    if encrypted.version != ENVELOPE_VERSION:
        raise VerificationError(f"Unsupported encrypted delta version: {encrypted.version}")
    try:
        nonce = bytes.fromhex(encrypted.nonce)
        ciphertext = bytes.fromhex(encrypted.ciphertext)
    except ValueError as e:
        raise VerificationError(f"Malformed encrypted delta: {e}") from e

    plaintext = open_sealed(recipient_private_key, encrypted.ephemeral_public_key, nonce, ciphertext)
    try:
        return decode_delta(plaintext)
    except (ValueError, UnicodeDecodeError) as e:
        raise VerificationError(f"Decrypted delta is malformed: {e}") from e
