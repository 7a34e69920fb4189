"""
End-to-end recovery tests.

Scenarios:
1. Plaintext publish -> recover
2. Encrypted publish -> recover with the recovery key
3. Tampered ciphertext / message / index -> VerificationError
4. Ledger mismatch -> VerificationError
5. Unknown session -> empty result
6. Partial assistant message continued across checkpoints
7. Timeout -> RecoveryUnavailableError
"""

import time
from dataclasses import replace

import pytest

from sessionvault.core.canonical import canonical_json_bytes
from sessionvault.core.errors import (
    RecoveryUnavailableError,
    TransientStorageError,
    VerificationError,
)
from sessionvault.crypto.envelope import RecoveryKeyPair
from sessionvault.crypto.signer import HostSigner
from sessionvault.discovery.client import HttpDiscoveryClient, LocalDiscoveryClient
from sessionvault.discovery.service import DiscoveryService
from sessionvault.index.integrity import sign_index
from sessionvault.publish.publisher import CheckpointPublisher
from sessionvault.recovery.engine import RecoveredConversation, RecoveryEngine
from sessionvault.storage.file_store import FileContentStore
from sessionvault.tests.helpers import assistant, proof, user

CONVERSATION = [
    [user("Explain quantum computing", 1000), assistant("Quantum computers use qubits.", 1100)],
    [user("What is superposition?", 2000), assistant("A qubit can be 0 and 1 at once.", 2100)],
]


def _publish_all(publisher, ledger, session_id="s1", recipient=None, conversation=CONVERSATION):
    cids = []
    for i, messages in enumerate(conversation):
        cids.append(
            publisher.publish(
                session_id, i, proof(i), i * 100, (i + 1) * 100, messages, recipient_pubkey=recipient
            )
        )
        ledger.submit_proof(session_id, i, proof(i))
    return cids


def _overwrite_blob(store, cid, data):
    with open(store.blob_dir / f"{cid}.json", "wb") as f:
        f.write(canonical_json_bytes(data))


def test_plaintext_recovery(publisher, ledger, engine, signer):
    _publish_all(publisher, ledger)

    result = engine.recover("s1", expected_host_address=signer.address)
    assert [m.content for m in result.messages] == [
        "Explain quantum computing",
        "Quantum computers use qubits.",
        "What is superposition?",
        "A qubit can be 0 and 1 at once.",
    ]
    assert [m.role for m in result.messages] == ["user", "assistant", "user", "assistant"]
    assert result.token_count == 200
    assert [e.index for e in result.checkpoints] == [0, 1]


def test_encrypted_recovery(publisher, ledger, engine, recovery_keys):
    _publish_all(publisher, ledger, recipient=recovery_keys.public_key_hex)

    for key in (recovery_keys.private_key_hex, recovery_keys, recovery_keys.private_key):
        result = engine.recover("s1", user_private_key=key)
        assert result.messages[0].content == "Explain quantum computing"
        assert result.token_count == 200


def test_mixed_plaintext_and_encrypted(publisher, ledger, engine, recovery_keys):
    publisher.publish("s1", 0, proof(0), 0, 100, CONVERSATION[0])
    publisher.publish("s1", 1, proof(1), 100, 200, CONVERSATION[1], recipient_pubkey=recovery_keys.public_key_hex)
    ledger.submit_proof("s1", 0, proof(0))
    ledger.submit_proof("s1", 1, proof(1))

    result = engine.recover("s1", user_private_key=recovery_keys)
    assert len(result.messages) == 4


def test_encrypted_without_key_fails(publisher, ledger, engine, recovery_keys):
    _publish_all(publisher, ledger, recipient=recovery_keys.public_key_hex)
    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_encrypted_with_wrong_key_fails(publisher, ledger, engine, recovery_keys):
    _publish_all(publisher, ledger, recipient=recovery_keys.public_key_hex)
    with pytest.raises(VerificationError):
        engine.recover("s1", user_private_key=RecoveryKeyPair.generate())


def test_tampered_ciphertext_fails(publisher, ledger, engine, store, recovery_keys):
    cids = _publish_all(publisher, ledger, recipient=recovery_keys.public_key_hex)

    data = store.get(cids[1])
    last = data["ciphertext"][-1]
    data["ciphertext"] = data["ciphertext"][:-1] + ("0" if last != "0" else "1")
    _overwrite_blob(store, cids[1], data)

    with pytest.raises(VerificationError):
        engine.recover("s1", user_private_key=recovery_keys)


def test_tampered_plaintext_message_fails(publisher, ledger, engine, store):
    cids = _publish_all(publisher, ledger)

    data = store.get(cids[0])
    data["messages"][1]["content"] = "Quantum computers are magic."
    _overwrite_blob(store, cids[0], data)

    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_tampered_index_fails(publisher, ledger, engine, store, signer):
    _publish_all(publisher, ledger)

    path = publisher.index_store.path_for("s1")
    data = store.read_path(path)
    data["checkpoints"][0]["tokenRange"] = [0, 90]
    store.write_path(path, data)

    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_swapped_delta_fails(publisher, ledger, engine, store, signer):
    """An index re-signed by the host but pointing at another checkpoint's delta is rejected."""
    cids = _publish_all(publisher, ledger)

    index = publisher.index_store.load("s1")
    entries = list(index.checkpoints)
    entries[0] = replace(entries[0], delta_cid=cids[1])
    publisher.index_store.save(sign_index(replace(index, checkpoints=tuple(entries)), signer))

    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_invalid_delta_cid_fails_verification(publisher, ledger, engine, signer):
    """A host-signed entry whose deltaCid is not a content identifier is rejected, not fetched."""
    _publish_all(publisher, ledger)

    index = publisher.index_store.load("s1")
    entries = list(index.checkpoints)
    entries[1] = replace(entries[1], delta_cid="ipfs://nope")
    publisher.index_store.save(sign_index(replace(index, checkpoints=tuple(entries)), signer))

    with pytest.raises(VerificationError, match="invalid delta identifier"):
        engine.recover("s1")


def test_ledger_mismatch_fails(publisher, ledger, engine):
    publisher.publish("s1", 0, proof(0), 0, 100, CONVERSATION[0])
    ledger.submit_proof("s1", 0, proof(42))
    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_unsettled_checkpoint_fails(publisher, ledger, engine):
    publisher.publish("s1", 0, proof(0), 0, 100, CONVERSATION[0])
    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_ledger_comparison_ignores_case_and_prefix(publisher, ledger, engine):
    publisher.publish("s1", 0, proof(0), 0, 100, CONVERSATION[0])
    ledger.submit_proof("s1", 0, proof(0)[2:].upper())
    assert len(engine.recover("s1").messages) == 2


def test_unknown_session_is_empty(engine):
    result = engine.recover("never-published")
    assert result == RecoveredConversation()
    assert result.messages == []
    assert result.token_count == 0


def test_expected_host_mismatch_fails(publisher, ledger, engine):
    _publish_all(publisher, ledger)
    with pytest.raises(VerificationError):
        engine.recover("s1", expected_host_address=HostSigner.generate().address)


def test_expected_host_is_case_insensitive(publisher, ledger, engine, signer):
    _publish_all(publisher, ledger)
    result = engine.recover("s1", expected_host_address="0x" + signer.address[2:].upper())
    assert result.token_count == 200


def test_index_from_other_host_fails(store, ledger, clock):
    """A host cannot pass off an index signed by someone else."""
    honest = CheckpointPublisher(store, HostSigner.generate(), clock=clock, sleep=lambda s: None)
    honest.publish("s1", 0, proof(0), 0, 100, CONVERSATION[0])
    ledger.submit_proof("s1", 0, proof(0))

    data = store.read_path(honest.index_store.path_for("s1"))
    data["hostAddress"] = HostSigner.generate().address
    store.write_path(honest.index_store.path_for("s1"), data)

    engine = RecoveryEngine(LocalDiscoveryClient(DiscoveryService(honest.index_store)), store, ledger)
    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_missing_delta_raises_storage_error(publisher, ledger, engine, store):
    cids = _publish_all(publisher, ledger)
    store.delete(cids[1])
    with pytest.raises(TransientStorageError):
        engine.recover("s1")


def test_partial_message_recovered_whole(publisher, ledger, engine):
    conversation = [
        [user("Explain quantum computing"), assistant("Quantum computers use", partial=True)],
        [assistant(" qubits instead of bits.")],
    ]
    _publish_all(publisher, ledger, conversation=conversation)

    result = engine.recover("s1")
    assert [m.content for m in result.messages] == [
        "Explain quantum computing",
        "Quantum computers use qubits instead of bits.",
    ]
    assert not result.messages[1].partial


class SlowStore(FileContentStore):
    def get(self, cid):
        time.sleep(0.5)
        return super().get(cid)


def test_timeout_raises_unavailable(tmp_path, signer, ledger, clock):
    store = SlowStore(str(tmp_path / "slow"))
    publisher = CheckpointPublisher(store, signer, clock=clock, sleep=lambda s: None)
    _publish_all(publisher, ledger)

    engine = RecoveryEngine(LocalDiscoveryClient(DiscoveryService(publisher.index_store)), store, ledger)
    with pytest.raises(RecoveryUnavailableError):
        engine.recover("s1", timeout=0.05)


def test_many_checkpoints_recovered_in_order(publisher, ledger, store):
    conversation = [[user(f"q{i}", i), assistant(f"a{i}", i)] for i in range(12)]
    _publish_all(publisher, ledger, conversation=conversation)

    engine = RecoveryEngine(
        LocalDiscoveryClient(DiscoveryService(publisher.index_store)), store, ledger, max_workers=8
    )
    result = engine.recover("s1")
    assert [m.content for m in result.messages] == [c for i in range(12) for c in (f"q{i}", f"a{i}")]
    assert result.token_count == 1200


def test_invalid_max_workers(store, ledger, publisher):
    with pytest.raises(ValueError):
        RecoveryEngine(LocalDiscoveryClient(DiscoveryService(publisher.index_store)), store, ledger, max_workers=0)


def test_two_plus_one_messages_in_order(publisher, ledger, engine):
    publisher.publish(
        "s1", 0, proof(0), 0, 100,
        [user("Explain quantum computing"), assistant("It uses qubits.")],
    )
    publisher.publish("s1", 1, proof(1), 100, 160, [user("Thanks!")])
    ledger.submit_proof("s1", 0, proof(0))
    ledger.submit_proof("s1", 1, proof(1))

    result = engine.recover("s1")
    assert [m.content for m in result.messages] == ["Explain quantum computing", "It uses qubits.", "Thanks!"]
    assert result.token_count == 160


def test_altered_index_proof_hash_fails(publisher, ledger, engine, store):
    _publish_all(publisher, ledger)

    path = publisher.index_store.path_for("s1")
    data = store.read_path(path)
    data["checkpoints"][1]["proofHash"] = proof(9)
    store.write_path(path, data)

    with pytest.raises(VerificationError):
        engine.recover("s1")


def test_for_endpoint_uses_http_discovery(store, ledger):
    engine = RecoveryEngine.for_endpoint("http://host:8083", store, ledger)
    assert isinstance(engine.discovery, HttpDiscoveryClient)
    assert engine.discovery.base_url == "http://host:8083"
