"""
Tests for the checkpoint index: ordering invariants, signatures, content chain.
"""

from dataclasses import replace

import pytest

from sessionvault.core.errors import CheckpointOrderError, TransientStorageError, VerificationError
from sessionvault.crypto.signer import HostSigner
from sessionvault.index.integrity import (
    ZERO_HASH,
    chain_content_hash,
    extend_index,
    sign_index,
    verify_content_chain,
    verify_index_signatures,
)
from sessionvault.index.model import CheckpointEntry, CheckpointIndex
from sessionvault.index.store import IndexStore, index_path, validate_session_id
from sessionvault.tests.helpers import assistant, proof, user

MESSAGES = [
    [user("Explain quantum computing"), assistant("Quantum computers use qubits.")],
    [user("And entanglement?"), assistant("Correlated qubit states.")],
    [user("Thanks"), assistant("You're welcome.")],
]


def _entries(count=3, tokens=100):
    entries = []
    prev = ZERO_HASH
    for i in range(count):
        prev = chain_content_hash(prev, MESSAGES[i])
        entries.append(
            CheckpointEntry(
                index=i,
                proof_hash=proof(i),
                delta_cid=f"cid-{i}",
                token_range=(i * tokens, (i + 1) * tokens),
                timestamp=1000 + i,
                content_hash=prev,
            )
        )
    return entries


def _index(signer, count=3):
    index = CheckpointIndex(session_id="s1", host_address=signer.address)
    for entry in _entries(count):
        index, _ = extend_index(index, entry)
    return sign_index(index, signer)


def test_entry_wire_names():
    entry = _entries(1)[0]
    assert entry.to_dict() == {
        "index": 0,
        "proofHash": proof(0),
        "deltaCid": "cid-0",
        "tokenRange": [0, 100],
        "timestamp": 1000,
        "contentHash": entry.content_hash,
    }
    data = replace(entry, proof_cid="pcid", encrypted=True).to_dict()
    assert data["proofCid"] == "pcid"
    assert data["encrypted"] is True


def test_index_roundtrip(signer):
    index = _index(signer)
    assert CheckpointIndex.from_dict(index.to_dict()) == index
    assert index.token_count == 300
    assert index.last.index == 2


def test_host_address_lowercased():
    index = CheckpointIndex(session_id="s", host_address="0xABCDEF")
    assert index.host_address == "0xabcdef"


def test_extend_appends_in_order():
    index = CheckpointIndex(session_id="s1", host_address="0xabc")
    for i, entry in enumerate(_entries()):
        index, replaced = extend_index(index, entry)
        assert not replaced
        assert len(index.checkpoints) == i + 1


def test_extend_replaces_last_with_same_range():
    entries = _entries(2)
    index = CheckpointIndex(session_id="s1", host_address="0xabc", checkpoints=tuple(entries))
    updated, replaced = extend_index(index, replace(entries[1], delta_cid="cid-new"))
    assert replaced
    assert [e.delta_cid for e in updated.checkpoints] == ["cid-0", "cid-new"]


def test_extend_rejects_order_violations():
    entries = _entries(3)
    index = CheckpointIndex(session_id="s1", host_address="0xabc", checkpoints=tuple(entries[:2]))

    with pytest.raises(CheckpointOrderError):
        extend_index(index, replace(entries[0], delta_cid="again"))
    with pytest.raises(CheckpointOrderError):
        extend_index(index, replace(entries[1], token_range=(100, 150)))
    with pytest.raises(CheckpointOrderError):
        extend_index(index, replace(entries[2], index=3))
    with pytest.raises(CheckpointOrderError):
        extend_index(index, replace(entries[2], token_range=(250, 300)))
    with pytest.raises(CheckpointOrderError):
        extend_index(index, replace(entries[2], token_range=(200, 150)))


def test_extend_clears_signatures(signer):
    index = _index(signer, count=2)
    updated, _ = extend_index(index, _entries(3)[2])
    assert updated.messages_signature == ""
    assert updated.checkpoints_signature == ""


def test_signatures_verify(signer):
    verify_index_signatures(_index(signer))
    verify_index_signatures(_index(signer), signer.address.upper().replace("0X", "0x"))


def test_signatures_detect_entry_tamper(signer):
    index = _index(signer)
    entries = list(index.checkpoints)
    entries[1] = replace(entries[1], proof_hash=proof(99))
    tampered = replace(index, checkpoints=tuple(entries))
    with pytest.raises(VerificationError):
        verify_index_signatures(tampered)


def test_signatures_detect_content_hash_tamper(signer):
    index = _index(signer)
    entries = list(index.checkpoints)
    entries[2] = replace(entries[2], content_hash="f" * 64)
    with pytest.raises(VerificationError):
        verify_index_signatures(replace(index, checkpoints=tuple(entries)))


def test_signatures_reject_other_host(signer):
    with pytest.raises(VerificationError):
        verify_index_signatures(_index(signer), HostSigner.generate().address)


def test_sign_index_requires_owner(signer):
    index = CheckpointIndex(session_id="s1", host_address=HostSigner.generate().address)
    with pytest.raises(ValueError):
        sign_index(index, signer)


def test_content_chain():
    entries = _entries()
    verify_content_chain(entries, MESSAGES)

    altered = [MESSAGES[0], [user("And entanglement?"), assistant("Edited.")], MESSAGES[2]]
    with pytest.raises(VerificationError):
        verify_content_chain(entries, altered)
    with pytest.raises(VerificationError):
        verify_content_chain(entries, MESSAGES[:2])


def test_chain_depends_on_order():
    a = chain_content_hash(chain_content_hash(ZERO_HASH, MESSAGES[0]), MESSAGES[1])
    b = chain_content_hash(chain_content_hash(ZERO_HASH, MESSAGES[1]), MESSAGES[0])
    assert a != b


def test_index_store_roundtrip(store, signer):
    index_store = IndexStore(store, signer.address)
    assert index_store.load("s1") is None

    index = _index(signer)
    index_store.save(index)
    assert index_store.load("s1") == index
    assert store.read_path(f"home/checkpoints/{signer.address}/s1/index.json") == index.to_dict()
    assert index_store.list_sessions() == ["s1"]

    index_store.delete("s1")
    assert index_store.load("s1") is None
    assert index_store.list_sessions() == []


def test_orphan_records(store, signer):
    index_store = IndexStore(store, signer.address)
    assert index_store.load_orphans("s1") == {}

    index_store.record_orphan("s1", "bafk-a", 10)
    index_store.record_orphan("s1", "bafk-b", 20)
    assert index_store.load_orphans("s1") == {"bafk-a": 10, "bafk-b": 20}
    assert index_store.list_sessions() == ["s1"]

    index_store.discard_orphan("s1", "bafk-a")
    index_store.discard_orphan("s1", "bafk-unknown")
    assert index_store.load_orphans("s1") == {"bafk-b": 20}

    index_store.discard_orphan("s1", "bafk-b")
    assert store.read_path(f"home/checkpoints/{signer.address}/s1/orphans.json") is None
    assert index_store.list_sessions() == []


def test_malformed_orphan_record(store, signer):
    index_store = IndexStore(store, signer.address)
    store.write_path(index_store.orphans_path("s1"), {"orphans": ["bafk-a"]})
    with pytest.raises(TransientStorageError):
        index_store.load_orphans("s1")


def test_index_store_rejects_foreign_index(store, signer):
    index_store = IndexStore(store, HostSigner.generate().address)
    with pytest.raises(ValueError):
        index_store.save(_index(signer))


def test_index_path_lowercases_host():
    assert index_path("0xABC", "s-1") == "home/checkpoints/0xabc/s-1/index.json"


def test_session_id_validation():
    assert validate_session_id("session_42.a-b") == "session_42.a-b"
    for bad in ("", "a/b", "..", ".", "x" * 129, "has space"):
        with pytest.raises(ValueError):
            validate_session_id(bad)
