"""
Tests for CheckpointSession.
"""

import pytest

from sessionvault.core.errors import EncryptionError
from sessionvault.delta.model import CheckpointDelta, is_encrypted_delta
from sessionvault.session import CheckpointSession, default_proof_hash
from sessionvault.tests.helpers import proof, user


def test_publishes_at_interval_and_settles_after(publisher, ledger, store, engine):
    settled = []

    def settle(session_id, checkpoint_index, proof_hash):
        index = publisher.index_store.load(session_id)
        assert index is not None and len(index.checkpoints) == checkpoint_index + 1
        settled.append((checkpoint_index, proof_hash))
        ledger.submit_proof(session_id, checkpoint_index, proof_hash)

    session = CheckpointSession(publisher, settle, "s1", interval_tokens=100)
    session.add_message("user", "Explain quantum computing")
    assert session.add_tokens(40) is None
    assert session.stream("Quantum computers ", tokens=30) is None

    cid = session.stream("use qubits", tokens=40)
    assert cid is not None
    assert [i for i, _ in settled] == [0]

    delta = CheckpointDelta.from_dict(store.get(cid))
    assert (delta.start_token, delta.end_token) == (0, 110)
    assert delta.messages[-1].content == "Quantum computers use qubits"
    assert delta.messages[-1].partial

    session.stream(" and superposition.", tokens=20)
    session.end_stream()
    assert session.flush() is not None
    assert [i for i, _ in settled] == [0, 1]
    assert session.stats() == {"tokens": 130, "checkpoints": 2, "pending_messages": 0}

    result = engine.recover("s1")
    assert [m.content for m in result.messages] == [
        "Explain quantum computing",
        "Quantum computers use qubits and superposition.",
    ]
    assert not result.messages[1].partial
    assert result.token_count == 130


def test_boundary_without_messages_is_deferred(publisher):
    settled = []
    session = CheckpointSession(publisher, lambda *a: settled.append(a), "s1", interval_tokens=100)

    assert session.add_tokens(150) is None
    assert session.checkpoints == 0

    session.add_message("user", "late message")
    assert session.add_tokens(0) is not None
    entry = publisher.index_store.load("s1").checkpoints[0]
    assert entry.token_range == (0, 150)
    assert len(settled) == 1


def test_flush_with_nothing_pending(publisher):
    session = CheckpointSession(publisher, lambda *a: None, "s1")
    assert session.flush() is None
    assert publisher.index_store.load("s1") is None


def test_explicit_and_custom_proof_hash(publisher):
    settled = []
    session = CheckpointSession(
        publisher, lambda *a: settled.append(a), "s1", interval_tokens=10, prove=lambda *a: proof(7)
    )
    session.add_message("user", "q")
    session.add_tokens(10)
    session.add_message("assistant", "a")
    session.flush(proof_hash=proof(3))

    assert [p for _, _, p in settled] == [proof(7), proof(3)]
    assert [e.proof_hash for e in publisher.index_store.load("s1").checkpoints] == [proof(7), proof(3)]


def test_encrypted_session(publisher, store, recovery_keys):
    session = CheckpointSession(
        publisher, lambda *a: None, "s1", interval_tokens=10, recipient_pubkey=recovery_keys.public_key_hex
    )
    session.add_message("user", "secret question")
    cid = session.add_tokens(10)

    assert is_encrypted_delta(store.get(cid))
    assert publisher.index_store.load("s1").checkpoints[0].encrypted


def test_publish_failure_skips_settle(publisher):
    settled = []
    session = CheckpointSession(publisher, lambda *a: settled.append(a), "s1", interval_tokens=10)
    session.add_message("user", "q")
    session.recipient_pubkey = "0xbad"

    with pytest.raises(EncryptionError):
        session.add_tokens(10)
    assert settled == []
    assert session.checkpoints == 0
    assert session.pending_messages == 1


def test_failed_settle_is_retried_without_republishing(publisher, ledger, engine):
    calls = []

    def settle(session_id, checkpoint_index, proof_hash):
        calls.append(checkpoint_index)
        if len(calls) == 1:
            raise RuntimeError("ledger unavailable")
        ledger.submit_proof(session_id, checkpoint_index, proof_hash)

    session = CheckpointSession(publisher, settle, "s1", interval_tokens=100)
    session.add_message("user", "q0")
    with pytest.raises(RuntimeError):
        session.add_tokens(100)
    assert session.checkpoints == 1
    assert session.pending_messages == 0

    session.add_message("assistant", "a0")
    assert session.add_tokens(10) is None
    assert session.add_tokens(90) is not None
    assert calls == [0, 0, 1]

    index = publisher.index_store.load("s1")
    assert [e.token_range for e in index.checkpoints] == [(0, 100), (100, 200)]
    assert [m.content for m in engine.recover("s1").messages] == ["q0", "a0"]


def test_flush_retries_failed_settle(publisher):
    settled = []
    failures = [RuntimeError("ledger unavailable")]

    def settle(*args):
        if failures:
            raise failures.pop()
        settled.append(args)

    session = CheckpointSession(publisher, settle, "s1", interval_tokens=10)
    session.add_message("user", "q", timestamp=1)
    with pytest.raises(RuntimeError):
        session.flush(proof_hash=proof(0))

    assert session.flush() is None
    assert settled == [("s1", 0, proof(0))]
    assert len(publisher.index_store.load("s1").checkpoints) == 1


def test_stream_ending_on_boundary_is_recovered_complete(publisher, ledger, engine):
    session = CheckpointSession(
        publisher, lambda s, i, p: ledger.submit_proof(s, i, p), "s1", interval_tokens=100
    )
    session.add_message("user", "q")
    assert session.stream("complete reply.", tokens=100) is not None
    assert session.end_stream() is not None
    assert session.flush() is not None

    result = engine.recover("s1")
    assert [m.content for m in result.messages] == ["q", "complete reply."]
    assert not result.messages[-1].partial
    assert result.messages[-1].metadata is None


def test_continuation_precedes_later_messages(publisher, ledger, engine):
    session = CheckpointSession(
        publisher, lambda s, i, p: ledger.submit_proof(s, i, p), "s1", interval_tokens=10
    )
    session.add_message("user", "q")
    session.stream("first half", tokens=10)
    session.add_message("user", "interjection")
    session.stream(", second half")
    session.end_stream()
    session.flush()

    result = engine.recover("s1")
    assert [m.content for m in result.messages] == ["q", "first half, second half", "interjection"]


def test_explicit_zero_timestamp_is_kept(publisher):
    session = CheckpointSession(publisher, lambda *a: None, "s1")
    assert session.add_message("user", "q", timestamp=0).timestamp == 0


def test_default_proof_hash_is_deterministic():
    messages = [user("hi")]
    a = default_proof_hash("s1", 0, 0, 10, messages)
    assert a == default_proof_hash("s1", 0, 0, 10, messages)
    assert a != default_proof_hash("s1", 1, 0, 10, messages)
    assert a.startswith("0x") and len(a) == 66


def test_invalid_interval(publisher):
    with pytest.raises(ValueError):
        CheckpointSession(publisher, lambda *a: None, "s1", interval_tokens=0)
