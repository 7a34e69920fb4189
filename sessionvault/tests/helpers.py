"""
Shared builders for tests.
"""

from sessionvault.delta.model import Message


def proof(n: int) -> str:
    """Deterministic 32-byte proof hash for checkpoint n."""
    return "0x" + f"{n + 1:064x}"


def user(content: str, ts: int = 1000) -> Message:
    return Message(role="user", content=content, timestamp=ts)


def assistant(content: str, ts: int = 2000, partial: bool = False) -> Message:
    return Message(
        role="assistant",
        content=content,
        timestamp=ts,
        metadata={"partial": True} if partial else None,
    )
