"""
sessionvault CLI - durable, verifiable conversation checkpoints

Commands:
- sessionvault keys host-generate/recovery-generate - Key management
- sessionvault serve - Run the discovery endpoint
- sessionvault index show - Inspect a session's checkpoint index
- sessionvault recover - Recover and verify a conversation
- sessionvault retention sweep/cancel - Delete expired or cancelled sessions
"""

from sessionvault import __version__

__all__ = ["__version__"]
