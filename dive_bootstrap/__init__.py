"""Dive host dependency bootstrap (async, precondition-driven).

Core design goals:
- Idempotent steps gated by cheap local checks
- Pinned versions with checksum verification
- Independent toolchains fetched concurrently
- A single ordered event stream for the UI
- Centralized logging
"""

__all__ = []
