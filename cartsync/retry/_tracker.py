"""
Version tracker — the single owner of the client's view of the cart version.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class VersionTracker:
    """
    Last cart version the client has observed.

    Note: advance() never moves backwards. Only the retry coordinator writes
    it; everything else reads.
    """

    current: int | None = None

    def advance(self, version: int | None) -> bool:
        """Record version if it is newer. Returns True when it moved."""
        if version is None:
            return False
        if self.current is not None and version <= self.current:
            return False
        self.current = version
        return True

    def reset(self) -> None:
        """Forget the version (cart dropped or replaced)."""
        self.current = None


__all__ = ("VersionTracker",)
