"""
Core types for cartsync.

Re-exports from kungfu + custom type aliases.
"""

from __future__ import annotations

from collections.abc import Callable

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Observer Callbacks
# ═══════════════════════════════════════════════════════════════════════════════

type Unsubscribe = Callable[[], None]
"""Detaches a previously registered listener."""

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Aliases
    "Lazy",
    "Unsubscribe",
)
