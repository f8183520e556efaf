"""
FastAPI integration for cartsync (optional dependency).

    from cartsync.contrib import fastapi as cf

    transport_for = cf.transport_dependency(factory)

    @app.get("/cart-page")
    async def page(transport: Annotated[MutationTransport, Depends(transport_for)]): ...
"""

try:
    from ._fastapi import (
        transport_dependency,
        context_dependency,
        request_context,
    )
except Exception:  # pragma: no cover - FastAPI not installed
    # Keep module importable even if fastapi isn't installed
    pass

__all__ = (
    "transport_dependency",
    "context_dependency",
    "request_context",
)
