"""
Contrib — optional integrations. Access integrations via submodules.

    from cartsync.contrib import fastapi
    # Depends(fastapi.transport_dependency(factory))
"""

from . import fastapi

__all__ = ("fastapi",)
