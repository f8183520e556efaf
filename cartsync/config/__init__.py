"""
Config — client settings and API route layout.

    from cartsync.config import ClientSettings

    settings = ClientSettings(base_url="https://shop.example.com")
    paths = settings.paths()
    policy = settings.retry_policy()
"""

from cartsync.config._paths import ApiPaths
from cartsync.config._settings import ClientSettings

__all__ = ("ApiPaths", "ClientSettings")
