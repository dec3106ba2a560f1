from .settings import PresenceSettings, get_settings

__all__ = ["PresenceSettings", "get_settings"]
