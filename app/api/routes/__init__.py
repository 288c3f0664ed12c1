"""Route modules exposed by the API package."""

from . import auth, ping, tickets

__all__ = ["auth", "ping", "tickets"]
