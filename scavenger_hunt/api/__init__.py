"""
API routers package
"""
from scavenger_hunt.api import (
    system,
    auth,
    game,
    progress,
    user,
    admin
)

__all__ = [
    "system",
    "auth",
    "game",
    "progress",
    "user",
    "admin"
]
