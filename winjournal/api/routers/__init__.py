"""Router exports for FastAPI composition."""

from . import backup, health, session, stats, wins

__all__ = ["backup", "health", "session", "stats", "wins"]
