"""Persistent state stores."""

from .cooldown_store import JsonCooldownStore

__all__ = ["JsonCooldownStore"]
