"""Shared utilities."""

from .async_helpers import maybe_await
from .env_file import EnvFile
from .singletons import register_singleton, reset_all_singletons

__all__ = [
    "EnvFile",
    "maybe_await",
    "register_singleton",
    "reset_all_singletons",
]
