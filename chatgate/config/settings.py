"""Application settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from ..util.env_file import EnvFile
from ..util.singletons import register_singleton

_TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})

DEFAULT_COMMANDS_MODULE = "chatgate.messaging.commands.builtin"


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Settings:

    _DATA_DIR_ENV: ClassVar[str] = "CHATGATE_DATA_DIR"

    def __init__(self) -> None:
        dotenv = os.getenv("DOTENV_PATH")
        if not dotenv:
            data_dir = os.getenv(self._DATA_DIR_ENV)
            if data_dir:
                dotenv = str(Path(data_dir) / ".env")
            else:
                dotenv = ".env"
        self.env = EnvFile(dotenv)
        self.reload()

    def reload(self) -> None:
        e = self._read

        # -- dispatch ------------------------------------------------------
        # Prefixes are split on commas but never stripped of inner spaces,
        # so "hey bot " stays a valid multi-word prefix.
        raw_prefix = e("COMMAND_PREFIX")
        self.command_prefixes: tuple[str, ...] = (
            tuple(p for p in raw_prefix.split(",") if p) if raw_prefix else ("!",)
        )
        self.mention_prefix: bool = self._flag("MENTION_PREFIX", default=True)
        self.allow_bots: bool = self._flag("ALLOW_BOTS", default=False)

        raw_servers = e("RESTRICTED_SERVERS")
        self.restricted_servers: frozenset[str] = (
            frozenset(_split_csv(raw_servers)) if raw_servers else frozenset()
        )
        self.commands_module: str = e("CHATGATE_COMMANDS") or DEFAULT_COMMANDS_MODULE

        # -- prompts -------------------------------------------------------
        self.prompt_time: float = float(e("PROMPT_TIME") or "180")
        self.prompt_attempts: int = int(e("PROMPT_ATTEMPTS") or "10")
        self.prompt_cancel_word: str = (e("PROMPT_CANCEL_WORD") or "cancel").lower()

        # -- cooldowns -----------------------------------------------------
        self.cooldown_notice_delay: float = float(e("COOLDOWN_NOTICE_DELAY") or "5")

        # -- bot framework -------------------------------------------------
        self.bot_app_id: str = e("BOT_APP_ID")
        self.bot_app_password: str = e("BOT_APP_PASSWORD")
        self.bot_app_tenant_id: str = e("BOT_APP_TENANT_ID")
        self.bot_port: int = int(e("BOT_PORT") or "3978")

        self.otel_connection_string: str = e("APPLICATIONINSIGHTS_CONNECTION_STRING")

    @property
    def data_dir(self) -> Path:
        return Path(os.getenv(self._DATA_DIR_ENV, str(Path.home() / ".chatgate")))

    @property
    def cooldowns_path(self) -> Path:
        return self.data_dir / "cooldowns.json"

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")

    def _flag(self, key: str, *, default: bool) -> bool:
        raw = self._read(key)
        if not raw:
            return default
        return raw.strip().lower() in _TRUTHY

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def write_env(self, **kwargs: str) -> None:
        self.env.write(**kwargs)
        self.reload()


cfg = Settings()


def _reset_cfg() -> None:
    global cfg
    cfg = Settings()


register_singleton(_reset_cfg)
