"""Tests for the Settings module."""

from __future__ import annotations

from pathlib import Path

from chatgate.config.settings import DEFAULT_COMMANDS_MODULE, Settings


class TestSettings:
    def test_defaults(self, data_dir: Path) -> None:
        s = Settings()
        assert s.command_prefixes == ("!",)
        assert s.mention_prefix is True
        assert s.allow_bots is False
        assert s.restricted_servers == frozenset()
        assert s.prompt_time == 180
        assert s.prompt_attempts == 10
        assert s.prompt_cancel_word == "cancel"
        assert s.cooldown_notice_delay == 5
        assert s.bot_port == 3978
        assert s.commands_module == DEFAULT_COMMANDS_MODULE

    def test_prefixes_keep_inner_spaces(self, data_dir: Path, monkeypatch) -> None:
        monkeypatch.setenv("COMMAND_PREFIX", "!,hey bot ")
        s = Settings()
        assert s.command_prefixes == ("!", "hey bot ")

    def test_restricted_servers_parsed(self, data_dir: Path, monkeypatch) -> None:
        monkeypatch.setenv("RESTRICTED_SERVERS", "123, 456,,789")
        s = Settings()
        assert s.restricted_servers == frozenset({"123", "456", "789"})

    def test_flags(self, data_dir: Path, monkeypatch) -> None:
        monkeypatch.setenv("MENTION_PREFIX", "off")
        monkeypatch.setenv("ALLOW_BOTS", "yes")
        s = Settings()
        assert s.mention_prefix is False
        assert s.allow_bots is True

    def test_cancel_word_lowercased(self, data_dir: Path, monkeypatch) -> None:
        monkeypatch.setenv("PROMPT_CANCEL_WORD", "STOP")
        assert Settings().prompt_cancel_word == "stop"

    def test_write_env_and_reload(self, data_dir: Path) -> None:
        s = Settings()
        s.write_env(PROMPT_ATTEMPTS="3")
        assert s.prompt_attempts == 3

    def test_dotenv_overrides_environment(self, data_dir: Path, monkeypatch) -> None:
        monkeypatch.setenv("BOT_PORT", "4000")
        s = Settings()
        assert s.bot_port == 4000
        s.write_env(BOT_PORT="5000")
        assert s.bot_port == 5000

    def test_data_dir_from_env(self, data_dir: Path) -> None:
        s = Settings()
        assert s.data_dir == data_dir
        assert s.cooldowns_path == data_dir / "cooldowns.json"

    def test_ensure_dirs(self, data_dir: Path) -> None:
        s = Settings()
        data_dir.rmdir()
        s.ensure_dirs()
        assert data_dir.is_dir()
