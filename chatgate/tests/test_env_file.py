"""Tests for the .env file reader/writer."""

from __future__ import annotations

from chatgate.util.env_file import EnvFile, parse_env_line


class TestParseEnvLine:
    def test_plain_and_quoted(self):
        assert parse_env_line("A=1") == ("A", "1")
        assert parse_env_line('B="two words"') == ("B", "two words")
        assert parse_env_line("C='x'") == ("C", "x")

    def test_export_keyword(self):
        assert parse_env_line("export D=4") == ("D", "4")

    def test_skips_blank_and_comments(self):
        assert parse_env_line("") is None
        assert parse_env_line("# A=1") is None
        assert parse_env_line("no equals") is None

    def test_quotes_preserve_trailing_space(self):
        assert parse_env_line('COMMAND_PREFIX="hey "') == ("COMMAND_PREFIX", "hey ")


class TestEnvFile:
    def test_missing_file_reads_empty(self, tmp_path):
        env = EnvFile(tmp_path / "missing.env")
        assert env.read_all() == {}
        assert env.read("A") == ""

    def test_write_merges_and_removes(self, tmp_path):
        env = EnvFile(tmp_path / "sub" / ".env")
        env.write(A="1", B="2")
        env.write(B="", C="3")

        assert env.read_all() == {"A": "1", "C": "3"}
