"""Thread-safe ``.env`` file reader/writer."""

from __future__ import annotations

import threading
from pathlib import Path


def parse_env_line(line: str) -> tuple[str, str] | None:
    """Parse one ``KEY=VALUE`` line; ``None`` for blanks and comments.

    An ``export`` keyword is tolerated so the file can be sourced by a
    shell.  Surrounding quotes are removed but the value is otherwise
    kept verbatim (a prefix may legitimately end with a space).
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return None
    if stripped.startswith("export "):
        stripped = stripped[len("export "):]
    key, _, value = stripped.partition("=")
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return key.strip(), value


class EnvFile:
    """Reads and writes a simple ``KEY=VALUE`` file with thread safety."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def read(self, key: str) -> str:
        """Return the value for *key*, or ``""`` if absent."""
        return self.read_all().get(key, "")

    def read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        pairs = (parse_env_line(line) for line in self.path.read_text().splitlines())
        return dict(pair for pair in pairs if pair is not None)

    def write(self, **kwargs: str) -> None:
        """Merge *kwargs* into the file; an empty value removes the key."""
        with self._lock:
            merged = {**self.read_all(), **kwargs}
            body = "".join(f'{k}="{v}"\n' for k, v in sorted(merged.items()) if v)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(body)
