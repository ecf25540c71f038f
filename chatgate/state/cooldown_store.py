"""JSON-file-backed persistence for cooldown expiries.

Entries map a participant id to the wall-clock epoch (seconds) at which
that participant's cooldown lapses.  A :class:`~chatgate.messaging.cooldown.Cooldown`
reads the whole mapping once at construction so that cooldowns survive a
restart, and writes through on every change.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from ..config.settings import cfg

logger = logging.getLogger(__name__)


class JsonCooldownStore:
    """Thread-safe cooldown store persisted under one key per cooldown.

    Several cooldowns may share a file; *namespace* keeps their entries
    apart (typically the command id).
    """

    def __init__(self, namespace: str, path: Path | None = None) -> None:
        self._namespace = namespace
        self._path = path or cfg.cooldowns_path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> dict[str, float]:
        return dict(self._read_all().get(self._namespace, {}))

    def set(self, user_id: str, expires_at: float) -> None:
        self._mutate(lambda entries: entries.__setitem__(user_id, expires_at))

    def update(self, user_id: str, expires_at: float) -> None:
        self._mutate(lambda entries: entries.__setitem__(user_id, expires_at))

    def delete(self, user_id: str) -> None:
        self._mutate(lambda entries: entries.pop(user_id, None))

    # -- persistence -------------------------------------------------------

    def _read_all(self) -> dict[str, dict[str, float]]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning(
                "[cooldown.store] Failed to load %s: %s", self._path, exc, exc_info=True,
            )
            return {}
        return raw if isinstance(raw, dict) else {}

    def _mutate(self, change) -> None:  # type: ignore[no-untyped-def]
        with self._lock:
            data = self._read_all()
            entries = data.setdefault(self._namespace, {})
            change(entries)
            if not entries:
                data.pop(self._namespace, None)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n")
