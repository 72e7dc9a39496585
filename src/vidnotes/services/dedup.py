"""Installation-scoped record of video identifiers already submitted to the notes service."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterator, List, Optional

from rich.console import Console


class DedupStoreError(RuntimeError):
    """Raised when the dedup record cannot be persisted."""


class DedupStore:
    """Append-only set of imported video ids persisted as a JSON list.

    The store is a fast local pre-check only. The notes service's conflict response remains
    the authoritative duplicate signal, so callers must only :meth:`mark` ids whose submission
    was confirmed.
    """

    def __init__(self, path: Path, *, console: Optional[Console] = None) -> None:
        self._path = Path(path).expanduser()
        self._console = console or Console()
        self._lock = threading.Lock()
        self._ids: List[str] = self._load()
        self._index = set(self._ids)

    @property
    def path(self) -> Path:
        return self._path

    def has(self, video_id: str) -> bool:
        """Return ``True`` when ``video_id`` was previously marked as imported."""

        with self._lock:
            return video_id in self._index

    def mark(self, video_id: str) -> bool:
        """Record ``video_id`` as imported; returns ``False`` when it was already present."""

        if not video_id:
            raise ValueError("Cannot mark an empty video id.")

        with self._lock:
            if video_id in self._index:
                return False
            self._ids.append(video_id)
            self._index.add(video_id)
            self._persist()

        self._console.log(f"[green]Dedup:[/green] marked video as imported (video_id={video_id})")
        return True

    def __contains__(self, video_id: object) -> bool:
        return isinstance(video_id, str) and self.has(video_id)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._ids))

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _load(self) -> List[str]:
        if not self._path.exists():
            return []

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as exc:
            self._console.log(f"[yellow]Dedup store unreadable, starting empty:[/yellow] {exc} (path={self._path})")
            return []

        if not isinstance(raw, list):
            self._console.log(f"[yellow]Dedup store is not a list, starting empty[/yellow] (path={self._path})")
            return []

        ids: List[str] = []
        seen = set()
        for value in raw:
            if isinstance(value, str) and value and value not in seen:
                ids.append(value)
                seen.add(value)
        return ids

    def _persist(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".dedup-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._ids, handle)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            raise DedupStoreError(f"Failed to persist dedup store at {self._path}: {exc}") from exc


__all__ = ["DedupStore", "DedupStoreError"]
