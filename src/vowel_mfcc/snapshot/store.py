"""JSON-file persistence of labelled snapshots."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, List, Union

from vowel_mfcc.snapshot.snapshot import Snapshot, Vowel

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path.home() / ".vowel_mfcc" / "snapshot.json"


class SnapshotStore:
    """Ordered collection of snapshots, saved to `path` after every change.

    Load and save failures are logged and otherwise ignored, so a broken
    file never stops capture: an unreadable file starts an empty store.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_STORE_PATH):
        self.path = Path(path)
        self._snapshots: List[Snapshot] = []
        self._load()

    @property
    def snapshots(self) -> List[Snapshot]:
        return list(self._snapshots)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(list(self._snapshots))

    def append(self, snapshot: Snapshot) -> None:
        self._snapshots.append(snapshot)
        self._save()

    def remove(self, snapshot: Snapshot) -> bool:
        """Remove the first equal snapshot; False if none was stored."""
        try:
            self._snapshots.remove(snapshot)
        except ValueError:
            return False
        self._save()
        return True

    def remove_all(self) -> None:
        self._snapshots = []
        self._save()

    def snapshots_with(self, vowel: Vowel) -> List[Snapshot]:
        return [s for s in self._snapshots if s.vowel == vowel]

    def _load(self) -> None:
        if not self.path.exists():
            logger.debug("No snapshot file at %s, starting empty", self.path)
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._snapshots = [Snapshot.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to load snapshots from %s: %s", self.path, exc)
            self._snapshots = []

    def _save(self) -> None:
        payload = json.dumps([s.to_dict() for s in self._snapshots])
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, self.path)
            except BaseException:
                os.unlink(tmp)
                raise
        except OSError as exc:
            logger.warning("Failed to save snapshots to %s: %s", self.path, exc)
