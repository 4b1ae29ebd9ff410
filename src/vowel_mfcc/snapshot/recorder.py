"""Observer that turns the next coefficient vector into a labelled snapshot."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

import numpy as np

from vowel_mfcc.audio.analyzer import FrameObserver, SpectralFrameProcessor
from vowel_mfcc.snapshot.snapshot import Snapshot, Vowel
from vowel_mfcc.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


class SnapshotRecorder(FrameObserver):
    """Records one snapshot per `request()` from the next analyzed frame.

    The snapshot is only captured during analysis; writing it to the store
    happens in `flush()`, on whichever thread calls it.

    Interface:
      recorder = SnapshotRecorder(store)
      processor.add_observer(recorder)
      recorder.request(Vowel.A)   # next frame's leading coefficients are captured as "a"
      processor.analyze(frame, 44_100)
      recorder.flush()            # saved to the store
    """

    def __init__(
        self,
        store: SnapshotStore,
        num_coefficients: int = 16,
        on_snapshot: Optional[Callable[[Snapshot], None]] = None,
    ):
        if num_coefficients < 1:
            raise ValueError("num_coefficients must be >= 1")
        self.store = store
        self.num_coefficients = num_coefficients
        self.on_snapshot = on_snapshot
        self._pending: Optional[Vowel] = None
        self._captured: List[Snapshot] = []
        self._lock = threading.Lock()

    @property
    def pending(self) -> Optional[Vowel]:
        """Vowel waiting for the next frame, if any."""
        return self._pending

    @property
    def unsaved(self) -> int:
        """Snapshots captured but not yet flushed to the store."""
        with self._lock:
            return len(self._captured)

    def request(self, vowel: Vowel) -> None:
        with self._lock:
            self._pending = vowel

    def cancel(self) -> None:
        with self._lock:
            self._pending = None

    def on_coefficients(self, processor: SpectralFrameProcessor, coefficients: np.ndarray) -> None:
        with self._lock:
            vowel, self._pending = self._pending, None
            if vowel is None:
                return
            self._captured.append(Snapshot.create(vowel, coefficients[: self.num_coefficients]))

    def flush(self) -> List[Snapshot]:
        """Save every captured snapshot to the store; returns them in capture order."""
        with self._lock:
            captured, self._captured = self._captured, []
        for snapshot in captured:
            self.store.append(snapshot)
            logger.info("Snapshot %s recorded for vowel %r", snapshot.id, snapshot.vowel.identifier)
            if self.on_snapshot is not None:
                self.on_snapshot(snapshot)
        return captured
