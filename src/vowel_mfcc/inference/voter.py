"""Vowel decision from a batch of coefficient vectors.

A classifier maps one coefficient vector to label probabilities. The voter
keeps the top label of every vector in a batch, discards those below a
probability threshold and reports the most frequent remaining label once
enough confident votes are present.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Protocol, Sequence

import numpy as np

from vowel_mfcc.snapshot.snapshot import Snapshot, Vowel

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    def predict_proba(self, coefficients: np.ndarray) -> Dict[str, float]:
        """Return {vowel identifier: probability} for one coefficient vector."""
        ...


class VowelVoter:
    """Collects coefficient vectors and turns each full batch into at most one vowel.

    Interface:
      voter = VowelVoter(batch_size=3, threshold=0.7, min_votes=3)
      voter.add(coefficients)
      if voter.ready:
          vowel = voter.decide(classifier)   # Optional[Vowel]

    `take_batch()` + `decide(classifier, batch)` split the two steps so the
    classifier can run on another thread than the one adding vectors.
    """

    def __init__(self, batch_size: int = 3, threshold: float = 0.7, min_votes: int = 3):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if min_votes < 1:
            raise ValueError("min_votes must be >= 1")
        self.batch_size = batch_size
        self.threshold = threshold
        self.min_votes = min_votes
        self._batch: List[np.ndarray] = []

    @property
    def ready(self) -> bool:
        return len(self._batch) >= self.batch_size

    def __len__(self) -> int:
        return len(self._batch)

    def add(self, coefficients: np.ndarray) -> None:
        """Buffer a copy of one coefficient vector; the oldest is discarded when full."""
        self._batch.append(np.array(coefficients, dtype=np.float32, copy=True))
        if len(self._batch) > self.batch_size:
            self._batch.pop(0)

    def clear(self) -> None:
        self._batch = []

    def take_batch(self) -> List[np.ndarray]:
        """Hand over the buffered vectors and start a new batch."""
        batch, self._batch = self._batch, []
        return batch

    def decide(
        self, classifier: Classifier, batch: Optional[Sequence[np.ndarray]] = None
    ) -> Optional[Vowel]:
        """Classify `batch` (default: the buffered batch, which is then cleared)."""
        if batch is None:
            batch = self.take_batch()
        confident: List[str] = []
        for coefficients in batch:
            probs = classifier.predict_proba(coefficients)
            if not probs:
                continue
            label, prob = max(probs.items(), key=lambda item: item[1])
            if prob > self.threshold:
                confident.append(label)
        if len(confident) < self.min_votes:
            logger.debug("Only %d confident votes (need %d)", len(confident), self.min_votes)
            return None
        label, _ = Counter(confident).most_common(1)[0]
        vowel = Vowel.from_identifier(label)
        if vowel is None:
            logger.debug("Classifier returned unknown label %r", label)
        return vowel


class NearestSnapshotClassifier:
    """k-nearest-neighbour lookup over stored snapshots (Euclidean distance).

    Probabilities are the vote share of each label among the k nearest
    snapshots. Query vectors are truncated to the snapshot length.
    """

    def __init__(self, snapshots: Sequence[Snapshot], k: int = 3):
        if k < 1:
            raise ValueError("k must be >= 1")
        self.k = k
        self._labels = [s.vowel.identifier for s in snapshots]
        if snapshots:
            width = min(len(s.coefficients) for s in snapshots)
            self._points = np.array([s.coefficients[:width] for s in snapshots], dtype=np.float32)
        else:
            self._points = np.zeros((0, 0), dtype=np.float32)

    def __len__(self) -> int:
        return len(self._labels)

    def predict_proba(self, coefficients: np.ndarray) -> Dict[str, float]:
        if not self._labels:
            return {}
        query = np.asarray(coefficients, dtype=np.float32)[: self._points.shape[1]]
        if query.shape[0] != self._points.shape[1]:
            raise ValueError(
                f"Expected at least {self._points.shape[1]} coefficients, got {query.shape[0]}"
            )
        distances = np.linalg.norm(self._points - query, axis=1)
        k = min(self.k, len(self._labels))
        nearest = np.argsort(distances, kind="stable")[:k]
        counts = Counter(self._labels[i] for i in nearest)
        return {label: count / k for label, count in counts.items()}
