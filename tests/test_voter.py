"""Unit tests for the vowel voter and the stored-snapshot classifier."""

from __future__ import annotations

import unittest
from typing import Dict, List

import numpy as np

from vowel_mfcc.inference import NearestSnapshotClassifier, VowelVoter
from vowel_mfcc.snapshot import Snapshot, Vowel


class ScriptedClassifier:
    """Returns pre-set probabilities in order, one per call."""

    def __init__(self, outputs: List[Dict[str, float]]):
        self.outputs = list(outputs)
        self.calls = 0

    def predict_proba(self, coefficients: np.ndarray) -> Dict[str, float]:
        out = self.outputs[self.calls % len(self.outputs)]
        self.calls += 1
        return out


class TestVowelVoter(unittest.TestCase):
    """Threshold / min-votes / majority decision."""

    def _filled(self, n: int = 3) -> VowelVoter:
        voter = VowelVoter(batch_size=n, threshold=0.7, min_votes=3)
        for _ in range(n):
            voter.add(np.zeros(16, dtype=np.float32))
        return voter

    def test_invalid_parameters(self) -> None:
        with self.assertRaises(ValueError):
            VowelVoter(batch_size=0)
        with self.assertRaises(ValueError):
            VowelVoter(min_votes=0)

    def test_ready_after_batch(self) -> None:
        voter = VowelVoter(batch_size=2)
        voter.add(np.zeros(4))
        self.assertFalse(voter.ready)
        voter.add(np.zeros(4))
        self.assertTrue(voter.ready)

    def test_add_copies_vector(self) -> None:
        voter = VowelVoter(batch_size=1, min_votes=1, threshold=0.0)
        vec = np.zeros(4, dtype=np.float32)
        voter.add(vec)
        vec[:] = 1.0
        seen: List[np.ndarray] = []

        class Spy:
            def predict_proba(self, coefficients):
                seen.append(coefficients)
                return {"a": 1.0}

        voter.decide(Spy())
        np.testing.assert_array_equal(seen[0], 0.0)

    def test_confident_majority(self) -> None:
        classifier = ScriptedClassifier([{"a": 0.9, "i": 0.1}, {"a": 0.8}, {"a": 0.75, "o": 0.25}])
        voter = self._filled()
        self.assertIs(voter.decide(classifier), Vowel.A)
        self.assertEqual(len(voter), 0)

    def test_too_few_confident_votes(self) -> None:
        classifier = ScriptedClassifier([{"a": 0.9}, {"a": 0.7}, {"a": 0.95}])
        self.assertIsNone(self._filled().decide(classifier))

    def test_majority_among_confident(self) -> None:
        voter = VowelVoter(batch_size=5, threshold=0.7, min_votes=3)
        for _ in range(5):
            voter.add(np.zeros(4))
        classifier = ScriptedClassifier(
            [{"e": 0.9}, {"o": 0.8}, {"e": 0.85}, {"u": 0.5}, {"e": 0.99}]
        )
        self.assertIs(voter.decide(classifier), Vowel.E)

    def test_unknown_label(self) -> None:
        classifier = ScriptedClassifier([{"zz": 1.0}])
        self.assertIsNone(self._filled().decide(classifier))

    def test_take_batch_then_decide(self) -> None:
        voter = self._filled()
        batch = voter.take_batch()
        self.assertEqual(len(batch), 3)
        self.assertEqual(len(voter), 0)
        self.assertFalse(voter.ready)
        voter.add(np.ones(16))
        classifier = ScriptedClassifier([{"u": 0.9}])
        self.assertIs(voter.decide(classifier, batch), Vowel.U)
        self.assertEqual(classifier.calls, 3)
        self.assertEqual(len(voter), 1)

    def test_oldest_vector_discarded_when_full(self) -> None:
        voter = VowelVoter(batch_size=2)
        for value in (1.0, 2.0, 3.0):
            voter.add(np.full(2, value))
        self.assertEqual(len(voter), 2)


class TestNearestSnapshotClassifier(unittest.TestCase):
    """k-nearest lookup over snapshots."""

    def setUp(self) -> None:
        self.snapshots = [
            Snapshot.create(Vowel.A, [0.0, 0.0]),
            Snapshot.create(Vowel.A, [0.1, 0.0]),
            Snapshot.create(Vowel.I, [5.0, 5.0]),
            Snapshot.create(Vowel.I, [5.1, 5.0]),
            Snapshot.create(Vowel.I, [5.0, 5.1]),
        ]

    def test_empty(self) -> None:
        self.assertEqual(NearestSnapshotClassifier([]).predict_proba(np.zeros(2)), {})

    def test_vote_share(self) -> None:
        classifier = NearestSnapshotClassifier(self.snapshots, k=3)
        self.assertEqual(classifier.predict_proba(np.array([5.0, 5.0])), {"i": 1.0})
        probs = classifier.predict_proba(np.array([0.0, 0.1]))
        self.assertAlmostEqual(probs["a"], 2 / 3)
        self.assertAlmostEqual(probs["i"], 1 / 3)

    def test_query_truncated_to_snapshot_length(self) -> None:
        classifier = NearestSnapshotClassifier(self.snapshots, k=1)
        self.assertEqual(classifier.predict_proba(np.array([0.0, 0.0, 99.0, 99.0])), {"a": 1.0})
        with self.assertRaises(ValueError):
            classifier.predict_proba(np.array([0.0]))

    def test_with_voter(self) -> None:
        classifier = NearestSnapshotClassifier(self.snapshots, k=2)
        voter = VowelVoter(batch_size=3, threshold=0.7, min_votes=3)
        for _ in range(3):
            voter.add(np.array([5.05, 5.0], dtype=np.float32))
        self.assertIs(voter.decide(classifier), Vowel.I)


if __name__ == "__main__":
    unittest.main(verbosity=2)
