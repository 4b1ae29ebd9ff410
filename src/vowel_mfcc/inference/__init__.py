"""Vowel decision logic on top of a pluggable coefficient classifier."""

from vowel_mfcc.inference.voter import Classifier, NearestSnapshotClassifier, VowelVoter

__all__ = ["Classifier", "NearestSnapshotClassifier", "VowelVoter"]
