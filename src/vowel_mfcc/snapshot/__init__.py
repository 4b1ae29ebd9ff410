"""Vowel labels, labelled coefficient snapshots and their persistence."""

from vowel_mfcc.snapshot.recorder import SnapshotRecorder
from vowel_mfcc.snapshot.snapshot import Snapshot, Vowel
from vowel_mfcc.snapshot.store import SnapshotStore

__all__ = ["Snapshot", "SnapshotRecorder", "SnapshotStore", "Vowel"]
