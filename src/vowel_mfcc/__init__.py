"""Vowel MFCC - mel filter bank, per-frame MFCC analysis, snapshots, vowel voting."""

from vowel_mfcc.audio import MelFilterBank, SpectralFrameProcessor

__all__ = ["MelFilterBank", "SpectralFrameProcessor"]
