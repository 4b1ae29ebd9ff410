"""Frame capture, mel filter bank and per-frame MFCC analysis."""

from vowel_mfcc.audio.analyzer import (
    CallbackObserver,
    FrameObserver,
    InvalidAnalyzerConfig,
    ProcessorState,
    SpectralFrameProcessor,
    Stage,
)
from vowel_mfcc.audio.config import AnalyzerConfig
from vowel_mfcc.audio.filterbank import InvalidFilterBankConfig, MelFilterBank
from vowel_mfcc.audio.sampler import FrameSampler, iter_wav_frames

__all__ = [
    "AnalyzerConfig",
    "CallbackObserver",
    "FrameObserver",
    "FrameSampler",
    "InvalidAnalyzerConfig",
    "InvalidFilterBankConfig",
    "MelFilterBank",
    "ProcessorState",
    "SpectralFrameProcessor",
    "Stage",
    "iter_wav_frames",
]
