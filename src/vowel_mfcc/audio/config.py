"""Centralized capture and MFCC analysis configuration.

Reference deployment:
- Audio: mono 16-bit PCM, 44.1 kHz, 1024-sample frames (~23 ms)
- Spectrum: real FFT 1024 -> 512 magnitude bins
- Mel filter bank: 32 triangular filters over 300-8000 Hz, defined on a
  0-24000 Hz frequency axis
- Snapshots keep the first 16 DCT coefficients
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class AnalyzerConfig:
    """Capture and analysis configuration (construction-time only)."""

    # Filter bank
    source_range: Tuple[float, float] = (0.0, 24_000.0)
    target_range: Tuple[float, float] = (300.0, 8_000.0)
    num_bins: int = 512
    num_filters: int = 32

    # Capture
    frame_size: int = 1024
    sample_rate: int = 44_100
    channels: int = 1  # mono
    dtype: str = "int16"

    # Log compression floor; None keeps zero-energy bands at -inf
    log_floor: Optional[float] = 1e-10

    # Number of leading DCT coefficients stored per snapshot
    snapshot_coefficients: int = 16

    @property
    def spectrum_size(self) -> int:
        """Number of magnitude-spectrum bins produced per frame."""
        return self.frame_size // 2

    @property
    def frame_duration_sec(self) -> float:
        """Duration of one frame in seconds."""
        return self.frame_size / self.sample_rate

    @property
    def bin_width_hz(self) -> float:
        """Spacing of the filter bank frequency axis."""
        lower, upper = self.source_range
        return (upper - lower) / self.num_bins
