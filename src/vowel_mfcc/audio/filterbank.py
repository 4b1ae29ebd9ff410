"""Triangular mel filter bank over a linear frequency axis.

Filters are spaced uniformly on the mel scale (mel = 1125 * ln(1 + f / 700))
between the bounds of the target range, and evaluated at the centre
frequency of every bin of the source range. Arithmetic is single precision
so that the weights match what the capture side feeds the analyzer.
"""

import logging
from typing import Optional, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

FrequencyRange = Tuple[float, float]


class InvalidFilterBankConfig(ValueError):
    """Raised when filter bank parameters violate their preconditions."""


def hz_to_mel(freq: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert frequency in Hz to mel."""
    return 1125.0 * np.log(1.0 + freq / 700.0)


def mel_to_hz(mel: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert mel back to frequency in Hz."""
    return 700.0 * (np.exp(mel / 1125.0) - 1.0)


def _validate(
    source_range: FrequencyRange,
    target_range: FrequencyRange,
    num_bins: int,
    num_filters: int,
) -> None:
    if num_bins <= 0:
        raise InvalidFilterBankConfig(f"num_bins must be > 0, got {num_bins}")
    if num_filters <= 0:
        raise InvalidFilterBankConfig(f"num_filters must be > 0, got {num_filters}")
    src_lo, src_hi = source_range
    tgt_lo, tgt_hi = target_range
    if not src_lo < src_hi:
        raise InvalidFilterBankConfig(f"source_range must be increasing, got {source_range}")
    if not tgt_lo < tgt_hi:
        raise InvalidFilterBankConfig(f"target_range must be increasing, got {target_range}")
    if tgt_lo < src_lo or tgt_hi > src_hi:
        raise InvalidFilterBankConfig(
            f"target_range {target_range} must lie within source_range {source_range}"
        )


class MelFilterBank:
    """Immutable (num_filters, num_bins) matrix of triangular mel weights.

    Row ``m - 1`` holds filter ``m`` (1-based), whose support is
    ``[edges[m - 1], edges[m + 1])`` with its peak at ``edges[m]``.
    Filters whose consecutive edges coincide are degenerate: their row is
    left at zero and their index is listed in ``degenerate_filters``.

    The bank is never mutated after construction and may be shared by any
    number of frame processors.

    Interface:
      bank = MelFilterBank((0, 24_000), (300, 8_000), num_bins=512, num_filters=32)
      energies = bank.apply(magnitude_spectrum)   # (num_filters,)
    """

    def __init__(
        self,
        source_range: FrequencyRange,
        target_range: FrequencyRange,
        num_bins: int,
        num_filters: int,
    ):
        _validate(source_range, target_range, num_bins, num_filters)
        self.source_range = (float(source_range[0]), float(source_range[1]))
        self.target_range = (float(target_range[0]), float(target_range[1]))
        self.num_bins = int(num_bins)
        self.num_filters = int(num_filters)

        self._edges = self._band_edges()
        self._bin_frequencies = self._bin_centres()
        self._weights, self._degenerate = self._build_weights()
        for arr in (self._edges, self._bin_frequencies, self._weights):
            arr.setflags(write=False)

        for index in self._degenerate:
            logger.warning(
                "Mel filter %d is degenerate (coincident band edges around %.3f Hz); "
                "its weights are all zero. Reduce num_filters or widen target_range.",
                index,
                float(self._edges[index + 1]),
            )

    @classmethod
    def build(
        cls,
        source_range: FrequencyRange,
        target_range: FrequencyRange,
        num_bins: int,
        num_filters: int,
    ) -> "MelFilterBank":
        return cls(source_range, target_range, num_bins, num_filters)

    @classmethod
    def from_config(cls, config) -> "MelFilterBank":
        """Build from an AnalyzerConfig."""
        return cls(config.source_range, config.target_range, config.num_bins, config.num_filters)

    def _band_edges(self) -> np.ndarray:
        mel_lo, mel_hi = hz_to_mel(np.asarray(self.target_range, dtype=np.float32))
        mels = np.linspace(mel_lo, mel_hi, self.num_filters + 2, dtype=np.float32)
        return mel_to_hz(mels).astype(np.float32)

    def _bin_centres(self) -> np.ndarray:
        lower, upper = self.source_range
        dk = np.float32((upper - lower) / self.num_bins)
        return np.float32(lower) + dk * np.arange(self.num_bins, dtype=np.float32)

    def _build_weights(self) -> Tuple[np.ndarray, Tuple[int, ...]]:
        left = self._edges[:-2, None]
        centre = self._edges[1:-1, None]
        right = self._edges[2:, None]
        k = self._bin_frequencies[None, :]

        rising = (k >= left) & (k < centre)
        falling = (k >= centre) & (k < right)
        with np.errstate(divide="ignore", invalid="ignore"):
            up = (k - left) / (centre - left)
            down = (right - k) / (right - centre)
        weights = np.where(rising, up, np.where(falling, down, 0.0)).astype(np.float32)

        degenerate = np.flatnonzero((centre[:, 0] <= left[:, 0]) | (right[:, 0] <= centre[:, 0]))
        weights[degenerate] = 0.0
        return np.ascontiguousarray(weights), tuple(int(i) for i in degenerate)

    @property
    def weights(self) -> np.ndarray:
        """Read-only weight matrix, shape (num_filters, num_bins)."""
        return self._weights

    @property
    def edges(self) -> np.ndarray:
        """Band edges in Hz, length num_filters + 2."""
        return self._edges

    @property
    def bin_frequencies(self) -> np.ndarray:
        """Centre frequency of each bin of the source range."""
        return self._bin_frequencies

    @property
    def degenerate_filters(self) -> Tuple[int, ...]:
        """Row indices of filters that collapsed to all-zero weights."""
        return self._degenerate

    @property
    def shape(self) -> Tuple[int, int]:
        return self.num_filters, self.num_bins

    def apply(self, spectrum: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Integrate a magnitude spectrum into num_filters band energies."""
        if spectrum.shape != (self.num_bins,):
            raise ValueError(f"Expected spectrum of shape ({self.num_bins},), got {spectrum.shape}")
        if out is None:
            return np.dot(self._weights, spectrum)
        return np.dot(self._weights, spectrum, out=out)

    def __repr__(self) -> str:
        return (
            f"MelFilterBank(source_range={self.source_range}, target_range={self.target_range}, "
            f"num_bins={self.num_bins}, num_filters={self.num_filters})"
        )
