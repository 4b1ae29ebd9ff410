"""Frame-by-frame MFCC analysis: normalize -> window -> FFT -> mel -> log10 -> DCT.

One SpectralFrameProcessor owns every scratch buffer it needs, allocated once
at construction; the MelFilterBank is borrowed and only read. Each stage's
buffer is handed to the registered observers before the next stage runs.

Only one frame is analyzed at a time per processor. A frame that arrives
while another is being analyzed is dropped, not queued.
"""

import enum
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np
import scipy.fft
from scipy.signal import get_window

from vowel_mfcc.audio.filterbank import MelFilterBank

logger = logging.getLogger(__name__)


class InvalidAnalyzerConfig(ValueError):
    """Raised when a processor cannot be built for the given frame size / filter bank."""


class ProcessorState(enum.Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"


class Stage(enum.Enum):
    """Pipeline stages, in emission order. Values are the observer method names."""

    START = "on_start"
    NORMALIZED = "on_normalized"
    WINDOWED = "on_windowed"
    SPECTRUM = "on_spectrum"
    MEL = "on_mel"
    LOG_MEL = "on_log_mel"
    COEFFICIENTS = "on_coefficients"


class FrameObserver:
    """Receives each stage's buffer synchronously, on the caller's thread.

    Buffers belong to the processor and are overwritten by the next frame;
    copy anything that must outlive the call. Override only what you need.
    """

    def on_start(self, processor: "SpectralFrameProcessor", samples: np.ndarray) -> None:
        pass

    def on_normalized(self, processor: "SpectralFrameProcessor", samples: np.ndarray) -> None:
        pass

    def on_windowed(self, processor: "SpectralFrameProcessor", samples: np.ndarray) -> None:
        pass

    def on_spectrum(self, processor: "SpectralFrameProcessor", amplitudes: np.ndarray) -> None:
        pass

    def on_mel(self, processor: "SpectralFrameProcessor", energies: np.ndarray) -> None:
        pass

    def on_log_mel(self, processor: "SpectralFrameProcessor", log_energies: np.ndarray) -> None:
        pass

    def on_coefficients(self, processor: "SpectralFrameProcessor", coefficients: np.ndarray) -> None:
        pass


StageCallback = Callable[["SpectralFrameProcessor", np.ndarray], None]


class CallbackObserver(FrameObserver):
    """Observer built from plain callables keyed by Stage.

    Example:
      CallbackObserver({Stage.COEFFICIENTS: lambda proc, c: print(c[:4])})
    """

    def __init__(self, callbacks: Dict[Stage, StageCallback]):
        self._callbacks = dict(callbacks)
        for stage, callback in self._callbacks.items():
            setattr(self, stage.value, callback)


def hamming_window(n: int) -> np.ndarray:
    """Periodic Hamming window, 0.54 - 0.46 * cos(2 * pi * i / n)."""
    return get_window("hamming", n, fftbins=True).astype(np.float32)


def magnitude_spectrum(
    samples: np.ndarray,
    out: Optional[np.ndarray] = None,
    real: Optional[np.ndarray] = None,
    imag: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Magnitude of the first n/2 bins of the real FFT of `samples`, scaled by 1/n.

    Bins use the packed real-FFT layout: bin 0 holds DC in its real part
    and the Nyquist term in its imaginary part.
    """
    n = samples.shape[0]
    half = n // 2
    if real is None:
        real = np.empty(half, dtype=np.float32)
    if imag is None:
        imag = np.empty(half, dtype=np.float32)

    spectrum = scipy.fft.rfft(samples)
    scale = 1.0 / n
    np.multiply(spectrum.real[:half], scale, out=real)
    np.multiply(spectrum.imag[:half], scale, out=imag)
    imag[0] = spectrum.real[half] * scale
    return np.hypot(real, imag, out=out)


def dct_ii(x: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Unnormalized DCT-II: C[k] = sum_n x[n] * cos(pi * k * (2n + 1) / (2N))."""
    # scipy's unnormalized type-II carries an extra factor of 2
    return np.multiply(scipy.fft.dct(x, type=2), 0.5, out=out)


def _is_power_of_two(n: int) -> bool:
    return n >= 2 and (n & (n - 1)) == 0


class SpectralFrameProcessor:
    """Turns one fixed-length PCM frame into a vector of num_filters cepstral coefficients.

    Stages (each emitted to observers in this order):
      on_start -> on_normalized -> on_windowed -> on_spectrum -> on_mel
      -> on_log_mel -> on_coefficients

    Interface:
      bank = MelFilterBank((0, 24_000), (300, 8_000), num_bins=512, num_filters=32)
      processor = SpectralFrameProcessor(bank, frame_size=1024, observers=[viewer])
      accepted = processor.analyze(frame, sample_rate=44_100)
    """

    def __init__(
        self,
        filter_bank: MelFilterBank,
        frame_size: int = 1024,
        observers: Iterable[FrameObserver] = (),
        log_floor: Optional[float] = 1e-10,
    ):
        """
        Args:
            filter_bank: Shared filter bank; num_bins must equal frame_size // 2.
            frame_size: Samples per frame, a power of two.
            observers: Stage observers, called in registration order.
            log_floor: Lower bound applied to mel energies before log10.
                       None leaves zero-energy bands at -inf.
        """
        if not _is_power_of_two(frame_size):
            raise InvalidAnalyzerConfig(f"frame_size must be a power of two >= 2, got {frame_size}")
        if filter_bank.num_bins != frame_size // 2:
            raise InvalidAnalyzerConfig(
                f"filter bank has {filter_bank.num_bins} bins, "
                f"expected frame_size // 2 = {frame_size // 2}"
            )
        if log_floor is not None and not log_floor > 0:
            raise InvalidAnalyzerConfig(f"log_floor must be positive or None, got {log_floor}")

        self.frame_size = frame_size
        self.filter_bank = filter_bank
        self.log_floor = log_floor
        self._observers: List[FrameObserver] = list(observers)

        half = frame_size // 2
        n_filters = filter_bank.num_filters
        self._samples = np.zeros(frame_size, dtype=np.float32)
        self._window = hamming_window(frame_size)
        self._window.setflags(write=False)
        self._real = np.zeros(half, dtype=np.float32)
        self._imag = np.zeros(half, dtype=np.float32)
        self._spectrum = np.zeros(half, dtype=np.float32)
        self._mel = np.zeros(n_filters, dtype=np.float32)
        self._log_mel = np.zeros(n_filters, dtype=np.float32)
        self._coefficients = np.zeros(n_filters, dtype=np.float32)

        self._lock = threading.Lock()
        # Rejected callers never hold _lock, so the drop count has its own
        self._counter_lock = threading.Lock()
        self._state = ProcessorState.IDLE
        self._sample_rate = 0.0
        self._dropped_frames = 0
        self._analyzed_frames = 0

    def add_observer(self, observer: FrameObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: FrameObserver) -> None:
        self._observers.remove(observer)

    def analyze(self, frame: np.ndarray, sample_rate: float) -> bool:
        """Analyze one frame; returns False if it was dropped because a frame is in flight.

        The frame is copied; the caller may reuse its buffer as soon as this returns.
        """
        frame = np.asarray(frame)
        if frame.shape != (self.frame_size,):
            raise ValueError(f"Expected frame of shape ({self.frame_size},), got {frame.shape}")

        if not self._lock.acquire(blocking=False):
            with self._counter_lock:
                self._dropped_frames += 1
                dropped = self._dropped_frames
            logger.debug("Already analyzing, frame skipped (%d dropped)", dropped)
            return False
        try:
            self._state = ProcessorState.ANALYZING
            self._sample_rate = float(sample_rate)
            np.copyto(self._samples, frame, casting="unsafe")
            self._run()
            self._analyzed_frames += 1
        finally:
            self._state = ProcessorState.IDLE
            self._lock.release()
        return True

    def _run(self) -> None:
        self._emit(Stage.START, self._samples)
        self._normalize()
        self._apply_window()
        self._analyze_spectrum()
        self._apply_filter_bank()
        self._analyze_log_mel()
        self._analyze_coefficients()

    def _emit(self, stage: Stage, buffer: np.ndarray) -> None:
        for observer in self._observers:
            getattr(observer, stage.value)(self, buffer)

    def _normalize(self) -> None:
        mean = self._samples.mean()
        std = self._samples.std()
        np.subtract(self._samples, mean, out=self._samples)
        # constant frames stay at zero instead of dividing by zero
        if std > 0:
            np.divide(self._samples, std, out=self._samples)
        self._emit(Stage.NORMALIZED, self._samples)

    def _apply_window(self) -> None:
        np.multiply(self._samples, self._window, out=self._samples)
        self._emit(Stage.WINDOWED, self._samples)

    def _analyze_spectrum(self) -> None:
        magnitude_spectrum(self._samples, out=self._spectrum, real=self._real, imag=self._imag)
        self._emit(Stage.SPECTRUM, self._spectrum)

    def _apply_filter_bank(self) -> None:
        self.filter_bank.apply(self._spectrum, out=self._mel)
        self._emit(Stage.MEL, self._mel)

    def _analyze_log_mel(self) -> None:
        if self.log_floor is None:
            with np.errstate(divide="ignore", invalid="ignore"):
                np.log10(self._mel, out=self._log_mel)
        else:
            np.maximum(self._mel, self.log_floor, out=self._log_mel)
            np.log10(self._log_mel, out=self._log_mel)
        self._emit(Stage.LOG_MEL, self._log_mel)

    def _analyze_coefficients(self) -> None:
        with np.errstate(invalid="ignore"):
            dct_ii(self._log_mel, out=self._coefficients)
        self._emit(Stage.COEFFICIENTS, self._coefficients)

    @property
    def state(self) -> ProcessorState:
        return self._state

    @property
    def is_analyzing(self) -> bool:
        return self._state is ProcessorState.ANALYZING

    @property
    def sample_rate(self) -> float:
        """Sample rate of the most recently accepted frame (0 before the first)."""
        return self._sample_rate

    @property
    def dropped_frames(self) -> int:
        with self._counter_lock:
            return self._dropped_frames

    @property
    def analyzed_frames(self) -> int:
        return self._analyzed_frames

    @property
    def spectrum_size(self) -> int:
        return self.frame_size // 2

    @property
    def num_filters(self) -> int:
        return self.filter_bank.num_filters

    @property
    def window(self) -> np.ndarray:
        return self._window

    @property
    def spectrum(self) -> np.ndarray:
        return self._spectrum

    @property
    def mel_energies(self) -> np.ndarray:
        return self._mel

    @property
    def log_mel(self) -> np.ndarray:
        return self._log_mel

    @property
    def coefficients(self) -> np.ndarray:
        """Coefficient vector of the last analyzed frame (overwritten by the next)."""
        return self._coefficients
