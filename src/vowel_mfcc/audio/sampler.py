"""Frame capture: mono 16-bit PCM from a microphone or a WAV file.

Samples are delivered as float32 at their raw 16-bit magnitude (no scaling
to [-1, 1]); the analyzer normalizes every frame anyway.
"""

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple, Union

import numpy as np

try:
    import sounddevice as sd
except ImportError:
    sd = None  # type: ignore

from vowel_mfcc.audio.config import AnalyzerConfig

logger = logging.getLogger(__name__)

FrameCallback = Callable[[np.ndarray, float], None]

_INT16_SCALE = 32768.0


def list_devices():
    """Return the sounddevice device listing."""
    if sd is None:
        raise ImportError("sounddevice is required for recording. pip install sounddevice")
    return sd.query_devices()


class FrameSampler:
    """Captures fixed-size mono frames and hands each one to `on_frame(samples, sample_rate)`.

    The samples array is reused for every frame: consumers must copy what
    they keep. The callback runs on the audio thread.

    Interface:
      sampler = FrameSampler(on_frame=processor.analyze)
      with sampler:
          time.sleep(5)
    """

    def __init__(
        self,
        on_frame: FrameCallback,
        config: Optional[AnalyzerConfig] = None,
    ):
        self.config = config or AnalyzerConfig()
        self.on_frame = on_frame
        self._buffer = np.zeros(self.config.frame_size, dtype=np.float32)
        self._stream = None
        self._rejected_blocks = 0

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    @property
    def rejected_blocks(self) -> int:
        """Blocks dropped because of an unexpected shape."""
        return self._rejected_blocks

    def start(self, device: Optional[int] = None) -> None:
        """Open the input stream and start delivering frames.

        Args:
            device: Input device index (None = default).
        """
        if sd is None:
            raise ImportError("sounddevice is required for recording. pip install sounddevice")
        if self._stream is not None:
            return

        stream = sd.InputStream(
            samplerate=self.config.sample_rate,
            channels=self.config.channels,
            dtype=self.config.dtype,
            blocksize=self.config.frame_size,
            device=device,
            callback=self._callback,
        )
        stream.start()
        self._stream = stream
        logger.info(
            "Capture started: %d Hz, %d-sample frames, device=%s",
            self.config.sample_rate,
            self.config.frame_size,
            device,
        )

    def stop(self) -> None:
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        logger.info("Capture stopped")

    def __enter__(self) -> "FrameSampler":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _callback(self, indata: np.ndarray, frames: int, _time: object, status: object) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        self.push_block(indata)

    def push_block(self, block: np.ndarray) -> bool:
        """Validate one captured block and forward it. Returns False if it was dropped."""
        block = np.asarray(block)
        if block.ndim == 2:
            if block.shape[1] != 1:
                self._rejected_blocks += 1
                logger.debug("Got unexpected channel count %d, block dropped", block.shape[1])
                return False
            block = block[:, 0]
        if block.shape != (self.config.frame_size,):
            self._rejected_blocks += 1
            logger.debug("Got unexpected size %d samples, block dropped", block.size)
            return False
        np.copyto(self._buffer, block, casting="unsafe")
        self.on_frame(self._buffer, float(self.config.sample_rate))
        return True


def iter_wav_frames(
    path: Union[str, Path],
    frame_size: int = 1024,
) -> Iterator[Tuple[np.ndarray, float]]:
    """Yield consecutive (frame, sample_rate) pairs from a WAV file.

    16-bit files keep their raw sample values; float files are scaled to
    the 16-bit range. Multi-channel files are averaged to mono. A trailing
    partial frame is dropped.
    """
    import scipy.io.wavfile as wavfile

    sr, audio = wavfile.read(str(path))
    if np.issubdtype(audio.dtype, np.floating):
        audio = audio.astype(np.float32) * _INT16_SCALE
    else:
        audio = audio.astype(np.float32)
    if audio.ndim > 1:
        audio = audio.mean(axis=1)
    for i in range(0, len(audio) - frame_size + 1, frame_size):
        yield audio[i : i + frame_size], float(sr)
