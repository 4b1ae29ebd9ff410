"""End-to-end streaming loop: frames -> MFCC -> (snapshot | vowel vote) -> callback.

Glue that wires the capture side, the frame processor and the downstream
consumers. The classifier is any object with `predict_proba(coefficients)`
so a stored-snapshot lookup or an external model can be plugged in.

Inference: every 250 ms the loop arms, and the next 3 consecutive coefficient
vectors form one batch that is voted into at most one vowel. Frames analyzed
while a batch is being classified are not collected.

Analysis only copies vectors. Classification and snapshot saving run after
`analyze` returns, on the thread that fed the frame (file input) or on the
thread inside `run()` (live capture), so a slow classifier never makes the
processor drop frames.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from vowel_mfcc.audio.analyzer import FrameObserver, SpectralFrameProcessor
from vowel_mfcc.audio.config import AnalyzerConfig
from vowel_mfcc.audio.filterbank import MelFilterBank
from vowel_mfcc.audio.sampler import FrameSampler
from vowel_mfcc.inference.voter import Classifier, VowelVoter
from vowel_mfcc.snapshot.recorder import SnapshotRecorder
from vowel_mfcc.snapshot.snapshot import Vowel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamingConfig:
    """Inference cadence and vote parameters."""

    inference_interval_sec: float = 0.25
    inference_batch_size: int = 3
    probability_threshold: float = 0.7
    min_votes: int = 3
    drain_poll_sec: float = 0.1

    def frames_per_inference(self, frame_duration_sec: float) -> int:
        """Frames between two arms of the batch collector."""
        return max(1, int(round(self.inference_interval_sec / frame_duration_sec)))


Frame = Tuple[np.ndarray, float]
VowelCallback = Callable[[Vowel], None]
CoefficientsCallback = Callable[[np.ndarray], None]


class StreamingVowelPipeline(FrameObserver):
    """Runs capture -> analysis -> snapshot/vote in a loop.

    Components are injected so you can use real or file audio, and any
    classifier via `predict_proba`.

    Interface:
      pipeline = StreamingVowelPipeline(
          classifier=NearestSnapshotClassifier(store.snapshots),
          recorder=SnapshotRecorder(store),
          on_vowel=print,
      )
      pipeline.run(iter_wav_frames("a.wav"))   # or pipeline.run() for the microphone
    """

    def __init__(
        self,
        config: Optional[StreamingConfig] = None,
        analyzer_config: Optional[AnalyzerConfig] = None,
        filter_bank: Optional[MelFilterBank] = None,
        processor: Optional[SpectralFrameProcessor] = None,
        classifier: Optional[Classifier] = None,
        recorder: Optional[SnapshotRecorder] = None,
        on_vowel: Optional[VowelCallback] = None,
        on_frame_coefficients: Optional[CoefficientsCallback] = None,
    ):
        self.streaming_config = config or StreamingConfig()
        self.analyzer_config = analyzer_config or AnalyzerConfig()
        if processor is None:
            bank = filter_bank or MelFilterBank.from_config(self.analyzer_config)
            processor = SpectralFrameProcessor(
                bank,
                frame_size=self.analyzer_config.frame_size,
                log_floor=self.analyzer_config.log_floor,
            )
        self.processor = processor
        self.classifier = classifier
        self.recorder = recorder
        self.on_vowel = on_vowel or (lambda v: None)
        self.on_frame_coefficients = on_frame_coefficients
        self.voter = VowelVoter(
            batch_size=self.streaming_config.inference_batch_size,
            threshold=self.streaming_config.probability_threshold,
            min_votes=self.streaming_config.min_votes,
        )
        self.frames_per_inference = self.streaming_config.frames_per_inference(
            self.analyzer_config.frame_duration_sec
        )

        if self.recorder is not None:
            self.processor.add_observer(self.recorder)
        self.processor.add_observer(self)

        self._frame_count = 0
        self._armed = False
        self._inferring = False
        self._ready_batch: Optional[List[np.ndarray]] = None
        self._state_lock = threading.Lock()
        self._vowels: List[Vowel] = []
        self._stop_event = threading.Event()
        self._work_ready = threading.Event()

    def stop(self) -> None:
        """Signal the run loop to exit."""
        self._stop_event.set()
        self._work_ready.set()

    def on_coefficients(self, processor: SpectralFrameProcessor, coefficients: np.ndarray) -> None:
        if self.on_frame_coefficients is not None:
            self.on_frame_coefficients(coefficients)
        self._frame_count += 1
        if self.classifier is None:
            return
        with self._state_lock:
            if self._frame_count % self.frames_per_inference == 0:
                self._armed = True
            if not self._armed or self._inferring:
                return
            self.voter.add(coefficients)
            if self.voter.ready:
                self._ready_batch = self.voter.take_batch()
                self._armed = False
                self._inferring = True

    def _run_inference(self) -> None:
        with self._state_lock:
            batch, self._ready_batch = self._ready_batch, None
        if batch is None:
            return
        try:
            vowel = self.voter.decide(self.classifier, batch)
        finally:
            with self._state_lock:
                self._inferring = False
        if vowel is not None:
            self._vowels.append(vowel)
            self.on_vowel(vowel)

    def drain(self) -> None:
        """Save captured snapshots and classify a ready batch, outside of analysis."""
        if self.recorder is not None:
            self.recorder.flush()
        self._run_inference()

    def process_frame(self, frame: np.ndarray, sample_rate: float) -> bool:
        """Feed one frame, then drain on this thread; False if the processor dropped it."""
        accepted = self.processor.analyze(frame, sample_rate)
        self.drain()
        return accepted

    def _on_live_frame(self, frame: np.ndarray, sample_rate: float) -> bool:
        accepted = self.processor.analyze(frame, sample_rate)
        self._work_ready.set()
        return accepted

    def run(
        self,
        frames: Optional[Iterable[Frame]] = None,
        device: Optional[int] = None,
        duration_sec: Optional[float] = None,
    ) -> None:
        """Run until stopped, the frame source is exhausted or duration_sec elapses.

        Args:
            frames: (frame, sample_rate) pairs, e.g. from iter_wav_frames. If
                None, capture from the microphone through FrameSampler.
            device: Microphone device index (ignored if frames is provided).
            duration_sec: Stop live capture after this many seconds.
        """
        self._stop_event.clear()
        if frames is not None:
            for frame, sample_rate in frames:
                if self._stop_event.is_set():
                    break
                self.process_frame(frame, sample_rate)
            return

        # The capture callback only analyzes; this thread saves and classifies.
        deadline = None if duration_sec is None else time.monotonic() + duration_sec
        sampler = FrameSampler(on_frame=self._on_live_frame, config=self.analyzer_config)
        sampler.start(device=device)
        try:
            while not self._stop_event.is_set():
                timeout = self.streaming_config.drain_poll_sec
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    timeout = min(timeout, remaining)
                if self._work_ready.wait(timeout=timeout):
                    self._work_ready.clear()
                    self.drain()
        finally:
            sampler.stop()
            self.drain()
        logger.info(
            "Analyzed %d frames, dropped %d",
            self.processor.analyzed_frames,
            self.processor.dropped_frames,
        )

    def run_for_n_frames(self, n: int, frames: Iterator[Frame]) -> List[Vowel]:
        """Feed at most n frames; used for tests. Returns vowels decided meanwhile."""
        self._stop_event.clear()
        start = len(self._vowels)
        for frame, sample_rate in itertools.islice(frames, n):
            if self._stop_event.is_set():
                break
            self.process_frame(frame, sample_rate)
        return self._vowels[start:]
