"""CLI for MFCC analysis, snapshot recording and vowel inference."""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from vowel_mfcc.audio import AnalyzerConfig, MelFilterBank, SpectralFrameProcessor, iter_wav_frames
from vowel_mfcc.audio.sampler import list_devices
from vowel_mfcc.inference import NearestSnapshotClassifier
from vowel_mfcc.pipeline import StreamingConfig, StreamingVowelPipeline
from vowel_mfcc.snapshot import SnapshotRecorder, SnapshotStore, Vowel
from vowel_mfcc.snapshot.store import DEFAULT_STORE_PATH


def _print_coefficients(coefficients: np.ndarray, count: int) -> None:
    print(" ".join(f"{c:8.3f}" for c in coefficients[:count]))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Extract MFCCs from live audio or a WAV file (mono, 1024-sample frames)"
    )
    parser.add_argument(
        "--file",
        "-f",
        type=Path,
        default=None,
        help="Analyze this WAV file instead of the microphone",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=5.0,
        help="Live capture duration in seconds (default: 5)",
    )
    parser.add_argument(
        "--device",
        type=int,
        default=None,
        help="Input device index (list with --list-devices)",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio input devices and exit",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=DEFAULT_STORE_PATH,
        help=f"Snapshot file (default: {DEFAULT_STORE_PATH})",
    )
    parser.add_argument(
        "--snapshot",
        choices=[v.identifier for v in Vowel],
        default=None,
        help="Record a snapshot of the first analyzed frame labelled with this vowel",
    )
    parser.add_argument(
        "--infer",
        action="store_true",
        help="Classify vowels against the stored snapshots",
    )
    parser.add_argument(
        "--coefficients",
        type=int,
        default=16,
        help="Number of coefficients to print per frame (default: 16, 0 = none)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_devices:
        try:
            print(list_devices())
        except ImportError:
            print("sounddevice not installed: pip install sounddevice", file=sys.stderr)
            sys.exit(1)
        return

    config = AnalyzerConfig()
    bank = MelFilterBank.from_config(config)
    processor = SpectralFrameProcessor(bank, frame_size=config.frame_size, log_floor=config.log_floor)

    store = SnapshotStore(args.store)
    recorder = None
    if args.snapshot is not None:
        recorder = SnapshotRecorder(
            store,
            num_coefficients=config.snapshot_coefficients,
            on_snapshot=lambda s: print(f"Snapshot {s.id} saved as {s.vowel.identifier!r}"),
        )
        recorder.request(Vowel.from_identifier(args.snapshot))

    classifier = None
    if args.infer:
        classifier = NearestSnapshotClassifier(store.snapshots)
        if len(classifier) == 0:
            print(f"No snapshots in {args.store}; record some with --snapshot", file=sys.stderr)
            sys.exit(1)

    on_coefficients = None
    if args.coefficients > 0:
        on_coefficients = lambda c: _print_coefficients(c, args.coefficients)  # noqa: E731

    pipeline = StreamingVowelPipeline(
        config=StreamingConfig(),
        analyzer_config=config,
        processor=processor,
        classifier=classifier,
        recorder=recorder,
        on_vowel=lambda v: print(f"vowel: {v.display_name}"),
        on_frame_coefficients=on_coefficients,
    )

    if args.file is not None:
        if not args.file.exists():
            print(f"File not found: {args.file}", file=sys.stderr)
            sys.exit(1)
        pipeline.run(iter_wav_frames(args.file, config.frame_size))
    else:
        print(f"Capturing {args.duration}s (mono {config.sample_rate} Hz)... Ctrl+C to stop.")
        try:
            pipeline.run(device=args.device, duration_sec=args.duration)
        except KeyboardInterrupt:
            print("\nStopped.")

    print(f"Analyzed {processor.analyzed_frames} frames, dropped {processor.dropped_frames}.")


if __name__ == "__main__":
    main()
