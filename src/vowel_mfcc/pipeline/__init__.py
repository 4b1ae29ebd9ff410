"""End-to-end streaming vowel pipeline."""

from vowel_mfcc.pipeline.streaming_loop import StreamingConfig, StreamingVowelPipeline

__all__ = ["StreamingConfig", "StreamingVowelPipeline"]
