"""
Audio preprocessing for the IPA transcription model.

Turns a decoded recording into the ordered list of sample segments the
transcription worker consumes:

    decode -> resample to 16 kHz mono -> peak normalize -> split on silence

Segments are cut at pauses so each one stays well inside the model's
effective context window without splitting words.
"""

from dataclasses import dataclass
from typing import List

import numpy as np

from phonoscribe.config import TARGET_SAMPLE_RATE
from phonoscribe.input.wav_loader import AudioSource, decode_audio, resample_to_target
from phonoscribe.models.audio_data import AudioStream
from phonoscribe.utils.logger import get_logger

logger = get_logger("AudioPreprocessor")

TARGET_PEAK = 0.9


@dataclass
class SegmenterConfig:
    """Silence segmentation parameters, expressed at 16 kHz."""
    silence_threshold: float = 0.015
    min_silence_seconds: float = 0.8
    padding_seconds: float = 0.2
    min_segment_seconds: float = 0.3
    min_tail_seconds: float = 0.1
    sample_rate: int = TARGET_SAMPLE_RATE

    # Derived parameters
    @property
    def min_silence_samples(self) -> int:
        return int(self.min_silence_seconds * self.sample_rate)

    @property
    def padding_samples(self) -> int:
        return int(self.padding_seconds * self.sample_rate)

    @property
    def min_segment_samples(self) -> int:
        return int(self.min_segment_seconds * self.sample_rate)

    @property
    def min_tail_samples(self) -> int:
        return int(self.min_tail_seconds * self.sample_rate)


def normalize_peak(samples: np.ndarray, target_peak: float = TARGET_PEAK) -> np.ndarray:
    """
    Scale samples so the peak absolute amplitude equals ``target_peak``.

    Silent input (peak 0) and input already peaking at exactly 1.0 are
    returned unchanged. The input array is never modified.
    """
    if len(samples) == 0:
        return samples

    peak = float(np.max(np.abs(samples)))
    if peak == 0.0 or peak == 1.0:
        return samples

    return (samples * (target_peak / peak)).astype(np.float32, copy=False)


def _silence_runs(below: np.ndarray):
    """Yield (start, end) index pairs of consecutive True values, end exclusive."""
    padded = np.concatenate(([False], below, [False])).astype(np.int8)
    edges = np.flatnonzero(np.diff(padded))
    return zip(edges[0::2], edges[1::2])


def segment_on_silence(samples: np.ndarray, config: SegmenterConfig = None) -> List[np.ndarray]:
    """
    Split a 16 kHz buffer into segments at long pauses.

    A pause is a run of at least ``min_silence_samples`` below the silence
    threshold. When sound resumes after a pause, the audio since the last cut
    becomes a segment if it is longer than ``min_segment_samples``. The cut
    keeps ``padding_samples`` of the pause and the next segment starts half a
    padding window before the sound resumes.

    Returns:
        Independent copies of each segment, in temporal order. Non-empty input
        always yields at least one segment.
    """
    config = config or SegmenterConfig()
    n = len(samples)
    if n == 0:
        return []

    padding = config.padding_samples
    below = np.abs(samples) < config.silence_threshold

    segments: List[np.ndarray] = []
    segment_start = 0

    for silence_start, sound_index in _silence_runs(below):
        silence_length = sound_index - silence_start
        # Only a pause that gives way to sound again closes a segment
        if silence_length < config.min_silence_samples or sound_index >= n:
            continue

        if silence_start - segment_start > config.min_segment_samples:
            segment_end = min(silence_start + padding, n)
            segments.append(samples[segment_start:segment_end].copy())
            segment_start = max(sound_index - padding // 2, 0)

    if n - segment_start > config.min_tail_samples:
        segments.append(samples[segment_start:].copy())

    if not segments:
        segments.append(samples.copy())

    logger.debug(f"Split {n} samples into {len(segments)} segment(s)")
    return segments


class AudioPreprocessor:
    """
    Decode, resample, normalize and segment a recording.

    Example:
        >>> preprocessor = AudioPreprocessor()
        >>> segments = preprocessor.process("interview.wav")
        >>> print(f"{len(segments)} segments")
    """

    def __init__(self, segmenter_config: SegmenterConfig = None, target_peak: float = TARGET_PEAK):
        self.segmenter_config = segmenter_config or SegmenterConfig()
        self.target_peak = target_peak

    def process(self, source: AudioSource) -> List[np.ndarray]:
        """
        Preprocess an encoded recording.

        Raises:
            DecodeError: If the source cannot be decoded.
        """
        decoded = decode_audio(source)
        logger.info(f"Decoded {decoded.duration:.2f}s of audio @ {decoded.sample_rate}Hz")
        return self.process_stream(decoded)

    def process_stream(self, audio: AudioStream) -> List[np.ndarray]:
        """Preprocess samples that were already decoded."""
        samples = resample_to_target(audio.samples, audio.sample_rate, audio.duration)
        normalized = normalize_peak(samples, self.target_peak)
        segments = segment_on_silence(normalized, self.segmenter_config)
        logger.info(f"Prepared {len(segments)} segment(s) from {len(normalized) / TARGET_SAMPLE_RATE:.2f}s of audio")
        return segments
