import io

import numpy as np
import pytest
import soundfile as sf

from conftest import silence, tone
from phonoscribe.input import (
    AudioPreprocessor,
    SegmenterConfig,
    decode_audio,
    encode_wav,
    normalize_peak,
    resample_to_target,
    segment_on_silence,
    wav_to_audiostream,
)
from phonoscribe.utils.exceptions import DecodeError


# ----------------------------------------------------------------------------
# Normalizer
# ----------------------------------------------------------------------------

def test_normalize_scales_peak_to_target():
    samples = np.array([0.1, -0.3, 0.2], dtype=np.float32)
    result = normalize_peak(samples)
    assert np.isclose(np.max(np.abs(result)), 0.9)
    assert np.isclose(result[0], 0.3)


def test_normalize_preserves_sample_ratios():
    rng = np.random.default_rng(7)
    samples = rng.uniform(-0.4, 0.4, 2000).astype(np.float32)
    result = normalize_peak(samples)

    assert np.isclose(np.max(np.abs(result)), 0.9)
    nonzero = np.abs(samples) > 1e-3
    reference = np.flatnonzero(nonzero)[0]
    assert np.allclose(
        result[nonzero] / result[reference],
        samples[nonzero] / samples[reference],
        rtol=1e-4,
    )


def test_normalize_does_not_mutate_input():
    samples = np.array([0.1, -0.3, 0.2], dtype=np.float32)
    before = samples.copy()
    normalize_peak(samples)
    assert np.array_equal(samples, before)


def test_normalize_leaves_silence_and_full_scale_unchanged():
    quiet = np.zeros(100, dtype=np.float32)
    full = np.array([0.5, -1.0, 0.25], dtype=np.float32)
    assert normalize_peak(quiet) is quiet
    assert normalize_peak(full) is full


def test_normalize_is_idempotent():
    once = normalize_peak(tone(0.5, amplitude=0.2))
    twice = normalize_peak(once)
    assert np.allclose(once, twice, atol=1e-6)


# ----------------------------------------------------------------------------
# Segmenter
# ----------------------------------------------------------------------------

def test_segmenter_splits_on_long_pause():
    samples = np.concatenate([tone(5), silence(2), tone(5)])
    segments = segment_on_silence(samples)

    assert len(segments) == 2
    # First cut keeps 0.2s of the pause
    assert len(segments[0]) == 80000 + 3200
    # Second segment starts 0.1s before the sound resumes
    assert len(segments[1]) == len(samples) - (112000 - 1600)


def test_segmenter_covers_buffer_except_trimmed_pauses():
    config = SegmenterConfig()
    padding = config.padding_samples
    samples = np.concatenate([tone(2), silence(1), tone(1.5), silence(2), tone(1)])
    # (silence start, index where sound resumes) of each long pause
    pauses = [(32000, 48000), (72000, 104000)]

    ranges = []
    start = 0
    for silence_start, sound_index in pauses:
        ranges.append((start, silence_start + padding))
        start = sound_index - padding // 2
    ranges.append((start, len(samples)))

    segments = segment_on_silence(samples, config)
    assert len(segments) == len(ranges)

    coverage = np.zeros(len(samples), dtype=int)
    for segment, (start, end) in zip(segments, ranges):
        assert np.array_equal(segment, samples[start:end])
        coverage[start:end] += 1

    dropped = np.zeros(len(samples), dtype=bool)
    for silence_start, sound_index in pauses:
        dropped[silence_start + padding:sound_index - padding // 2] = True
    assert np.all(coverage[~dropped] == 1)
    assert np.all(coverage[dropped] == 0)


def test_segmenter_ignores_short_pauses():
    samples = np.concatenate([tone(1), silence(0.5), tone(1)])
    segments = segment_on_silence(samples)
    assert len(segments) == 1
    assert np.array_equal(segments[0], samples)


def test_segmenter_short_input_is_one_segment():
    samples = tone(0.05)
    segments = segment_on_silence(samples)
    assert len(segments) == 1
    assert np.array_equal(segments[0], samples)


def test_segmenter_returns_independent_copies():
    samples = np.concatenate([tone(2), silence(1), tone(2)])
    segments = segment_on_silence(samples)
    segments[0][:] = 0.0
    assert np.max(np.abs(samples[:100])) > 0.0


def test_segmenter_segments_are_never_empty():
    samples = np.concatenate([tone(1), silence(1), tone(1), silence(1), tone(0.5)])
    segments = segment_on_silence(samples)
    assert len(segments) == 3
    assert all(len(segment) > 0 for segment in segments)


def test_segmenter_trailing_silence_does_not_cut():
    samples = np.concatenate([tone(2), silence(3)])
    segments = segment_on_silence(samples)
    assert len(segments) == 1
    assert len(segments[0]) == len(samples)


def test_segmenter_empty_input():
    assert segment_on_silence(np.zeros(0, dtype=np.float32)) == []


def test_segmenter_config_derived_sample_counts():
    config = SegmenterConfig()
    assert config.min_silence_samples == 12800
    assert config.padding_samples == 3200
    assert config.min_segment_samples == 4800
    assert config.min_tail_samples == 1600


# ----------------------------------------------------------------------------
# Resampler / decoder
# ----------------------------------------------------------------------------

def test_resample_identity_at_target_rate():
    samples = tone(0.5)
    assert resample_to_target(samples, 16000) is samples


def test_resample_produces_exact_length():
    samples = tone(1.0, sr=44100)
    resampled = resample_to_target(samples, 44100)
    assert len(resampled) == 16000
    assert resampled.dtype == np.float32


def test_resample_honours_declared_duration():
    samples = tone(1.0, sr=48000)
    resampled = resample_to_target(samples, 48000, duration=1.25)
    assert len(resampled) == 20000


def test_decode_keeps_first_channel():
    left = tone(0.5, sr=22050)
    right = np.zeros_like(left)
    buffer = io.BytesIO()
    sf.write(buffer, np.stack([left, right], axis=1), 22050, format="WAV", subtype="FLOAT")

    decoded = decode_audio(buffer.getvalue())
    assert decoded.sample_rate == 22050
    assert decoded.samples.ndim == 1
    assert np.allclose(decoded.samples, left, atol=1e-6)


def test_decode_garbage_raises():
    with pytest.raises(DecodeError):
        decode_audio(b"definitely not an audio container")


def test_decode_empty_container_raises():
    with pytest.raises(DecodeError):
        decode_audio(encode_wav(np.zeros(0, dtype=np.float32)))


def test_wav_to_audiostream_resamples():
    buffer = io.BytesIO()
    sf.write(buffer, tone(2.0, sr=8000), 8000, format="WAV")
    stream = wav_to_audiostream(buffer.getvalue())
    assert stream.sample_rate == 16000
    assert len(stream.samples) == 32000
    assert np.isclose(stream.duration, 2.0)


# ----------------------------------------------------------------------------
# Preprocessor
# ----------------------------------------------------------------------------

def test_preprocessor_end_to_end(tmp_path):
    path = tmp_path / "interview.wav"
    samples = np.concatenate([tone(3, amplitude=0.3), silence(1.5), tone(3, amplitude=0.3)])
    sf.write(str(path), samples, 16000)

    segments = AudioPreprocessor().process(str(path))

    assert len(segments) == 2
    peak = max(float(np.max(np.abs(segment))) for segment in segments)
    assert np.isclose(peak, 0.9, atol=1e-3)


def test_preprocessor_rejects_undecodable_input():
    with pytest.raises(DecodeError):
        AudioPreprocessor().process(b"\x00\x01\x02")
