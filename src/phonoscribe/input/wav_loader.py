import io
from typing import BinaryIO, Optional, Union

import librosa
import numpy as np
import soundfile as sf

from phonoscribe.config import TARGET_SAMPLE_RATE
from phonoscribe.models.audio_data import AudioStream
from phonoscribe.utils.exceptions import DecodeError
from phonoscribe.utils.logger import get_logger

logger = get_logger("WavLoader")

AudioSource = Union[str, bytes, bytearray, BinaryIO]

# soxr_hq is deterministic for identical input
RESAMPLE_TYPE = "soxr_hq"


def decode_audio(source: AudioSource) -> AudioStream:
    """
    Decode an audio container into float32 samples at its native rate.

    Args:
        source: File path, raw container bytes, or a binary file object.

    Returns:
        AudioStream: Channel 0 of the decode and its sample rate.

    Raises:
        DecodeError: If the container cannot be decoded or holds no samples.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(bytes(source))

    try:
        samples, sample_rate = sf.read(source, dtype="float32", always_2d=False)
    except (RuntimeError, OSError, TypeError, ValueError) as exc:
        raise DecodeError(f"Could not decode audio: {exc}") from exc

    # Ensure mono
    if samples.ndim > 1:
        samples = samples[:, 0]

    if samples.size == 0:
        raise DecodeError("Decoded audio contains no samples")

    return AudioStream(samples=np.ascontiguousarray(samples, dtype=np.float32),
                       sample_rate=int(sample_rate))


def resample_to_target(
    samples: np.ndarray,
    source_rate: int,
    duration: Optional[float] = None,
) -> np.ndarray:
    """
    Convert a mono channel to 16 kHz.

    Audio already at 16 kHz is returned as-is. Otherwise the output holds exactly
    ``round(duration * 16000)`` samples, where ``duration`` defaults to the
    length of the input in seconds.
    """
    if source_rate == TARGET_SAMPLE_RATE:
        return samples

    if duration is None:
        duration = len(samples) / source_rate
    target_length = int(round(duration * TARGET_SAMPLE_RATE))

    resampled = librosa.resample(
        np.asarray(samples, dtype=np.float32),
        orig_sr=source_rate,
        target_sr=TARGET_SAMPLE_RATE,
        res_type=RESAMPLE_TYPE,
    )
    resampled = librosa.util.fix_length(resampled, size=target_length)

    logger.debug(f"Resampled {len(samples)} samples @ {source_rate}Hz -> {target_length} @ {TARGET_SAMPLE_RATE}Hz")
    return resampled.astype(np.float32, copy=False)


def wav_to_audiostream(source: AudioSource) -> AudioStream:
    """
    Load an audio file and convert it to a 16 kHz mono AudioStream.

    Args:
        source: File path, raw container bytes, or a binary file object.

    Returns:
        AudioStream: Dataclass with `samples` (float32) and `sample_rate`.
    """
    decoded = decode_audio(source)
    samples = resample_to_target(decoded.samples, decoded.sample_rate, decoded.duration)
    return AudioStream(samples=samples, sample_rate=TARGET_SAMPLE_RATE)
