import io
import wave
from pathlib import Path
from typing import Union

import numpy as np

from phonoscribe.config import TARGET_SAMPLE_RATE


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Quantize float samples to int16, clipping to [-1, 1] first."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    # Asymmetric PCM range: -32768 .. 32767
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return scaled.astype("<i2")


def encode_wav(samples: np.ndarray, sample_rate: int = TARGET_SAMPLE_RATE) -> bytes:
    """Encode mono float samples as a 16-bit PCM WAV container (44-byte header)."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(float_to_pcm16(samples).tobytes())
    return buffer.getvalue()


def write_wav(path: Union[str, Path], samples: np.ndarray, sample_rate: int = TARGET_SAMPLE_RATE) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_wav(samples, sample_rate))
    return path
