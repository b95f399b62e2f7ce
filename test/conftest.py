import os
import tempfile

import numpy as np
import pytest

# Keep logs, recordings and model cache out of the working tree
_SCRATCH = tempfile.mkdtemp(prefix="phonoscribe-test-")
os.environ.setdefault("PHONOSCRIBE_LOG_FILE", os.path.join(_SCRATCH, "phonoscribe.log"))
os.environ.setdefault("PHONOSCRIBE_RECORDINGS_DIR", os.path.join(_SCRATCH, "recordings"))
os.environ.setdefault("PHONOSCRIBE_CACHE_DIR", os.path.join(_SCRATCH, "hf_cache"))
os.environ.setdefault("PHONOSCRIBE_DEVICE", "cpu")

SAMPLE_RATE = 16000


def tone(seconds: float, amplitude: float = 0.5, freq: float = 440.0, sr: int = SAMPLE_RATE) -> np.ndarray:
    t = np.arange(int(seconds * sr)) / sr
    return (amplitude * np.cos(2 * np.pi * freq * t)).astype(np.float32)


def silence(seconds: float, sr: int = SAMPLE_RATE) -> np.ndarray:
    return np.zeros(int(seconds * sr), dtype=np.float32)


class FakeLoader:
    """
    Stands in for the Hub download + transformers pipeline.

    ``fail_on`` lists devices whose load raises; ``transcribe`` maps a segment
    to its text (default: the first sample value as an integer, e.g. "t3").
    """

    def __init__(self, fail_on=(), transcribe=None, assets=("model.safetensors",)):
        self.fail_on = set(fail_on)
        self.transcribe = transcribe or (lambda segment: f"t{int(segment[0])}")
        self.assets = assets
        self.calls = []

    def __call__(self, device, progress_callback):
        self.calls.append(device)
        for name in self.assets:
            progress_callback({"status": "initiate", "file": name})
            progress_callback({"status": "progress", "file": name, "loaded": 10, "total": 10, "progress": 100.0})
            progress_callback({"status": "done", "file": name})
        if device in self.fail_on:
            raise RuntimeError(f"{device} unavailable")
        return self.transcribe


def marked_segment(value: float, length: int = 160) -> np.ndarray:
    """A segment whose first sample identifies it to FakeLoader."""
    return np.full(length, value, dtype=np.float32)


@pytest.fixture
def fake_loader():
    return FakeLoader()
