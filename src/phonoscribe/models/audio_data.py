from dataclasses import dataclass, field
from typing import List
import uuid

import numpy as np


@dataclass
class AudioStream:
    samples: np.ndarray   # float32 audio samples, mono
    sample_rate: int      # sample rate in Hz

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate if self.sample_rate else 0.0


@dataclass
class TranscriptionRequest:
    segments: List[np.ndarray]
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_audio(cls, audio, request_id=None) -> "TranscriptionRequest":
        """Accept a single segment or a list of segments, as the ``audio`` command does."""
        segments = list(audio) if isinstance(audio, (list, tuple)) else [audio]
        if request_id is None:
            return cls(segments=segments)
        return cls(segments=segments, request_id=request_id)

    @property
    def total(self) -> int:
        return len(self.segments)
