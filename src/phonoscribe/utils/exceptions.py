"""Exception taxonomy shared by the preprocessing and inference layers."""


class PhonoscribeError(Exception):
    """Base class for all errors raised by phonoscribe."""


class DecodeError(PhonoscribeError):
    """Raised when input audio cannot be decoded into raw samples."""

    def __init__(self, message: str = "Failed to decode audio."):
        super().__init__(message)


class ModelLoadError(PhonoscribeError):
    """Raised when the model could not be loaded on any compute device."""

    def __init__(self, message: str = "Failed to load transcription model.", attempts=None):
        super().__init__(message)
        # (device, error message) for every device that was tried
        self.attempts = list(attempts or [])


class InferenceError(PhonoscribeError):
    """Raised when a single transcription call fails."""

    def __init__(self, message: str = "Transcription failed.", segment_index=None):
        super().__init__(message)
        self.segment_index = segment_index


class RecordingNotFoundError(PhonoscribeError):
    """Raised when a saved recording or transcript does not exist."""

    def __init__(self, message: str = "Recording not found."):
        super().__init__(message)
