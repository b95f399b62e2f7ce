from .preprocessing import AudioPreprocessor, SegmenterConfig, normalize_peak, segment_on_silence
from .wav_loader import decode_audio, resample_to_target, wav_to_audiostream
from .wav_writer import encode_wav, write_wav

__all__ = [
    'AudioPreprocessor',
    'SegmenterConfig',
    'normalize_peak',
    'segment_on_silence',
    'decode_audio',
    'resample_to_target',
    'wav_to_audiostream',
    'encode_wav',
    'write_wav',
]
