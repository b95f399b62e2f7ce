import struct

import numpy as np

from phonoscribe.input import encode_wav, write_wav
from phonoscribe.input.wav_writer import float_to_pcm16


def test_header_is_44_bytes():
    data = encode_wav(np.zeros(10, dtype=np.float32))
    assert len(data) == 44 + 20
    assert data[0:4] == b"RIFF"
    assert data[8:12] == b"WAVE"
    assert data[36:40] == b"data"


def test_header_declares_mono_16khz_16bit():
    data = encode_wav(np.zeros(4, dtype=np.float32))
    channels, sample_rate, byte_rate, block_align, bits = struct.unpack("<HIIHH", data[22:36])
    assert channels == 1
    assert sample_rate == 16000
    assert byte_rate == 32000
    assert block_align == 2
    assert bits == 16
    assert struct.unpack("<I", data[40:44])[0] == 8


def test_quantization_is_asymmetric_and_clipped():
    samples = np.array([-1.0, 1.0, 0.0, 2.0, -2.0], dtype=np.float32)
    pcm = float_to_pcm16(samples)
    assert pcm.tolist() == [-32768, 32767, 0, 32767, -32768]


def test_payload_is_little_endian():
    data = encode_wav(np.array([1.0], dtype=np.float32))
    assert data[44:46] == b"\xff\x7f"


def test_write_wav_creates_parent_dirs(tmp_path):
    path = write_wav(tmp_path / "nested" / "segment-000.wav", np.zeros(16, dtype=np.float32))
    assert path.exists()
    assert path.stat().st_size == 44 + 32
