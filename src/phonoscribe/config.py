"""
Runtime configuration.

Values are read from the environment (and a local ``.env`` file, if present)
the first time :func:`get_settings` is called.

Environment variables:
- PHONOSCRIBE_MODEL_ID: Hugging Face repo of the IPA transcription model
- PHONOSCRIBE_CACHE_DIR: local cache for downloaded model assets
- PHONOSCRIBE_DEVICE: auto, cuda, mps or cpu
- PHONOSCRIBE_LOG_FILE: rotating log file path
- PHONOSCRIBE_RECORDINGS_DIR: where exported recordings and transcripts go
- PHONOSCRIBE_DICTIONARY: optional English IPA dictionary file
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

TARGET_SAMPLE_RATE = 16_000

DEFAULT_MODEL_ID = "neurlang/ipa-whisper-base"


@dataclass
class Settings:
    model_id: str = DEFAULT_MODEL_ID
    cache_dir: str = "./models/hf_cache"
    device: str = "auto"
    log_file: str = "phonoscribe.log"
    recordings_dir: str = "./recordings"
    dictionary_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            model_id=os.getenv("PHONOSCRIBE_MODEL_ID", DEFAULT_MODEL_ID),
            cache_dir=os.getenv("PHONOSCRIBE_CACHE_DIR", "./models/hf_cache"),
            device=os.getenv("PHONOSCRIBE_DEVICE", "auto").lower(),
            log_file=os.getenv("PHONOSCRIBE_LOG_FILE", "phonoscribe.log"),
            recordings_dir=os.getenv("PHONOSCRIBE_RECORDINGS_DIR", "./recordings"),
            dictionary_path=os.getenv("PHONOSCRIBE_DICTIONARY") or None,
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
