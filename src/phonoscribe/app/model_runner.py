"""
IPA transcription model runner.

Wraps a Hugging Face automatic-speech-recognition pipeline that emits IPA
text. The model is loaded lazily, at most once per runner, trying a GPU
device first and falling back to CPU.
"""

from __future__ import annotations

import asyncio
import fnmatch
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from phonoscribe.config import TARGET_SAMPLE_RATE, get_settings
from phonoscribe.utils.exceptions import InferenceError, ModelLoadError
from phonoscribe.utils.logger import get_logger

logger = get_logger("ModelRunner")

ProgressCallback = Callable[[Dict[str, Any]], None]
Transcriber = Callable[[np.ndarray], str]
Loader = Callable[[str, ProgressCallback], Transcriber]

# Tokenizer, feature extractor and config files plus the weights
ASSET_PATTERNS = ["*.json", "*.txt", "*.safetensors"]
FALLBACK_WEIGHTS_PATTERN = "*.bin"


class RunnerState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class DecodingConfig:
    """Decoding controls fixed per runner: beam search, no sampling."""
    max_new_tokens: int = 448
    num_beams: int = 5
    repetition_penalty: float = 1.1
    no_repeat_ngram_size: int = 4
    do_sample: bool = False
    language: Optional[str] = "en"
    task: str = "transcribe"
    chunk_length_s: int = 30
    stride_length_s: int = 5

    def generate_kwargs(self) -> Dict[str, Any]:
        kwargs = {
            "max_new_tokens": self.max_new_tokens,
            "num_beams": self.num_beams,
            "repetition_penalty": self.repetition_penalty,
            "no_repeat_ngram_size": self.no_repeat_ngram_size,
            "do_sample": self.do_sample,
            "task": self.task,
        }
        if self.language:
            kwargs["language"] = self.language
        return kwargs


def resolve_devices(preference: str = "auto") -> List[str]:
    """
    Order of devices to try: the fastest available accelerator, then CPU.

    ``preference`` may force ``cuda``, ``mps`` or ``cpu``; a forced accelerator
    is still followed by the CPU fallback.
    """
    if preference == "cpu":
        return ["cpu"]
    if preference == "cuda":
        return ["cuda:0", "cpu"]
    if preference == "mps":
        return ["mps", "cpu"]

    import torch

    if torch.cuda.is_available():
        return ["cuda:0", "cpu"]
    mps = getattr(torch.backends, "mps", None)
    if mps is not None and mps.is_available():
        return ["mps", "cpu"]
    return ["cpu"]


class TransformersPipelineLoader:
    """
    Default loader: fetch model assets from the Hub, build a transformers pipeline.

    Assets are downloaded once per loader and reused for every device attempt.
    """

    TASK = "automatic-speech-recognition"

    def __init__(self, model_id: str = None, cache_dir: str = None, decoding: DecodingConfig = None):
        settings = get_settings()
        self.model_id = model_id or settings.model_id
        self.cache_dir = cache_dir or settings.cache_dir
        self.decoding = decoding or DecodingConfig()
        self._local_dir: Optional[str] = None

    def __call__(self, device: str, progress_callback: ProgressCallback) -> Transcriber:
        os.makedirs(self.cache_dir, exist_ok=True)
        local_dir = self._fetch_assets(progress_callback)
        asr = self._build_pipeline(local_dir, device)
        decoding = self.decoding

        def transcribe(segment: np.ndarray) -> str:
            output = asr(
                {"raw": segment, "sampling_rate": TARGET_SAMPLE_RATE},
                chunk_length_s=decoding.chunk_length_s,
                stride_length_s=decoding.stride_length_s,
                return_timestamps=False,
                generate_kwargs=decoding.generate_kwargs(),
            )
            return output["text"].strip()

        return transcribe

    def _fetch_assets(self, progress_callback: ProgressCallback) -> str:
        if self._local_dir is not None:
            return self._local_dir

        from huggingface_hub import HfApi, hf_hub_download, snapshot_download

        try:
            info = HfApi().model_info(self.model_id, files_metadata=True)
        except Exception as exc:
            # Offline: rely on whatever is already in the cache
            logger.warning(f"Could not reach the Hub for {self.model_id}, using cached files: {exc}")
            self._local_dir = snapshot_download(
                self.model_id, cache_dir=self.cache_dir, local_files_only=True
            )
            return self._local_dir

        siblings = [s for s in info.siblings if self._is_asset(s.rfilename)]
        if not any(s.rfilename.endswith(".safetensors") for s in siblings):
            siblings += [s for s in info.siblings if fnmatch.fnmatch(s.rfilename, FALLBACK_WEIGHTS_PATTERN)]

        local_dir = None
        for sibling in siblings:
            name = sibling.rfilename
            progress_callback({"status": "initiate", "file": name})
            path = hf_hub_download(self.model_id, name, cache_dir=self.cache_dir)
            size = os.path.getsize(path)
            progress_callback({
                "status": "progress",
                "file": name,
                "loaded": size,
                "total": sibling.size or size,
                "progress": 100.0,
            })
            progress_callback({"status": "done", "file": name})
            # Files keep their repo-relative path inside the snapshot folder
            local_dir = path[: -len(name)].rstrip("/\\")

        if local_dir is None:
            raise FileNotFoundError(f"No model assets found in {self.model_id}")

        self._local_dir = local_dir
        return local_dir

    @staticmethod
    def _is_asset(filename: str) -> bool:
        return any(fnmatch.fnmatch(filename, pattern) for pattern in ASSET_PATTERNS)

    def _build_pipeline(self, local_dir: str, device: str):
        import torch
        from transformers import pipeline

        dtype = torch.float16 if device.startswith("cuda") else torch.float32
        logger.info(f"Building {self.TASK} pipeline from {local_dir} on {device}")
        return pipeline(self.TASK, model=local_dir, device=device, dtype=dtype)


class ModelRunner:
    """
    Lazily initialized transcription capability.

    ``initialize`` is single-flight: the first call starts the load and every
    other caller, concurrent or later, awaits the same pending task. A failed
    load is final for this runner.
    """

    def __init__(self, loader: Loader = None, devices: List[str] = None):
        self._loader = loader or TransformersPipelineLoader()
        self._devices = devices
        # One worker thread: loads and inference calls never overlap
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="model-runner")
        self._pending: Optional[asyncio.Future] = None
        self._transcriber: Optional[Transcriber] = None
        self.state = RunnerState.UNINITIALIZED
        self.device: Optional[str] = None

    @property
    def devices(self) -> List[str]:
        if self._devices is None:
            try:
                self._devices = resolve_devices(get_settings().device)
            except Exception as exc:
                logger.warning(f"Accelerator probing failed, loading on cpu only: {exc}")
                self._devices = ["cpu"]
        return self._devices

    def is_ready(self) -> bool:
        return self.state == RunnerState.READY

    async def initialize(self, progress_sink: Optional[ProgressCallback] = None) -> Transcriber:
        """
        Load the model once and return the cached capability.

        Args:
            progress_sink: Receives loader progress payloads on the event loop,
                in the order they were reported. Only the sink of the call that
                starts the load is used.

        Raises:
            ModelLoadError: If every device failed to load the model.
        """
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load(progress_sink))
        return await asyncio.shield(self._pending)

    async def _load(self, progress_sink: Optional[ProgressCallback]) -> Transcriber:
        loop = asyncio.get_running_loop()

        def report(payload: Dict[str, Any]) -> None:
            if progress_sink is not None:
                loop.call_soon_threadsafe(progress_sink, payload)

        self.state = RunnerState.LOADING
        attempts = []
        for device in self.devices:
            logger.info(f"Loading transcription model on {device}")
            try:
                transcriber = await loop.run_in_executor(self._executor, self._loader, device, report)
            except Exception as exc:
                logger.warning(f"Model load on {device} failed: {exc}")
                attempts.append((device, str(exc)))
                continue

            self._transcriber = transcriber
            self.device = device
            self.state = RunnerState.READY
            logger.info(f"✓ Transcription model ready on {device}")
            return transcriber

        self.state = RunnerState.FAILED
        details = "; ".join(f"{device}: {message}" for device, message in attempts)
        logger.error(f"Model load failed on every device ({details})")
        raise ModelLoadError(f"Failed to load transcription model ({details})", attempts=attempts)

    async def transcribe(self, segment: np.ndarray) -> str:
        """
        Run one inference call.

        Raises:
            InferenceError: If the model is not ready or the call fails.
        """
        if self._transcriber is None:
            raise InferenceError("Transcription model is not initialized")

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, self._transcriber, segment)
        except Exception as exc:
            raise InferenceError(f"Failed to transcribe segment: {exc}") from exc

    def close(self) -> None:
        self._executor.shutdown(wait=False)
