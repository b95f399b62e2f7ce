from .model_runner import DecodingConfig, ModelRunner, TransformersPipelineLoader, resolve_devices
from .transcript import assemble, clean_ipa_output
from .transcription_orchestrator import TranscriptionOrchestrator
from .worker import TranscriptionWorker

__all__ = [
    'DecodingConfig',
    'ModelRunner',
    'TransformersPipelineLoader',
    'resolve_devices',
    'assemble',
    'clean_ipa_output',
    'TranscriptionOrchestrator',
    'TranscriptionWorker',
]
