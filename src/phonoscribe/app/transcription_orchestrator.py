"""
TranscriptionOrchestrator

Actor that owns the ModelRunner and turns command messages into an ordered
stream of worker events.

Commands (one per message):
    {"cmd": "load"}                               warm up the model
    {"audio": segment | [segments], "request_id"?} transcribe segments in order

Event order for a transcription request of N segments:
    segment_start(0), segment_complete(0), ..., segment_complete(N-1), complete
A failing segment ends the request with a single ``error`` event.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from phonoscribe.app.model_runner import ModelRunner
from phonoscribe.app.transcript import assemble
from phonoscribe.models.audio_data import TranscriptionRequest
from phonoscribe.models.events import (
    Alive,
    Complete,
    Error,
    Ready,
    SegmentComplete,
    SegmentStart,
    WorkerEvent,
    load_event_from_dict,
)
from phonoscribe.models.results import ErrorKind, Failure, Result, Success
from phonoscribe.state_manager import OrchestratorState, StateManager
from phonoscribe.utils.exceptions import InferenceError, ModelLoadError
from phonoscribe.utils.logger import get_logger

logger = get_logger("TranscriptionOrchestrator")

EventSink = Callable[[WorkerEvent], None]

# Stops the run() loop; never sent by callers
_SHUTDOWN = object()


class TranscriptionOrchestrator:
    """
    Processes one message at a time and pushes events to a single sink.

    States: IDLE -> LOADING -> READY <-> BUSY, with ERRORED terminal once the
    model fails to load. A failed transcription request only abandons that
    request; the orchestrator goes back to READY.
    """

    def __init__(self, event_sink: EventSink, runner: Optional[ModelRunner] = None):
        self._emit = event_sink
        self.runner = runner or ModelRunner()
        self.state_manager = StateManager()
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._load_failure: Optional[Failure] = None

    @property
    def state(self) -> OrchestratorState:
        return self.state_manager.current_state

    # ========================================================================
    # Actor loop
    # ========================================================================

    def post(self, message: Dict[str, Any]) -> None:
        """Queue a command message. Must be called from the orchestrator's event loop."""
        self._inbox.put_nowait(message)

    def shutdown(self) -> None:
        self._inbox.put_nowait(_SHUTDOWN)

    async def run(self) -> None:
        """Announce the worker and handle queued messages in arrival order until shut down."""
        self._emit(Alive())
        while True:
            message = await self._inbox.get()
            if message is _SHUTDOWN:
                break
            try:
                await self.handle_message(message)
            except Exception as exc:
                self._recover(message, exc)

    def _recover(self, message: Any, exc: Exception) -> Failure:
        """Turn an unexpected failure while handling a message into one error event."""
        logger.exception(f"Unexpected error while handling a message: {exc}")
        request_id = message.get("request_id") if isinstance(message, dict) else None

        if self.state == OrchestratorState.LOADING:
            failure = Failure(ErrorKind.MODEL_LOAD, str(exc))
            self._load_failure = failure
            self.state_manager.transition_to(OrchestratorState.ERRORED, error=str(exc))
        else:
            failure = Failure(ErrorKind.INTERNAL, str(exc))
            if self.state == OrchestratorState.BUSY:
                self.state_manager.transition_to(OrchestratorState.READY, request_id=request_id)

        self._emit(Error(error=failure.message, request_id=request_id))
        return failure

    async def handle_message(self, message: Dict[str, Any]) -> Result:
        if message.get("cmd") == "load":
            logger.info("Command: load")
            return await self._handle_load()

        if message.get("audio") is not None:
            request = TranscriptionRequest.from_audio(message["audio"], message.get("request_id"))
            logger.info(f"Command: transcribe ({request.total} segment(s), request {request.request_id})")
            return await self._handle_transcribe(request)

        failure = Failure(ErrorKind.PROTOCOL, f"Unrecognized command message with keys {sorted(message)}")
        logger.warning(failure.message)
        self._emit(Error(error=failure.message, request_id=message.get("request_id")))
        return failure

    # ========================================================================
    # Loading
    # ========================================================================

    def _forward_progress(self, payload: Dict[str, Any]) -> None:
        event = load_event_from_dict(payload)
        if event is not None:
            self._emit(event)

    async def _ensure_loaded(self) -> Result:
        state = self.state
        if state == OrchestratorState.ERRORED:
            return self._load_failure
        if state == OrchestratorState.READY:
            return Success()

        self.state_manager.transition_to(OrchestratorState.LOADING)
        try:
            await self.runner.initialize(self._forward_progress)
        except ModelLoadError as exc:
            self._load_failure = Failure(ErrorKind.MODEL_LOAD, str(exc))
            self.state_manager.transition_to(OrchestratorState.ERRORED, error=str(exc))
            return self._load_failure

        self.state_manager.transition_to(
            OrchestratorState.READY, metadata={"device": self.runner.device}
        )
        self._emit(Ready())
        return Success()

    async def _handle_load(self) -> Result:
        if self.state == OrchestratorState.READY:
            self._emit(Ready())
            return Success()

        result = await self._ensure_loaded()
        if not result.ok:
            self._emit(Error(error=result.message))
        return result

    # ========================================================================
    # Transcription
    # ========================================================================

    async def _transcribe_segment(self, index: int, segment: np.ndarray) -> Result:
        try:
            text = await self.runner.transcribe(segment)
        except InferenceError as exc:
            logger.error(f"Segment {index} failed: {exc}")
            return Failure(ErrorKind.INFERENCE, str(exc), segment_index=index)
        return Success(text.strip())

    async def _handle_transcribe(self, request: TranscriptionRequest) -> Result:
        request_id = request.request_id

        loaded = await self._ensure_loaded()
        if not loaded.ok:
            self._emit(Error(error=loaded.message, request_id=request_id))
            return loaded

        self.state_manager.transition_to(OrchestratorState.BUSY, request_id=request_id)

        texts: List[str] = []
        for index, segment in enumerate(request.segments):
            self._emit(SegmentStart(index=index, total=request.total, request_id=request_id))

            result = await self._transcribe_segment(index, segment)
            if not result.ok:
                # Abandon the rest of this request only
                self._emit(Error(error=result.message, request_id=request_id))
                self.state_manager.transition_to(OrchestratorState.READY, request_id=request_id)
                return result

            texts.append(result.value)
            self._emit(SegmentComplete(
                index=index,
                text=result.value,
                full_transcript=assemble(texts),
                audio_segment=segment,
                request_id=request_id,
            ))

        output = assemble(texts)
        self._emit(Complete(output=output, request_id=request_id))
        self.state_manager.transition_to(OrchestratorState.READY, request_id=request_id)
        logger.info(f"Request {request_id} complete: {request.total} segment(s)")
        return Success(output)
