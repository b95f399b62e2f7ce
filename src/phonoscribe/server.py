"""
FastAPI Server Entry Point

HTTP and WebSocket surface for the phonoscribe transcription worker.

Clients:
  - POST an audio file to /transcribe; the server decodes and segments it,
    stores the recording and hands the segments to the background worker
  - Connect to /ws to receive the worker's events as they happen
    (download progress, ready, segment_start, segment_complete, complete, error)
  - Convert plain text to IPA with /ipa
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from phonoscribe.app.model_runner import ModelRunner
from phonoscribe.app.transcript import clean_ipa_output
from phonoscribe.app.worker import TranscriptionWorker
from phonoscribe.config import get_settings
from phonoscribe.data.recording_store import DirectoryRecordingStore
from phonoscribe.input import AudioPreprocessor, encode_wav, wav_to_audiostream
from phonoscribe.phonetics import IpaDictionary, transcribe_to_ipa
from phonoscribe.utils.exceptions import DecodeError, RecordingNotFoundError
from phonoscribe.utils.logger import get_logger

logger = get_logger("PhonoscribeServer")

VERSION = "1.0.0"

# Replaced in tests to run the worker against a fake model
runner_factory = ModelRunner


# ============================================================================
# Pydantic Models for API
# ============================================================================

class StatusResponse(BaseModel):
    """Current worker status"""
    state: str
    timestamp: str
    request_id: Optional[str] = None
    error: Optional[str] = None
    device: Optional[str] = None
    last_transcript: Optional[str] = None
    pending_requests: int = 0


class TranscribeResponse(BaseModel):
    """Accepted transcription request"""
    request_id: str
    segments: int
    duration: float
    recording_id: Optional[int] = None


class IpaRequest(BaseModel):
    text: str
    language: str = "en"


class IpaResponse(BaseModel):
    text: str
    language: str
    ipa: str


# ============================================================================
# WebSocket Connection Manager
# ============================================================================

class ConnectionManager:
    """Manages WebSocket connections for real-time worker events"""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"WebSocket connected. Total: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info(f"WebSocket disconnected. Total: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Broadcast message to all connected clients"""
        disconnected = []
        for connection in self.active_connections:
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to client: {e}")
                disconnected.append(connection)

        # Clean up disconnected clients
        for conn in disconnected:
            self.disconnect(conn)


def to_json_event(message: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the raw ``audioSegment`` samples with their length for JSON clients."""
    if "audioSegment" not in message:
        return dict(message)
    event = {key: value for key, value in message.items() if key != "audioSegment"}
    event["audioSegmentSamples"] = int(len(message["audioSegment"]))
    return event


# ============================================================================
# Phonoscribe Server
# ============================================================================

class PhonoscribeServer:
    """
    Owns the background worker and fans its events out to WebSocket clients.

    Flow per upload:
      decode -> resample -> normalize -> segment -> worker
      worker events -> broadcast; ``complete`` -> transcript saved with the recording
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        settings = get_settings()
        self._loop = loop
        self.connection_manager = ConnectionManager()
        self.preprocessor = AudioPreprocessor()
        self.store = DirectoryRecordingStore(settings.recordings_dir)
        self.dictionary = (
            IpaDictionary.from_file(settings.dictionary_path)
            if settings.dictionary_path else IpaDictionary()
        )
        self.worker = TranscriptionWorker(on_message=self._on_worker_message, runner_factory=runner_factory)

        self._events: asyncio.Queue = asyncio.Queue()
        self._forwarder: Optional[asyncio.Task] = None

        # request_id -> recording_id awaiting its transcript
        self._pending: Dict[str, Optional[int]] = {}
        self._last_transcript: Optional[str] = None

    def start(self):
        self._forwarder = self._loop.create_task(self._forward_events())
        self.worker.start()
        self.worker.load()

    async def stop(self):
        # Joining the worker thread blocks
        await run_in_threadpool(self.worker.terminate)
        if self._forwarder is not None:
            self._forwarder.cancel()

    # ========================================================================
    # Worker events
    # ========================================================================

    def _on_worker_message(self, message: Dict[str, Any]):
        """Called on the worker thread; hop onto the server loop keeping event order."""
        self._loop.call_soon_threadsafe(self._events.put_nowait, message)

    async def _forward_events(self):
        while True:
            message = await self._events.get()
            try:
                await self._handle_event(message)
            except Exception as e:
                logger.error(f"Error handling worker event {message.get('status')}: {e}")

    async def _handle_event(self, message: Dict[str, Any]):
        status = message["status"]
        request_id = message.get("requestId")

        if status == "complete":
            transcript = clean_ipa_output(message["output"])
            self._last_transcript = transcript
            recording_id = self._pending.pop(request_id, None)
            if recording_id is not None:
                self.store.update_transcript(recording_id, transcript)
            logger.info(f"Request {request_id} complete: {transcript}")
        elif status == "error":
            self._pending.pop(request_id, None)
            logger.error(f"Worker error: {message['error']}")

        await self.connection_manager.broadcast(to_json_event(message))

    # ========================================================================
    # Public API Methods
    # ========================================================================

    async def submit_audio(self, data: bytes, save: bool = True) -> TranscribeResponse:
        """
        Preprocess an uploaded recording and queue it for transcription.

        Raises:
            DecodeError: If the upload is not decodable audio.
        """
        stream = await run_in_threadpool(wav_to_audiostream, data)
        segments = await run_in_threadpool(self.preprocessor.process_stream, stream)

        recording_id = None
        if save:
            recording_id = self.store.save(encode_wav(stream.samples, stream.sample_rate))

        request_id = self.worker.transcribe(segments)
        self._pending[request_id] = recording_id
        return TranscribeResponse(
            request_id=request_id,
            segments=len(segments),
            duration=round(stream.duration, 3),
            recording_id=recording_id,
        )

    def get_status(self) -> dict:
        """Get current worker status"""
        orchestrator = self.worker.orchestrator
        if orchestrator is None:
            raise HTTPException(status_code=503, detail="Worker not running")
        status = orchestrator.state_manager.get_state_info()
        metadata = status.pop("metadata") or {}
        status["device"] = metadata.get("device") or orchestrator.runner.device
        status["last_transcript"] = self._last_transcript
        status["pending_requests"] = len(self._pending)
        return status


# ============================================================================
# FastAPI Application
# ============================================================================

# Global server instance
server: Optional[PhonoscribeServer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown"""
    global server

    # Startup
    logger.info("Starting phonoscribe server...")
    server = PhonoscribeServer(asyncio.get_running_loop())
    server.start()

    yield

    # Shutdown
    logger.info("Shutting down phonoscribe server...")
    await server.stop()
    server = None


# Create FastAPI app
app = FastAPI(
    title="phonoscribe API",
    description="Phonetic (IPA) transcription of field recordings",
    version=VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_server() -> PhonoscribeServer:
    if not server:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return server


# ============================================================================
# REST API Endpoints
# ============================================================================

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "phonoscribe API",
        "status": "running",
        "version": VERSION,
        "endpoints": {
            "health": "GET /health",
            "status": "GET /status",
            "load": "POST /model/load",
            "transcribe": "POST /transcribe",
            "ipa": "POST /ipa",
            "recordings": "GET /recordings",
            "export": "GET /recordings/export",
            "websocket": "WS /ws",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    if not server or not server.worker.is_running:
        return {"status": "unhealthy", "reason": "Worker not running"}

    state_info = server.worker.orchestrator.state_manager.get_state_info()
    return {
        "status": "healthy",
        "state": state_info["state"],
        "timestamp": state_info["timestamp"],
    }


@app.get("/status", response_model=StatusResponse)
async def get_status():
    """Current orchestrator state, model device and last transcript."""
    return _require_server().get_status()


@app.post("/model/load")
async def load_model():
    """
    Warm up the model.

    Returns immediately; progress and the ``ready``/``error`` outcome arrive on /ws.
    """
    current = _require_server()
    current.worker.load()
    return {"success": True, "state": current.worker.orchestrator.state.value}


@app.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(
    audio: UploadFile = File(...),
    save: bool = Form(True),
):
    """
    Upload a recording for IPA transcription.

    The response carries the request id; segment results and the final
    transcript are broadcast on /ws tagged with that id.
    """
    current = _require_server()
    data = await audio.read()
    try:
        return await current.submit_audio(data, save=save)
    except DecodeError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/ipa", response_model=IpaResponse)
async def text_to_ipa(request: IpaRequest):
    """Convert orthographic text to IPA, word by word."""
    current = _require_server()
    ipa = transcribe_to_ipa(request.text, request.language, current.dictionary)
    return IpaResponse(text=request.text, language=request.language, ipa=ipa)


@app.get("/recordings")
async def list_recordings():
    current = _require_server()
    return {
        "recordings": [
            {"id": rid, "transcript": current.store.load_transcript(rid)}
            for rid in current.store.list_ids()
        ]
    }


@app.get("/recordings/export", response_class=PlainTextResponse)
async def export_recordings():
    """All saved transcripts as one plain-text document."""
    path = _require_server().store.export_transcripts()
    return PlainTextResponse(path.read_text(encoding="utf-8"))


@app.get("/recordings/{recording_id}/transcript", response_class=PlainTextResponse)
async def get_transcript(recording_id: int):
    try:
        return PlainTextResponse(_require_server().store.load_transcript(recording_id))
    except RecordingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================================
# WebSocket Endpoint for Real-time Updates
# ============================================================================

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for worker events.

    Every worker event is forwarded as JSON with its ``status`` tag;
    ``segment_complete`` carries ``audioSegmentSamples`` instead of the samples.
    """
    if not server:
        await websocket.close(code=1011, reason="Server not initialized")
        return

    await server.connection_manager.connect(websocket)

    try:
        # Send initial state
        await websocket.send_json({
            'type': 'connected',
            'state': server.worker.orchestrator.state.value,
        })

        # Keep connection alive; events are pushed by the worker callback
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        server.connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        server.connection_manager.disconnect(websocket)


def run(host: str = "0.0.0.0", port: int = 8000):
    import uvicorn

    uvicorn.run(app, host=host, port=port, log_level="info")


# ============================================================================
# Run Server
# ============================================================================

if __name__ == "__main__":
    run()
