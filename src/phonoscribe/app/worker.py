"""
TranscriptionWorker

Runs a TranscriptionOrchestrator on its own thread and event loop so model
loading and inference never block the caller. The caller talks to it only
through messages:

    worker = TranscriptionWorker()
    worker.start()                       # emits {"status": "alive"}
    worker.post_message({"cmd": "load"})
    worker.post_message({"audio": segments})
    event = worker.events.get()          # dicts, in emission order
    worker.terminate()
"""

import asyncio
import queue
import threading
import uuid
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import numpy as np

from phonoscribe.app.model_runner import ModelRunner
from phonoscribe.app.transcription_orchestrator import TranscriptionOrchestrator
from phonoscribe.models.events import WorkerEvent
from phonoscribe.utils.exceptions import ModelLoadError
from phonoscribe.utils.logger import get_logger

logger = get_logger("TranscriptionWorker")

MessageCallback = Callable[[Dict[str, Any]], None]

# Statuses after which a request or a load produces no further events
TERMINAL_STATUSES = ("complete", "error")


def _detach(audio: Any) -> Any:
    """Copy segment buffers so the worker never shares memory with the caller."""
    if isinstance(audio, (list, tuple)):
        return [np.array(segment, dtype=np.float32, copy=True) for segment in audio]
    return np.array(audio, dtype=np.float32, copy=True)


class TranscriptionWorker:
    """
    Background transcription worker.

    Events are delivered as wire dicts to the ``on_message`` callback (called
    on the worker thread) when one is given, otherwise into :attr:`events`.
    """

    def __init__(
        self,
        on_message: Optional[MessageCallback] = None,
        runner_factory: Callable[[], ModelRunner] = None,
    ):
        self.events: "queue.Queue[Dict[str, Any]]" = queue.Queue()
        self._on_message = on_message
        self._runner_factory = runner_factory or ModelRunner
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._orchestrator: Optional[TranscriptionOrchestrator] = None
        self._main_task: Optional[asyncio.Task] = None
        self._started = threading.Event()
        self._start_error: Optional[BaseException] = None

    @property
    def orchestrator(self) -> Optional[TranscriptionOrchestrator]:
        return self._orchestrator

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._started.clear()
        self._thread = threading.Thread(target=self._run, name="transcription-worker", daemon=True)
        self._thread.start()
        self._started.wait()

        if self._start_error is not None:
            error, self._start_error = self._start_error, None
            self._thread.join()
            self._thread = None
            raise ModelLoadError(f"Could not start transcription worker: {error}") from error
        logger.info("Transcription worker started")

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            self._orchestrator = TranscriptionOrchestrator(self._deliver, runner=self._runner_factory())
            self._main_task = loop.create_task(self._orchestrator.run())
        except Exception as e:
            logger.error(f"Could not create the model runner: {e}")
            self._start_error = e
            self._loop = None
            loop.close()
            return
        finally:
            self._started.set()

        try:
            loop.run_until_complete(self._main_task)
        except asyncio.CancelledError:
            pass
        finally:
            pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            self._orchestrator.runner.close()
            logger.info("Transcription worker stopped")

    def _deliver(self, event: WorkerEvent) -> None:
        message = event.to_dict()
        if self._on_message is None:
            self.events.put(message)
            return
        try:
            self._on_message(message)
        except Exception as e:
            logger.error(f"Error in worker message callback: {e}")

    # ========================================================================
    # Public API
    # ========================================================================

    def post_message(self, message: Dict[str, Any]) -> None:
        """
        Send a command to the worker. Safe to call from any thread.

        Raises:
            RuntimeError: If the worker is not running.
        """
        if not self.is_running or self._loop is None:
            raise RuntimeError("Transcription worker is not running")

        if message.get("audio") is not None:
            message = dict(message, audio=_detach(message["audio"]))
        self._loop.call_soon_threadsafe(self._orchestrator.post, message)

    def load(self) -> None:
        self.post_message({"cmd": "load"})

    def transcribe(self, segments: Sequence[np.ndarray], request_id: str = None) -> str:
        """Post a transcription request and return its request id."""
        request_id = request_id or str(uuid.uuid4())
        self.post_message({"audio": list(segments), "request_id": request_id})
        return request_id

    def iter_events(self, timeout: Optional[float] = None) -> Iterator[Dict[str, Any]]:
        """
        Yield events until a terminal one (``complete``, ``error``) arrives.

        Raises:
            queue.Empty: If no event arrives within ``timeout`` seconds.
        """
        while True:
            event = self.events.get(timeout=timeout)
            yield event
            if event["status"] in TERMINAL_STATUSES:
                return

    def wait_for(self, status: str, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        """Collect events up to and including the first with ``status``, or a terminal error."""
        collected = []
        while True:
            event = self.events.get(timeout=timeout)
            collected.append(event)
            if event["status"] == status or event["status"] == "error":
                return collected

    def terminate(self, timeout: float = 5.0) -> None:
        """Stop the worker loop, dropping queued messages, and release the model runner."""
        if self._thread is None:
            return
        if self._loop is not None and self._thread.is_alive():
            self._loop.call_soon_threadsafe(self._main_task.cancel)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Transcription worker did not stop within timeout")
        self._thread = None
