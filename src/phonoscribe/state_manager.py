"""
State Manager for the transcription worker

Tracks the orchestrator lifecycle and validates transitions between states.
"""

from enum import Enum
from typing import Optional, Callable
from dataclasses import dataclass
from datetime import datetime
import threading

from phonoscribe.utils.logger import get_logger

logger = get_logger("StateManager")


class OrchestratorState(Enum):
    """Orchestrator states"""
    IDLE = "idle"  # Worker started, model not requested yet
    LOADING = "loading"  # Model assets downloading / model building
    READY = "ready"  # Model loaded, accepting transcription requests
    BUSY = "busy"  # Transcribing the segments of one request
    ERRORED = "errored"  # Model failed to load; terminal


@dataclass
class StateData:
    """Data associated with current state"""
    state: OrchestratorState
    timestamp: datetime
    request_id: Optional[str] = None
    error: Optional[str] = None
    metadata: Optional[dict] = None


class StateManager:
    """
    Centralized lifecycle state for one orchestrator.

    Handles state transitions and provides callbacks for state changes.
    """

    # ERRORED has no way out: a failed model load is permanent for the worker
    VALID_TRANSITIONS = {
        OrchestratorState.IDLE: [OrchestratorState.LOADING, OrchestratorState.ERRORED],
        OrchestratorState.LOADING: [OrchestratorState.READY, OrchestratorState.ERRORED],
        OrchestratorState.READY: [OrchestratorState.BUSY, OrchestratorState.ERRORED],
        OrchestratorState.BUSY: [OrchestratorState.READY, OrchestratorState.ERRORED],
        OrchestratorState.ERRORED: [],
    }

    def __init__(self):
        self._current_state = OrchestratorState.IDLE
        self._state_data = StateData(
            state=OrchestratorState.IDLE,
            timestamp=datetime.now()
        )
        self._lock = threading.RLock()
        self._callbacks = []

    @property
    def current_state(self) -> OrchestratorState:
        """Get current orchestrator state"""
        with self._lock:
            return self._current_state

    @property
    def state_data(self) -> StateData:
        """Get current state data"""
        with self._lock:
            return self._state_data

    def transition_to(
        self,
        new_state: OrchestratorState,
        **kwargs
    ) -> bool:
        """
        Transition to a new state with optional data.

        Args:
            new_state: Target state
            **kwargs: Additional data for the state (request_id, error, metadata)

        Returns:
            bool: True if transition was valid and successful
        """
        with self._lock:
            if new_state not in self.VALID_TRANSITIONS[self._current_state]:
                logger.warning(
                    f"Invalid transition from {self._current_state.value} "
                    f"to {new_state.value}"
                )
                return False

            old_state = self._current_state
            self._current_state = new_state
            self._state_data = StateData(
                state=new_state,
                timestamp=datetime.now(),
                request_id=kwargs.get('request_id'),
                error=kwargs.get('error'),
                metadata=kwargs.get('metadata')
            )

            logger.info(
                f"State transition: {old_state.value} -> {new_state.value}"
            )

            self._execute_callbacks(old_state)
            return True

    def register_callback(self, callback: Callable[[StateData, OrchestratorState], None]):
        """
        Register a callback for state changes.

        Args:
            callback: Function to call on state change (receives state_data, old_state)
        """
        with self._lock:
            self._callbacks.append(callback)

    def _execute_callbacks(self, old_state: OrchestratorState):
        for callback in self._callbacks:
            try:
                callback(self._state_data, old_state)
            except Exception as e:
                logger.error(f"Error in state callback: {e}")

    def get_state_info(self) -> dict:
        """Get current state information as dictionary"""
        with self._lock:
            return {
                'state': self._current_state.value,
                'timestamp': self._state_data.timestamp.isoformat(),
                'request_id': self._state_data.request_id,
                'error': self._state_data.error,
                'metadata': self._state_data.metadata
            }
