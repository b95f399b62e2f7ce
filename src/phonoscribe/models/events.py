"""
Messages exchanged with the transcription worker.

Every outbound event is one dataclass carrying only the fields of its kind;
``to_dict()`` produces the wire message with a ``status`` tag and camelCase
field names (``fullTranscript``, ``audioSegment``, ...).
"""

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Optional

import numpy as np


def _wire_name(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class WorkerEvent:
    status: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"status": self.status}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                message[_wire_name(f.name)] = value
        return message


@dataclass
class Alive(WorkerEvent):
    status: ClassVar[str] = "alive"


@dataclass
class Initiate(WorkerEvent):
    status: ClassVar[str] = "initiate"
    file: str


@dataclass
class Progress(WorkerEvent):
    status: ClassVar[str] = "progress"
    file: str
    loaded: int
    total: Optional[int] = None
    progress: Optional[float] = None


@dataclass
class Done(WorkerEvent):
    status: ClassVar[str] = "done"
    file: str


@dataclass
class Ready(WorkerEvent):
    status: ClassVar[str] = "ready"


@dataclass
class SegmentStart(WorkerEvent):
    status: ClassVar[str] = "segment_start"
    index: int
    total: int
    request_id: Optional[str] = None


@dataclass
class SegmentComplete(WorkerEvent):
    status: ClassVar[str] = "segment_complete"
    index: int
    text: str
    full_transcript: str
    audio_segment: np.ndarray
    request_id: Optional[str] = None


@dataclass
class Complete(WorkerEvent):
    status: ClassVar[str] = "complete"
    output: str
    request_id: Optional[str] = None


@dataclass
class Error(WorkerEvent):
    status: ClassVar[str] = "error"
    error: str
    request_id: Optional[str] = None


_LOAD_EVENTS = {
    Initiate.status: Initiate,
    Progress.status: Progress,
    Done.status: Done,
}


def load_event_from_dict(payload: Dict[str, Any]) -> Optional[WorkerEvent]:
    """
    Build an ``initiate``/``progress``/``done`` event from a loader callback payload.

    Returns None for payloads of any other kind.
    """
    event_cls = _LOAD_EVENTS.get(payload.get("status"))
    if event_cls is None:
        return None
    if event_cls is Progress:
        return Progress(
            file=payload["file"],
            loaded=int(payload.get("loaded", 0)),
            total=payload.get("total"),
            progress=payload.get("progress"),
        )
    return event_cls(file=payload["file"])
