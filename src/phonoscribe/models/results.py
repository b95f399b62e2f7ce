"""Explicit success/failure values returned by orchestration steps."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class ErrorKind(Enum):
    MODEL_LOAD = "model_load"
    INFERENCE = "inference"
    PROTOCOL = "protocol"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Success:
    value: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    # Set for inference failures
    segment_index: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success, Failure]
