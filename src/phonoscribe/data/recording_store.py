"""Recording store module."""

import re
from pathlib import Path
from typing import List, Protocol, Union

from phonoscribe.app.transcript import clean_ipa_output
from phonoscribe.config import get_settings
from phonoscribe.utils.exceptions import RecordingNotFoundError
from phonoscribe.utils.logger import get_logger

logger = get_logger("RecordingStore")

EXPORT_FILENAME = "fieldwork_transcript.txt"

_RECORDING_NAME = re.compile(r"^recording-(\d+)\.wav$")


class RecordingStore(Protocol):
    """Save/load interface for opaque audio buffers and transcript text."""

    def save(self, audio: bytes, transcript: str = "") -> int:
        ...

    def load_audio(self, recording_id: int) -> bytes:
        ...

    def load_transcript(self, recording_id: int) -> str:
        ...

    def list_ids(self) -> List[int]:
        ...


class DirectoryRecordingStore:
    """
    Recording store backed by a directory.

    Each recording gets an autoincrement ID and two files:
    ``recording-<id>.wav`` (the audio bytes as given) and
    ``transcript-<id>.txt``.

    Raises:
        RecordingNotFoundError: Requested recording ID does not exist.
    """

    def __init__(self, root: Union[str, Path, None] = None):
        """Constructor."""
        self.root = Path(root or get_settings().recordings_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def _audio_path(self, recording_id: int) -> Path:
        return self.root / f"recording-{recording_id}.wav"

    def _transcript_path(self, recording_id: int) -> Path:
        return self.root / f"transcript-{recording_id}.txt"

    def list_ids(self) -> List[int]:
        """
        IDs of all saved recordings.

        Returns:
            List[int]: Recording IDs in ascending order.
        """
        ids = []
        for path in self.root.iterdir():
            match = _RECORDING_NAME.match(path.name)
            if match:
                ids.append(int(match.group(1)))
        return sorted(ids)

    def save(self, audio: bytes, transcript: str = "") -> int:
        """
        Store one recording and its transcript.

        Args:
            audio (bytes): Encoded audio container, stored untouched.
            transcript (str): Transcript text for the recording.

        Returns:
            int: The new recording ID.
        """
        ids = self.list_ids()
        recording_id = ids[-1] + 1 if ids else 1

        self._audio_path(recording_id).write_bytes(audio)
        self._transcript_path(recording_id).write_text(transcript, encoding="utf-8")
        logger.info(f"Saved recording {recording_id} ({len(audio)} bytes) to {self.root}")
        return recording_id

    def update_transcript(self, recording_id: int, transcript: str) -> None:
        if not self._audio_path(recording_id).exists():
            raise RecordingNotFoundError(f"No recording with ID {recording_id}")
        self._transcript_path(recording_id).write_text(transcript, encoding="utf-8")

    def load_audio(self, recording_id: int) -> bytes:
        path = self._audio_path(recording_id)
        if not path.exists():
            raise RecordingNotFoundError(f"No recording with ID {recording_id}")
        return path.read_bytes()

    def load_transcript(self, recording_id: int) -> str:
        path = self._transcript_path(recording_id)
        if not path.exists():
            raise RecordingNotFoundError(f"No transcript for recording {recording_id}")
        return path.read_text(encoding="utf-8")

    def delete(self, recording_id: int) -> None:
        if not self._audio_path(recording_id).exists():
            raise RecordingNotFoundError(f"No recording with ID {recording_id}")
        self._audio_path(recording_id).unlink()
        transcript_path = self._transcript_path(recording_id)
        if transcript_path.exists():
            transcript_path.unlink()

    def export_transcripts(self, path: Union[str, Path, None] = None) -> Path:
        """
        Write every saved transcript, cleaned of bracketed tags, one per line.

        Args:
            path: Output file; ``fieldwork_transcript.txt`` in the store
                directory when omitted.

        Returns:
            Path: The written file.
        """
        target = Path(path) if path is not None else self.root / EXPORT_FILENAME
        lines = [clean_ipa_output(self.load_transcript(rid)) for rid in self.list_ids()]
        target.write_text("\n".join(lines), encoding="utf-8")
        logger.info(f"Exported {len(lines)} transcript(s) to {target}")
        return target
