"""
phonoscribe command line.

Examples:
  # IPA transcription of a field recording
  phonoscribe transcribe interview.wav

  # Also write every segment and the transcript to a folder
  phonoscribe transcribe interview.wav --export-dir ./session-01

  # Orthographic text to IPA
  phonoscribe ipa "la llama come" --language es
  phonoscribe ipa "hello world" --dictionary en_US.txt

  # HTTP/WebSocket server
  phonoscribe serve --port 8000
"""

import argparse
import queue
import sys
from pathlib import Path

from phonoscribe.app.transcript import clean_ipa_output
from phonoscribe.app.worker import TranscriptionWorker
from phonoscribe.config import get_settings
from phonoscribe.data.recording_store import DirectoryRecordingStore, RecordingStore
from phonoscribe.input import AudioPreprocessor, encode_wav, wav_to_audiostream, write_wav
from phonoscribe.phonetics import IpaDictionary, transcribe_to_ipa
from phonoscribe.utils.exceptions import DecodeError, ModelLoadError
from phonoscribe.utils.logger import get_logger

logger = get_logger("phonoscribe")


def _describe_event(event: dict) -> str:
    status = event["status"]
    if status == "progress":
        loaded_mb = event.get("loaded", 0) / 1024 / 1024
        if event.get("total"):
            total_mb = event["total"] / 1024 / 1024
            return f"Downloading {event['file']}: {loaded_mb:.1f}MB / {total_mb:.1f}MB"
        return f"Downloading {event['file']}: {loaded_mb:.1f}MB loaded..."
    if status == "initiate":
        return f"Initializing {event['file']}..."
    if status == "done":
        return f"Finished downloading {event['file']}"
    if status == "segment_start":
        return f"Transcribing segment {event['index'] + 1}/{event['total']}"
    if status == "segment_complete":
        return f"Segment {event['index'] + 1}: {event['text']}"
    return status


def cmd_transcribe(args) -> int:
    try:
        stream = wav_to_audiostream(args.file)
    except DecodeError as e:
        logger.error(f"Cannot read {args.file}: {e}")
        return 1

    segments = AudioPreprocessor().process_stream(stream)
    if not segments:
        logger.error(f"No audio in {args.file}")
        return 1

    export_dir = Path(args.export_dir) if args.export_dir else None
    if export_dir is not None:
        export_dir.mkdir(parents=True, exist_ok=True)

    worker = TranscriptionWorker()
    try:
        worker.start()
    except ModelLoadError as e:
        logger.error(str(e))
        return 1

    try:
        request_id = worker.transcribe(segments)
        transcript = None
        for event in worker.iter_events(timeout=args.timeout):
            if event["status"] == "alive":
                continue
            if event.get("requestId") not in (None, request_id):
                continue

            if event["status"] == "error":
                logger.error(f"Transcription failed: {event['error']}")
                return 1
            if event["status"] == "complete":
                transcript = clean_ipa_output(event["output"])
                break

            logger.info(_describe_event(event))
            if event["status"] == "segment_complete" and export_dir is not None:
                write_wav(export_dir / f"segment-{event['index']:03d}.wav", event["audioSegment"])
    except queue.Empty:
        logger.error(f"No response from the transcription worker within {args.timeout}s")
        return 1
    finally:
        worker.terminate()

    print(transcript)

    if export_dir is not None:
        (export_dir / "transcript.txt").write_text(transcript, encoding="utf-8")
        logger.info(f"Exported {len(segments)} segment(s) and transcript to {export_dir}")

    if args.save:
        store: RecordingStore = DirectoryRecordingStore()
        recording_id = store.save(encode_wav(stream.samples, stream.sample_rate), transcript)
        logger.info(f"Saved as recording {recording_id}")

    return 0


def cmd_ipa(args) -> int:
    dictionary_path = args.dictionary or get_settings().dictionary_path
    dictionary = IpaDictionary.from_file(dictionary_path) if dictionary_path else None
    print(transcribe_to_ipa(args.text, args.language, dictionary))
    return 0


def cmd_export(args) -> int:
    store = DirectoryRecordingStore(args.recordings_dir)
    path = store.export_transcripts(args.output)
    print(path)
    return 0


def cmd_serve(args) -> int:
    from phonoscribe.server import run

    run(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="phonoscribe",
        description="Phonetic (IPA) transcription of field recordings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    transcribe = subparsers.add_parser("transcribe", help="Transcribe an audio file to IPA")
    transcribe.add_argument("file", help="Audio file (wav, flac, ogg, ...)")
    transcribe.add_argument(
        "--export-dir",
        help="Write segment WAVs and transcript.txt to this directory"
    )
    transcribe.add_argument(
        "--save",
        action="store_true",
        help="Store the recording and transcript in the recordings directory"
    )
    transcribe.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up if the worker is silent for this many seconds (default: wait forever)"
    )
    transcribe.set_defaults(func=cmd_transcribe)

    ipa = subparsers.add_parser("ipa", help="Convert orthographic text to IPA")
    ipa.add_argument("text", help="Text to convert")
    ipa.add_argument(
        "--language",
        default="en",
        choices=["en", "es"],
        help="Language of the text (default: en)"
    )
    ipa.add_argument("--dictionary", help="English IPA dictionary file")
    ipa.set_defaults(func=cmd_ipa)

    export = subparsers.add_parser("export", help="Write all saved transcripts to one text file")
    export.add_argument("--recordings-dir", help="Recordings directory (default: from settings)")
    export.add_argument("--output", help="Output file (default: fieldwork_transcript.txt)")
    export.set_defaults(func=cmd_export)

    serve = subparsers.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
