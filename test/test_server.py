import time

import numpy as np
import pytest
from fastapi.testclient import TestClient

from conftest import FakeLoader, silence, tone
from phonoscribe import config
from phonoscribe import server as server_module
from phonoscribe.app.model_runner import ModelRunner
from phonoscribe.input import encode_wav


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "_settings", config.Settings(
        cache_dir=str(tmp_path / "cache"),
        device="cpu",
        log_file=str(tmp_path / "phonoscribe.log"),
        recordings_dir=str(tmp_path / "recordings"),
    ))
    loader = FakeLoader(transcribe=lambda segment: "[MUSIC] həloʊ")
    monkeypatch.setattr(server_module, "runner_factory", lambda: ModelRunner(loader=loader, devices=["cpu"]))

    with TestClient(server_module.app) as test_client:
        yield test_client


def receive_until(ws, status, request_id=None):
    received = []
    while True:
        message = ws.receive_json()
        received.append(message)
        if message.get("status") == status and (request_id is None or message.get("requestId") == request_id):
            return received


def test_root_lists_endpoints(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "transcribe" in response.json()["endpoints"]


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"


def test_ipa_endpoint(client):
    response = client.post("/ipa", json={"text": "La llama", "language": "es"})
    assert response.status_code == 200
    assert response.json()["ipa"] == "la ʝama"


def test_transcribe_rejects_undecodable_upload(client):
    response = client.post("/transcribe", files={"audio": ("junk.wav", b"not audio", "audio/wav")})
    assert response.status_code == 400


def test_transcribe_streams_events_and_saves_recording(client):
    audio = encode_wav(np.concatenate([tone(1.0), silence(1.0), tone(1.0)]))

    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "connected"

        response = client.post("/transcribe", files={"audio": ("take1.wav", audio, "audio/wav")})
        assert response.status_code == 200
        body = response.json()
        assert body["segments"] == 2
        assert body["recording_id"] == 1
        assert body["duration"] == pytest.approx(3.0)

        events = receive_until(ws, "complete", body["request_id"])

    segment_events = [e for e in events if e.get("status") == "segment_complete"]
    assert [e["index"] for e in segment_events] == [0, 1]
    assert all("audioSegment" not in e and e["audioSegmentSamples"] > 0 for e in segment_events)
    assert events[-1]["output"] == "[MUSIC] həloʊ [MUSIC] həloʊ"

    recordings = client.get("/recordings").json()["recordings"]
    assert recordings == [{"id": 1, "transcript": "həloʊ həloʊ"}]

    assert client.get("/recordings/1/transcript").text == "həloʊ həloʊ"
    assert client.get("/recordings/export").text == "həloʊ həloʊ"
    assert client.get("/recordings/99/transcript").status_code == 404


def test_status_reports_ready_after_load(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        client.post("/model/load")
        receive_until(ws, "ready")

    deadline = time.monotonic() + 5
    status = client.get("/status").json()
    while status["state"] != "ready" and time.monotonic() < deadline:
        time.sleep(0.05)
        status = client.get("/status").json()

    assert status["state"] == "ready"
    assert status["device"] == "cpu"
