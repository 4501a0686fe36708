import io
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    # Import after environment setup so the app wires an offline cascade.
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("REPO_CHAT_REPOS_ROOT", str(tmp_path / "repos"))
    from repo_chat.api import main

    monkeypatch.setattr(main._cascade, "backend", None)
    monkeypatch.setattr(main._loader.config, "repos_root", tmp_path / "repos")
    return TestClient(main.app)


def _zip_bytes(entries: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def test_api_ingest_chat_summary_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    upload = client.post(
        "/upload/text",
        json={"text": "def parse(value):\n    return value.strip()\n", "name": "snippet"},
    )
    assert upload.status_code == 200
    payload = upload.json()
    assert payload["repo_name"] == "snippet"
    assert payload["files"] == ["main.py"]
    repo_id = payload["repo_id"]

    canned = client.post("/chat", json={"repo_id": repo_id, "question": "hello"})
    assert canned.status_code == 200
    assert canned.json()["provenance"] == "rule-based"

    grounded = client.post("/chat", json={"repo_id": repo_id, "question": "How does parse work?"})
    assert grounded.status_code == 200
    body = grounded.json()
    assert body["provenance"] == "fallback"
    assert body["chunks_used"] == 1
    assert body["cited_paths"] == ["main.py"]

    trace = client.get(f"/traces/{body['trace_id']}")
    assert trace.status_code == 200
    assert trace.json()["repo_id"] == repo_id

    summary = client.get(f"/repos/{repo_id}/summary")
    assert summary.status_code == 200
    assert summary.json()["file_summaries"][0]["file_path"] == "main.py"

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert metrics.json()["total_requests"] >= 2


def test_api_error_mapping(client: TestClient) -> None:
    missing = client.post("/chat", json={"repo_id": "nope", "question": "What is this?"})
    assert missing.status_code == 404
    assert "re-upload" in missing.json()["detail"]

    assert client.get("/repos/nope/summary").status_code == 404
    assert client.get("/traces/nope").status_code == 404

    bad_url = client.post("/upload", json={"github_url": "https://gitlab.com/owner/repo"})
    assert bad_url.status_code == 400

    blank = client.post("/chat", json={"repo_id": "nope", "question": "   "})
    assert blank.status_code == 422


def test_api_archive_upload(client: TestClient, tmp_path: Path) -> None:
    good = _zip_bytes({"pkg/app.py": "def run():\n    return 1\n"})
    response = client.post(
        "/upload/archive",
        files={"file": ("project.zip", good, "application/zip")},
    )
    assert response.status_code == 200
    assert response.json()["repo_name"] == "project"
    assert list((tmp_path / "repos").iterdir()) == []

    evil = _zip_bytes({"../../escape.py": "x = 1\n"})
    rejected = client.post(
        "/upload/archive",
        files={"file": ("evil.zip", evil, "application/zip")},
    )
    assert rejected.status_code == 400

    not_zip = client.post(
        "/upload/archive",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert not_zip.status_code == 400


def test_assistant_chat(client: TestClient) -> None:
    canned = client.post("/assistant-chat", json={"question": "who are you?"})
    assert canned.status_code == 200
    assert "CASSIAN" in canned.json()["answer"]

    empty = client.post("/assistant-chat", json={})
    assert empty.status_code == 200
    assert empty.json()["provenance"] == "rule-based"

    offline = client.post("/assistant-chat", json={"question": "Explain Python decorators"})
    assert offline.status_code == 200
    assert offline.json()["provenance"] == "fallback"
