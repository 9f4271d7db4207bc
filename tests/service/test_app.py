"""Tests for the FastAPI service mode."""

from __future__ import annotations

import asyncio
import io
import json
import tempfile
import time
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from frontend_ir.errors import ExtractionError
from frontend_ir.ir.serialize import write_ir_json
from frontend_ir.pipeline import ExtractRequest, extract_project
from frontend_ir.service import create_app
from frontend_ir.service.app import ServiceError, run_command, service_mode


class _InProcessExtractor:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    async def __call__(self, project_dir: Path, out_file: Path, mode: str) -> None:
        self.calls.append({"project_dir": project_dir, "mode": mode})
        result = extract_project(ExtractRequest(project_root=project_dir, mode=mode))
        write_ir_json(out_file, result.model)


def _zip(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        for name, content in files.items():
            bundle.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def extractor() -> _InProcessExtractor:
    return _InProcessExtractor()


@pytest.fixture
def client(extractor: _InProcessExtractor) -> TestClient:
    return TestClient(create_app(extractor))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_missing_mode_is_rejected(client: TestClient) -> None:
    response = client.post("/v1/ir", data={"repoUrl": "https://example.invalid/repo.git"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing field: mode (or language)"}


def test_missing_input_is_rejected(client: TestClient) -> None:
    response = client.post("/v1/ir", data={"mode": "ts"})
    assert response.status_code == 400
    assert response.json() == {"error": "Provide inputZip or repoUrl"}


def test_zip_upload_returns_ir(client: TestClient, extractor: _InProcessExtractor) -> None:
    archive = _zip({"src/user.ts": "export class User { name: string = ''; }\n"})

    response = client.post(
        "/v1/ir",
        data={"language": "TypeScript"},
        files={"inputZip": ("project.zip", archive, "application/zip")},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    payload = json.loads(response.text)
    assert [classifier["name"] for classifier in payload["classifiers"]] == ["User"]
    assert extractor.calls[0]["mode"] == "ts"


def test_zip_slip_entries_are_refused(client: TestClient, extractor: _InProcessExtractor) -> None:
    archive = _zip({"../escape.ts": "export const x = 1;\n"})

    response = client.post(
        "/v1/ir",
        data={"mode": "react"},
        files={"inputZip": ("project.zip", archive, "application/zip")},
    )

    assert response.status_code == 500
    assert "Unsafe zip entry" in response.json()["error"]
    assert extractor.calls == []


def test_invalid_zip_is_reported(client: TestClient) -> None:
    response = client.post(
        "/v1/ir",
        data={"mode": "ts"},
        files={"inputZip": ("project.zip", b"not a zip", "application/zip")},
    )

    assert response.status_code == 500
    assert "not a valid zip" in response.json()["error"]


def test_extractor_failure_maps_to_500() -> None:
    async def failing(project_dir: Path, out_file: Path, mode: str) -> None:
        raise ExtractionError("tree-sitter exploded")

    client = TestClient(create_app(failing))
    archive = _zip({"a.ts": "export {};\n"})

    response = client.post("/v1/ir", data={"mode": "angular"}, files={"inputZip": ("p.zip", archive, "application/zip")})

    assert response.status_code == 500
    assert response.json() == {"error": "tree-sitter exploded"}


@pytest.mark.parametrize(
    ("value", "expected"),
    [("react", "react"), ("Angular", "angular"), ("javascript", "js"), ("JS", "js"), ("typescript", "ts"), ("ts", "ts")],
)
def test_service_mode_mapping(value: str, expected: str) -> None:
    assert service_mode(value) == expected


def test_run_command_timeout_kills_the_child() -> None:
    started = time.monotonic()

    with pytest.raises(ServiceError, match="timed out after 0.5s"):
        asyncio.run(run_command(["sleep", "5"], timeout=0.5))

    assert time.monotonic() - started < 3


def test_failed_request_leaves_no_workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    seen: list[Path] = []

    async def failing(project_dir: Path, out_file: Path, mode: str) -> None:
        seen.append(project_dir)
        assert (project_dir / "a.ts").is_file()
        raise ExtractionError("boom")

    client = TestClient(create_app(failing))
    archive = _zip({"a.ts": "export {};\n"})

    response = client.post("/v1/ir", data={"mode": "ts"}, files={"inputZip": ("p.zip", archive, "application/zip")})

    assert response.status_code == 500
    assert seen and seen[0].is_relative_to(scratch)
    assert not seen[0].exists()
    assert not list(scratch.glob("frontend-ir-*"))
