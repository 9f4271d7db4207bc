"""FastAPI application wrapping the extractor for zip uploads and git repositories."""

from __future__ import annotations

import asyncio
import shutil
import sys
import tempfile
import zipfile
from pathlib import Path
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .. import __version__
from ..errors import FrontendIrError
from ..logging import get_logger

logger = get_logger("service")

DEFAULT_TIMEOUT_SECONDS = 300.0
OUTPUT_FILENAME = "model.ir.json"

Extractor = Callable[[Path, Path, str], Awaitable[None]]


class ServiceError(FrontendIrError):
    """Raised when a request cannot be turned into an IR document."""


class HealthResponse(BaseModel):
    ok: bool


def service_mode(value: str) -> str:
    """Map the ``mode``/``language`` form field onto an extractor mode."""
    lowered = value.strip().lower()
    if lowered in {"react", "angular"}:
        return lowered
    if lowered in {"js", "javascript"}:
        return "js"
    return "ts"


def unzip_safe(archive: Path, destination: Path) -> None:
    """Extract ``archive`` into ``destination``, rejecting entries that escape it."""
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()
    try:
        with zipfile.ZipFile(archive) as bundle:
            for entry in bundle.infolist():
                target = (root / entry.filename).resolve()
                if target != root and root not in target.parents:
                    raise ServiceError(f"Unsafe zip entry path: {entry.filename}")
                if entry.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with bundle.open(entry) as source, target.open("wb") as sink:
                    shutil.copyfileobj(source, sink)
    except zipfile.BadZipFile as exc:
        raise ServiceError(f"inputZip is not a valid zip archive: {exc}") from exc


async def run_command(args: list[str], *, timeout: float, cwd: Optional[Path] = None) -> str:
    """Run ``args`` and return stdout; a non-zero exit or the timeout raises ServiceError."""
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise ServiceError(f"Command timed out after {timeout:g}s: {' '.join(args)}") from exc
    if process.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        raise ServiceError(f"Command failed ({process.returncode}): {' '.join(args)}\n{detail}")
    return stdout.decode("utf-8", errors="replace")


async def git_clone(repo_url: str, destination: Path, *, timeout: float) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    await run_command(["git", "clone", "--depth", "1", repo_url, str(destination)], timeout=timeout)


def subprocess_extractor(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Extractor:
    """Run the CLI in a child interpreter so a runaway extraction can be killed."""

    async def _extract(project_dir: Path, out_file: Path, mode: str) -> None:
        await run_command(
            [
                sys.executable,
                "-m",
                "frontend_ir.cli",
                "extract",
                "--mode",
                mode,
                "--project",
                str(project_dir),
                "--out",
                str(out_file),
            ],
            timeout=timeout,
        )

    return _extract


def create_app(
    extractor: Optional[Extractor] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> FastAPI:
    """Create the FastAPI application exposing the IR endpoint."""
    run_extractor = extractor or subprocess_extractor(timeout)

    app = FastAPI(title="frontend-ir service", version=__version__)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(ok=True)

    @app.post("/v1/ir")
    async def generate_ir(
        mode: Optional[str] = Form(default=None),
        language: Optional[str] = Form(default=None),
        repo_url: Optional[str] = Form(default=None, alias="repoUrl"),
        input_zip: Optional[UploadFile] = File(default=None, alias="inputZip"),
    ) -> Response:
        requested = (mode or language or "").strip()
        if not requested:
            return JSONResponse(status_code=400, content={"error": "Missing field: mode (or language)"})
        if not repo_url and input_zip is None:
            return JSONResponse(status_code=400, content={"error": "Provide inputZip or repoUrl"})

        with tempfile.TemporaryDirectory(prefix="frontend-ir-") as workdir:
            root = Path(workdir)
            project_dir = root / "project"
            out_file = root / "out" / OUTPUT_FILENAME
            try:
                if repo_url:
                    await git_clone(repo_url, project_dir, timeout=timeout)
                else:
                    data = await input_zip.read()

                    def _unpack() -> None:
                        archive = root / "input.zip"
                        archive.write_bytes(data)
                        unzip_safe(archive, project_dir)

                    await asyncio.get_running_loop().run_in_executor(None, _unpack)
                out_file.parent.mkdir(parents=True, exist_ok=True)
                await run_extractor(project_dir, out_file, service_mode(requested))
                payload = out_file.read_text(encoding="utf-8")
            except (FrontendIrError, OSError) as exc:
                logger.warning("IR request failed: %s", exc)
                return JSONResponse(status_code=500, content={"error": str(exc)})

        return Response(content=payload, status_code=200, media_type="application/json")

    return app


def run_service(host: str = "0.0.0.0", port: int = 7071) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "ServiceError",
    "create_app",
    "git_clone",
    "run_command",
    "run_service",
    "service_mode",
    "subprocess_extractor",
    "unzip_safe",
]
