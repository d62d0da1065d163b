import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import ClientDisconnect

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}


def _env_flag(value: str) -> bool:
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


class Settings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3333
    data_file: Path = BASE_DIR / "data.json"
    html_file: Path = BASE_DIR / "index.html"
    open_browser: bool = True
    log_level: str = "warning"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from POS_* environment variables, keeping defaults for unset ones."""
        overrides: dict[str, Any] = {}
        for field in ("host", "port", "data_file", "html_file", "log_level"):
            value = os.getenv(f"POS_{field.upper()}")
            if value:
                overrides[field] = value
        open_browser = os.getenv("POS_OPEN_BROWSER")
        if open_browser is not None:
            overrides["open_browser"] = _env_flag(open_browser)
        return cls(**overrides)

    @property
    def url(self) -> str:
        return public_url(self.host, self.port)


def public_url(host: str, port: int) -> str:
    if host in ("127.0.0.1", "0.0.0.0", "localhost", ""):
        host = "localhost"
    return f"http://{host}:{port}"


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

def _reject_constant(name: str):
    raise ValueError(f"Unexpected token {name} in JSON")


def parse_document(raw: bytes) -> Any:
    """Parse UTF-8 bytes as strict JSON (no NaN/Infinity)."""
    return json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)


def read_document(path: Path) -> Any:
    """
    Return the persisted document, or {} when there is nothing usable on disk.

    A missing file means nothing has been saved yet. An unreadable or corrupt
    file is treated the same way and never reported to the caller.
    """
    if not path.exists():
        return {}
    try:
        return parse_document(path.read_bytes())
    except (OSError, ValueError, RecursionError) as exc:
        logger.debug("Ignoring unreadable document %s: %s", path, exc)
        return {}


def write_document(path: Path, data: Any) -> None:
    """
    Replace the document file in full.

    The new content goes to a temp file beside the target and is renamed over
    it, so readers and concurrent writers only ever see a complete document.
    """
    text = json.dumps(data, indent=2, ensure_ascii=False)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates only survive as \u escapes.
        text = json.dumps(data, indent=2)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

class DocumentResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        try:
            return super().render(content)
        except UnicodeEncodeError:
            return json.dumps(content, allow_nan=False, separators=(",", ":")).encode("ascii")


def json_response(data: Any, status_code: int = 200) -> JSONResponse:
    return DocumentResponse(content=data, status_code=status_code, headers=CORS_HEADERS)


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(
        title="POS Platform save server",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings

    @app.exception_handler(StarletteHTTPException)
    async def not_found(request: Request, exc: StarletteHTTPException):
        # Unknown paths and known paths with the wrong method look the same.
        if exc.status_code in (404, 405):
            return PlainTextResponse("Not found", status_code=404)
        return await http_exception_handler(request, exc)

    @app.options("/{path:path}")
    def preflight(path: str):
        return Response(status_code=204, headers=PREFLIGHT_HEADERS)

    @app.get("/")
    @app.get("/index.html")
    def index():
        try:
            html = settings.html_file.read_bytes()
        except OSError:
            return PlainTextResponse("Cannot read index.html", status_code=500)
        return HTMLResponse(content=html)

    @app.get("/load")
    def load():
        return json_response(read_document(settings.data_file))

    @app.post("/save")
    async def save(request: Request):
        try:
            body = await request.body()
            data = parse_document(body)
            await run_in_threadpool(write_document, settings.data_file, data)
        except (ClientDisconnect, OSError, ValueError, RecursionError) as exc:
            return json_response({"ok": False, "error": describe_error(exc)}, status_code=400)
        return json_response({"ok": True})

    return app


app = create_app(Settings.from_env())
