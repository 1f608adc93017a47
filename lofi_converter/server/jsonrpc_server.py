"""
JSON-RPC 2.0 Server Module

HTTP-based JSON-RPC server exposing the lo-fi converter's track
operations to a web frontend. Uploaded files are registered by path,
rendered in the background, and polled with ``get_track``.

Transport:
    HTTP POST on localhost (default port 8765).
    GET /api/audio/<filename> streams uploaded and rendered files.
    Uses stdlib http.server and json for the transport.

Quick Start:
    ```python
    from lofi_converter.server import run_jsonrpc_server
    run_jsonrpc_server(port=8765, verbose=True)
    ```

Or standalone:
    ```bash
    python -m lofi_converter.server --port 8765
    ```
"""

from __future__ import annotations

import json
import logging
import shutil
import signal
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import unquote

from pydantic import ValidationError

from ..errors import InputNotAccessible, InvalidUploadError, LofiError
from ..metadata import probe_duration
from ..pipeline import EffectsPipeline
from ..presets import PresetLoader
from ..schemas import UpdateEffectsSchema, parse_effects
from ..track_store import TrackStore
from .config import ServerConfig, ErrorCode, SCHEMA_VERSION
from .worker import ProcessingWorker, ProcessingResult, error_code_for

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 error codes
# ---------------------------------------------------------------------------

JSONRPC_PARSE_ERROR = -32700
JSONRPC_INVALID_REQUEST = -32600
JSONRPC_METHOD_NOT_FOUND = -32601
JSONRPC_INVALID_PARAMS = -32602
JSONRPC_INTERNAL_ERROR = -32603
JSONRPC_SERVER_ERROR = -32000

# Static audio route for playback and download
AUDIO_ROUTE = "/api/audio/"
AUDIO_CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _jsonrpc_response(result: Any, req_id: Any) -> Dict[str, Any]:
    """Build a successful JSON-RPC 2.0 response envelope."""
    return {"jsonrpc": "2.0", "result": result, "id": req_id}


def _jsonrpc_error(
    code: int,
    message: str,
    req_id: Any = None,
    data: Any = None,
) -> Dict[str, Any]:
    """Build a JSON-RPC 2.0 error response envelope."""
    err: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "error": err, "id": req_id}


def _require(params: Dict[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or value == "":
        raise TypeError(f"Missing required param: {name}")
    return value


def _track_id(params: Dict[str, Any]) -> int:
    """Accept ``track_id`` or the frontend's ``trackId``."""
    raw = params.get("track_id", params.get("trackId"))
    if raw is None:
        raise TypeError("Missing required param: track_id")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise TypeError(f"Invalid track id: {raw!r}") from None


# ---------------------------------------------------------------------------
# HTTP Request Handler
# ---------------------------------------------------------------------------

class _JSONRPCRequestHandler(BaseHTTPRequestHandler):
    """Thin HTTP handler that delegates POST bodies to the RPC dispatcher."""

    # Route http.server's access log through logging
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        if getattr(self.server, "verbose", False):
            logger.debug(format, *args)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(200)
        self._set_cors_headers()
        self.end_headers()

    def do_POST(self) -> None:  # noqa: N802
        content_length = int(self.headers.get("Content-Length", 0))
        if content_length == 0:
            self._write_json(_jsonrpc_error(JSONRPC_PARSE_ERROR, "Empty request body"))
            return

        raw = self.rfile.read(content_length)

        try:
            body = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._write_json(_jsonrpc_error(JSONRPC_PARSE_ERROR, f"Parse error: {exc}"))
            return

        if not isinstance(body, dict):
            self._write_json(_jsonrpc_error(
                JSONRPC_INVALID_REQUEST,
                "Batch requests are not supported; send a single object.",
            ))
            return

        if body.get("jsonrpc") != "2.0" or "method" not in body:
            self._write_json(_jsonrpc_error(
                JSONRPC_INVALID_REQUEST,
                "Missing 'jsonrpc': '2.0' or 'method' field.",
                req_id=body.get("id"),
            ))
            return

        method = body["method"]
        params = body.get("params", {})
        req_id = body.get("id")

        rpc_server: LofiJSONRPCServer = self.server.rpc_server  # type: ignore[attr-defined]
        response = rpc_server.dispatch(method, params, req_id)

        # Notifications get no response body
        if req_id is None:
            self.send_response(204)
            self.end_headers()
            return

        self._write_json(response)

    def do_GET(self) -> None:  # noqa: N802
        if self.path.startswith(AUDIO_ROUTE):
            filename = unquote(self.path[len(AUDIO_ROUTE):].split("?", 1)[0])
            self._send_audio(filename)
            return

        self._write_json({
            "jsonrpc": "2.0",
            "info": "Lo-Fi Converter JSON-RPC 2.0 server",
            "version": SCHEMA_VERSION,
            "hint": "Send a POST with a JSON-RPC 2.0 payload.",
        })

    def _send_audio(self, filename: str) -> None:
        """Stream an original or rendered file for playback and download."""
        rpc_server: LofiJSONRPCServer = self.server.rpc_server  # type: ignore[attr-defined]
        path = rpc_server.resolve_audio_file(filename)
        if path is None:
            self._write_json({"message": "Audio file not found"}, status=404)
            return

        file_size = path.stat().st_size
        self.send_response(200)
        self._set_cors_headers()
        self.send_header("Content-Type", AUDIO_CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream"))
        self.send_header("Content-Length", str(file_size))
        self.send_header("Content-Disposition", f'inline; filename="{path.name}"')
        self.end_headers()
        with open(path, "rb") as f:
            shutil.copyfileobj(f, self.wfile)

    def _write_json(self, obj: Dict[str, Any], status: int = 200) -> None:
        payload = json.dumps(obj, ensure_ascii=False, default=str).encode("utf-8")
        self.send_response(status)
        self._set_cors_headers()
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _set_cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "POST, GET, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")


# ---------------------------------------------------------------------------
# Main JSON-RPC Server
# ---------------------------------------------------------------------------

class LofiJSONRPCServer:
    """
    JSON-RPC 2.0 server for the Lo-Fi Converter.

    Example:
        ```python
        server = LofiJSONRPCServer(port=8765)
        server.start()  # Blocking, runs until shutdown
        ```

    Or non-blocking:
        ```python
        server = LofiJSONRPCServer()
        server.start_async()
        # ... do other work ...
        server.stop()
        ```
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        store: Optional[TrackStore] = None,
        pipeline: Optional[EffectsPipeline] = None,
        presets: Optional[PresetLoader] = None,
    ) -> None:
        self.config = config or ServerConfig()
        self.host = host or self.config.host
        self.port = port if port is not None else self.config.port
        self.verbose = self.config.verbose

        self._httpd: Optional[ThreadingHTTPServer] = None
        self._server_thread: Optional[threading.Thread] = None

        self.store = store or TrackStore()
        self.pipeline = pipeline or EffectsPipeline(output_dir=self.config.output_dir)
        self.presets = presets or PresetLoader(self.config.presets_path)

        self._worker = ProcessingWorker(
            self.store,
            self.pipeline,
            max_workers=self.config.max_workers,
            completion_callback=self._on_complete,
            error_callback=self._on_error,
        )

        self._start_time: Optional[float] = None
        self._running = threading.Event()

        # Method dispatch table
        self._methods: Dict[str, Callable[..., Any]] = {
            "add_track": self._handle_add_track,
            "get_track": self._handle_get_track,
            "list_tracks": self._handle_list_tracks,
            "update_effects": self._handle_update_effects,
            "delete_track": self._handle_delete_track,
            "transform": self._handle_transform,
            "probe_duration": self._handle_probe_duration,
            "list_presets": self._handle_list_presets,
            "ping": self._handle_ping,
            "shutdown": self._handle_shutdown,
        }

        logger.info(
            "LofiJSONRPCServer initialised (host=%s, port=%d)",
            self.host,
            self.port,
        )

    @property
    def worker(self) -> ProcessingWorker:
        return self._worker

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the server **blocking** the calling thread.

        Runs until ``stop()`` is called or a SIGINT/SIGTERM is received.
        """
        self._create_httpd()
        self._start_time = time.time()
        self._running.set()

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _signal_handler(sig: int, frame: Any) -> None:
            logger.info("Signal %d received, shutting down", sig)
            # shutdown() blocks until serve_forever returns, so not on this thread
            threading.Thread(target=self.stop, name="JSONRPC-Shutdown", daemon=True).start()

        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)

        logger.info("JSON-RPC server listening on http://%s:%d", self.host, self.port)
        print(f"Lo-Fi Converter JSON-RPC server listening on http://{self.host}:{self.port}")

        try:
            self._httpd.serve_forever()  # type: ignore[union-attr]
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)

    def start_async(self) -> None:
        """Start the server in a background daemon thread."""
        self._create_httpd()
        self._start_time = time.time()
        self._running.set()

        self._server_thread = threading.Thread(
            target=self._httpd.serve_forever,  # type: ignore[union-attr]
            name="JSONRPC-Server",
            daemon=True,
        )
        self._server_thread.start()

        logger.info("JSON-RPC server started (async) on http://%s:%d", self.host, self.port)

    def stop(self) -> None:
        """Gracefully stop the server and the worker."""
        if not self._running.is_set():
            return
        self._running.clear()

        logger.info("Shutting down JSON-RPC server")

        self._worker.shutdown(wait=False)

        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None

        if self._server_thread is not None:
            self._server_thread.join(timeout=5.0)
            self._server_thread = None

        logger.info("JSON-RPC server stopped.")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        method: str,
        params: Any,
        req_id: Any,
    ) -> Dict[str, Any]:
        """Route a JSON-RPC method call to the appropriate handler.

        Args:
            method: RPC method name.
            params: Parameters (dict or list).
            req_id: Client-provided request id.

        Returns:
            JSON-RPC response dict (result or error envelope).
        """
        handler = self._methods.get(method)
        if handler is None:
            return _jsonrpc_error(
                JSONRPC_METHOD_NOT_FOUND,
                f"Method '{method}' not found.",
                req_id=req_id,
            )

        if params is None:
            params = {}
        if isinstance(params, list):
            return _jsonrpc_error(
                JSONRPC_INVALID_PARAMS,
                "Positional parameters are not supported; use named params.",
                req_id=req_id,
            )

        try:
            result = handler(params)
            return _jsonrpc_response(result, req_id)

        except (TypeError, ValidationError) as exc:
            return _jsonrpc_error(
                JSONRPC_INVALID_PARAMS,
                f"Invalid params: {exc}",
                req_id=req_id,
                data={"error_code": ErrorCode.MISSING_PARAMETER},
            )
        except LofiError as exc:
            logger.warning("Method '%s' failed: %s", method, exc)
            return _jsonrpc_error(
                JSONRPC_SERVER_ERROR,
                str(exc),
                req_id=req_id,
                data={"error_code": error_code_for(exc)},
            )
        except RuntimeError as exc:
            if self._worker.is_shutting_down:
                return _jsonrpc_error(
                    JSONRPC_SERVER_ERROR,
                    str(exc),
                    req_id=req_id,
                    data={"error_code": ErrorCode.SHUTDOWN_IN_PROGRESS},
                )
            logger.exception("Internal error in method '%s'", method)
            return _jsonrpc_error(
                JSONRPC_INTERNAL_ERROR,
                f"Internal error: {exc}",
                req_id=req_id,
            )
        except Exception as exc:
            logger.exception("Internal error in method '%s'", method)
            return _jsonrpc_error(
                JSONRPC_INTERNAL_ERROR,
                f"Internal error: {exc}",
                req_id=req_id,
            )

    # ------------------------------------------------------------------
    # RPC method handlers
    # ------------------------------------------------------------------

    def _handle_add_track(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Register an uploaded file and queue its first render.

        Params:
            path: Stored upload on disk (relative paths resolve against upload_dir)
            original_filename: Name shown to the user (default: file name)
            effects: Optional initial effects (default sliders otherwise)
        """
        path = Path(_require(params, "path"))
        if not path.is_absolute():
            path = Path(self.config.upload_dir) / path
        original_filename = params.get("original_filename") or params.get("originalFilename") or path.name
        effects = parse_effects(params.get("effects"))

        extension = Path(original_filename).suffix.lower() or path.suffix.lower()
        if extension not in self.config.allowed_extensions:
            raise InvalidUploadError(
                f"Only {', '.join(e.lstrip('.').upper() for e in self.config.allowed_extensions)} "
                f"files are allowed"
            )
        if not path.is_file():
            raise InputNotAccessible(f"Uploaded file not found: {path}")
        file_size = path.stat().st_size
        if file_size > self.config.max_upload_bytes:
            raise InvalidUploadError(
                f"File is too large ({file_size} bytes, limit {self.config.max_upload_bytes})"
            )

        duration = probe_duration(path)
        track = self.store.create(
            original_filename=original_filename,
            original_path=str(path),
            file_size=file_size,
            duration=duration,
            effects=effects,
        )
        logger.info("Added track %d: %s (%ds)", track.id, original_filename, duration)

        task_id = self._worker.submit(track.id)
        response = self.store.get(track.id).to_dict()
        response["taskId"] = task_id
        return response

    def _handle_get_track(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Return one track (poll this for processing status)."""
        return self.store.get(_track_id(params)).to_dict()

    def _handle_list_tracks(self, _params: Dict[str, Any]) -> Dict[str, Any]:
        """Return all tracks, newest first."""
        return {"tracks": [track.to_dict() for track in self.store.list()]}

    def _handle_update_effects(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a track's effects and re-render it.

        Params:
            trackId: Track to update
            effects: Full camelCase effects object
        """
        request = UpdateEffectsSchema.model_validate(params)
        # Effects are swapped only once the track is claimed for rendering
        task_id = self._worker.submit(request.trackId, effects=request.effects.to_effects())
        response = self.store.get(request.trackId).to_dict()
        response["taskId"] = task_id
        return response

    def _handle_delete_track(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Remove a track along with its original and lo-fi files."""
        track_id = _track_id(params)
        self.store.get(track_id)
        deleted = self.store.delete(track_id)
        return {"trackId": track_id, "deleted": deleted}

    def _handle_transform(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Render a file synchronously without registering a track.

        Params:
            input_path: Source audio file
            effects: Optional effects (default sliders otherwise)
            seed: Optional noise seed
        """
        input_path = _require(params, "input_path")
        effects = parse_effects(params.get("effects"))
        seed = params.get("seed")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise TypeError(f"seed must be an integer, got {seed!r}")
        output_path = self.pipeline.transform(input_path, effects, seed=seed)
        return {"output_path": output_path, "effects": effects.to_dict()}

    def _handle_probe_duration(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Return the duration of an audio file in whole seconds."""
        path = _require(params, "path")
        return {"path": path, "duration": probe_duration(path)}

    def _handle_list_presets(self, _params: Dict[str, Any]) -> Dict[str, Any]:
        """Return every named effect preset."""
        presets = self.presets.load_all()
        return {"presets": {name: effects.to_dict() for name, effects in presets.items()}}

    def _handle_ping(self, _params: Dict[str, Any]) -> Dict[str, Any]:
        """Health check / keep-alive."""
        uptime = time.time() - self._start_time if self._start_time else 0.0
        return {
            "status": "ok",
            "version": SCHEMA_VERSION,
            "uptime": round(uptime, 2),
            "tracks": len(self.store),
        }

    def _handle_shutdown(self, _params: Dict[str, Any]) -> Dict[str, Any]:
        """Stop the server after the response has been sent."""
        threading.Thread(
            target=self.stop,
            name="JSONRPC-Shutdown",
            daemon=True,
        ).start()
        return {"status": "shutting_down"}

    # ------------------------------------------------------------------
    # Audio files
    # ------------------------------------------------------------------

    def audio_dirs(self) -> List[Path]:
        """Directories whose files may be served over ``/api/audio/``."""
        dirs = [Path(self.config.upload_dir)]
        if self.config.output_dir:
            dirs.append(Path(self.config.output_dir))
        return [d.resolve() for d in dirs]

    def resolve_audio_file(self, filename: str) -> Optional[Path]:
        """Find a servable file by bare name, or None.

        Names carrying a directory part never resolve, and the resolved
        file must sit directly inside one of ``audio_dirs()``.
        """
        if not filename or filename in (".", "..") or Path(filename).name != filename:
            return None
        for directory in self.audio_dirs():
            candidate = (directory / filename).resolve()
            if candidate.parent == directory and candidate.is_file():
                return candidate
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _create_httpd(self) -> None:
        """Create and configure the underlying HTTP server."""
        # One thread per request so renders never stall polls
        self._httpd = ThreadingHTTPServer((self.host, self.port), _JSONRPCRequestHandler)
        # Back-reference so the handler can reach the dispatcher
        self._httpd.rpc_server = self  # type: ignore[attr-defined]
        self._httpd.verbose = self.verbose  # type: ignore[attr-defined]

    def _on_complete(self, result: ProcessingResult) -> None:
        logger.info(
            "Task %s rendered track %d in %.1fs",
            result.task_id,
            result.track_id,
            result.duration,
        )

    def _on_error(self, error_code: int, message: str) -> None:
        logger.error("Worker error %d: %s", error_code, message)


# ---------------------------------------------------------------------------
# Convenience entry point
# ---------------------------------------------------------------------------

def run_jsonrpc_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    verbose: Optional[bool] = None,
    config: Optional[ServerConfig] = None,
) -> None:
    """Start the JSON-RPC server (blocking).

    Args:
        host: Bind address (default from config / ``LOFI_HOST``).
        port: TCP port (default from config / ``LOFI_PORT``).
        verbose: Enable debug logging.
        config: Base configuration (default: ``ServerConfig.from_env()``).
    """
    config = config or ServerConfig.from_env()
    if verbose is not None:
        config.verbose = verbose

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    server = LofiJSONRPCServer(config=config, host=host, port=port)
    server.start()
