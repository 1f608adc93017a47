"""
Server Configuration Module

Centralized configuration for the lo-fi JSON-RPC server.
All constants and defaults are defined here for easy modification.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
from pathlib import Path
import os


SCHEMA_VERSION = 1


@dataclass
class ServerConfig:
    """
    Configuration for the Lo-Fi Converter server.

    Attributes:
        host: Host address to bind to
        port: JSON-RPC HTTP port
        max_workers: Maximum concurrent track renders
        upload_dir: Directory holding uploaded tracks
        output_dir: Directory for rendered tracks (None = next to the upload)
        presets_path: Effect preset file (None = bundled presets)
        max_upload_bytes: Largest accepted upload
        allowed_extensions: Accepted upload extensions
        verbose: Enable verbose logging
    """
    # Network Configuration
    host: str = "127.0.0.1"
    port: int = 8765

    # Worker Configuration
    max_workers: int = 2

    # Paths
    upload_dir: Optional[str] = None
    output_dir: Optional[str] = None
    presets_path: Optional[str] = None

    # Upload rules
    max_upload_bytes: int = 20 * 1024 * 1024
    allowed_extensions: Tuple[str, ...] = (".mp3", ".wav")

    # Logging
    verbose: bool = False

    def __post_init__(self):
        """Set computed defaults after initialization."""
        if self.upload_dir is None:
            self.upload_dir = str(Path.cwd() / "uploads")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create config from environment variables.

        Environment Variables:
            LOFI_HOST: Host address
            LOFI_PORT: JSON-RPC port
            LOFI_MAX_WORKERS: Concurrent renders
            LOFI_UPLOAD_DIR: Upload directory
            LOFI_OUTPUT_DIR: Rendered output directory
            LOFI_PRESETS: Path to a preset YAML/JSON file
            LOFI_VERBOSE: Enable verbose mode (1/true/yes)
        """
        return cls(
            host=os.getenv("LOFI_HOST", "127.0.0.1"),
            port=int(os.getenv("LOFI_PORT", 8765)),
            max_workers=int(os.getenv("LOFI_MAX_WORKERS", 2)),
            upload_dir=os.getenv("LOFI_UPLOAD_DIR"),
            output_dir=os.getenv("LOFI_OUTPUT_DIR"),
            presets_path=os.getenv("LOFI_PRESETS"),
            verbose=os.getenv("LOFI_VERBOSE", "").lower() in ("1", "true", "yes"),
        )


# Error Codes
class ErrorCode:
    """
    Error codes for structured error reporting.
    """
    # General errors (1xx)
    UNKNOWN = 100
    INVALID_MESSAGE = 101
    MISSING_PARAMETER = 102

    # Processing errors (3xx)
    PROCESSING_FAILED = 300
    EMPTY_OUTPUT = 301
    PRESET_NOT_FOUND = 302

    # Track errors (4xx)
    TRACK_NOT_FOUND = 400
    TRACK_BUSY = 401
    INVALID_UPLOAD = 402

    # File errors (5xx)
    FILE_NOT_FOUND = 500

    # Server errors (9xx)
    SHUTDOWN_IN_PROGRESS = 902


# Default configuration instance
DEFAULT_CONFIG = ServerConfig()
