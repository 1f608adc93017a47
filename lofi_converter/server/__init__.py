"""
Server Module for the Lo-Fi Converter

Provides the JSON-RPC server the upload frontend talks to, and the
background worker that renders tracks.

Quick Start:
    ```python
    from lofi_converter.server import run_jsonrpc_server
    run_jsonrpc_server(verbose=True)
    ```

Or via CLI:
    ```bash
    python main.py --server --port 8765
    ```

Components:
    - LofiJSONRPCServer: JSON-RPC 2.0 server over HTTP
    - ProcessingWorker: Background render execution
    - ServerConfig: Configuration management
    - run_jsonrpc_server: Convenience function
"""

from .config import (
    ServerConfig,
    ErrorCode,
    DEFAULT_CONFIG,
    SCHEMA_VERSION,
)

from .worker import (
    ProcessingWorker,
    ProcessingResult,
    TaskStatus,
    error_code_for,
)

from .jsonrpc_server import (
    LofiJSONRPCServer,
    run_jsonrpc_server,
)

__all__ = [
    # Configuration
    "ServerConfig",
    "ErrorCode",
    "DEFAULT_CONFIG",
    "SCHEMA_VERSION",

    # Workers
    "ProcessingWorker",
    "ProcessingResult",
    "TaskStatus",
    "error_code_for",

    # Server (JSON-RPC)
    "LofiJSONRPCServer",
    "run_jsonrpc_server",
]
