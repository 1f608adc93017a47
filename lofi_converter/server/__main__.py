"""
Entry point for running the JSON-RPC server as a module.

Usage:
    python -m lofi_converter.server [--verbose] [--port PORT]
"""

import argparse

from .config import ServerConfig


def main():
    parser = argparse.ArgumentParser(
        description="Lo-Fi Converter JSON-RPC Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m lofi_converter.server --verbose
    python -m lofi_converter.server --port 8765 --upload-dir ./uploads
        """
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="TCP port (default: LOFI_PORT or 8765)"
    )

    parser.add_argument(
        "--host", "-H",
        type=str,
        default=None,
        help="Host address to bind to (default: LOFI_HOST or 127.0.0.1)"
    )

    parser.add_argument(
        "--upload-dir",
        type=str,
        default=None,
        help="Directory holding uploaded tracks"
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for rendered tracks (default: next to the upload)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    config = ServerConfig.from_env()
    if args.upload_dir:
        config.upload_dir = args.upload_dir
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.verbose:
        config.verbose = True

    # Import here to avoid the RuntimeWarning
    from .jsonrpc_server import run_jsonrpc_server

    print("Starting Lo-Fi Converter JSON-RPC Server")
    print(f"   Upload dir: {config.upload_dir}")
    print(f"   Output dir: {config.output_dir or '(next to upload)'}")
    print(f"   Verbose: {config.verbose}")
    print()

    run_jsonrpc_server(host=args.host, port=args.port, config=config)


if __name__ == "__main__":
    main()
