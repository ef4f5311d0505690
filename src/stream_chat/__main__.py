"""
Main entry point for the Stream Chat application.

This module provides the entry point for running the chat server.
Can be called with: python -m stream_chat

Automatically opens the app in your browser once the server is reachable.
Disable with --no-open or STREAM_CHAT_NO_BROWSER=1.
"""

import argparse
import logging
import threading
import time
import urllib.error
import urllib.request
import webbrowser

import uvicorn

from .app import app


def _open_when_ready(url: str, timeout: float = 15.0, interval: float = 0.2):
    """Open ``url`` in a browser once the server answers (best-effort)."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with urllib.request.urlopen(url, timeout=1):
                pass
        except (urllib.error.URLError, TimeoutError, ConnectionError):
            time.sleep(interval)
            continue
        try:
            webbrowser.open(url, new=1)
        except webbrowser.Error:
            pass  # Non-fatal if a browser cannot be opened
        return


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stream Chat - Chat with a local Ollama model"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model to chat with (default: $STREAM_CHAT_MODEL or llama3.1)",
    )
    parser.add_argument(
        "--no-open",
        action="store_true",
        help="Do not automatically open the browser",
    )
    return parser


def main(argv=None):
    """Main entry point for the Stream Chat application."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    settings = app.state.settings
    if args.model:
        settings = settings._replace(model=args.model)
        app.state.settings = settings

    logger = logging.getLogger(__name__)
    logger.info(f"Starting chat server for {settings.model} at {settings.base_url}...")
    logger.info(f"Open http://localhost:{args.port} in your browser to start chatting")

    url = f"http://localhost:{args.port}"
    if settings.open_browser and not args.no_open:
        threading.Thread(target=_open_when_ready, args=(url,), daemon=True).start()
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
