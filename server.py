#!/usr/bin/env python3
"""
POS Platform local save server.

Serves index.html and keeps edits in data.json next to app.py.

Usage:
    python server.py        # or: pos-server
"""
import logging
import webbrowser

import uvicorn

from app import Settings, create_app, public_url

logger = logging.getLogger(__name__)


def banner(url: str, settings: Settings) -> str:
    return "\n".join([
        "",
        "  ⬡  POS Platform server running",
        f"  →  {url}",
        f"  →  Edits saved to: {settings.data_file.name}",
        "",
        "  Press Ctrl+C to stop.",
        "",
    ])


def launch_browser(url: str) -> None:
    try:
        webbrowser.open(url)
    except webbrowser.Error as exc:
        logger.debug("Could not open a browser at %s: %s", url, exc)


def run(settings: Settings) -> None:
    config = uvicorn.Config(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        access_log=False,  # silence request logs
    )
    server = uvicorn.Server(config)
    # Bind before announcing, so the banner and browser only follow a successful listen.
    sock = config.bind_socket()
    url = settings.url if settings.port else public_url(settings.host, sock.getsockname()[1])
    print(banner(url, settings))
    if settings.open_browser:
        launch_browser(url)
    server.run(sockets=[sock])


def main() -> None:
    run(Settings.from_env())


if __name__ == "__main__":
    main()
