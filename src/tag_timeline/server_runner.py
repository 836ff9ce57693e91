"""Helpers to launch the local web dashboard."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)

BROWSER_DELAY_SECONDS = 1.0


def dashboard_url(host: str, port: int) -> str:
    shown = "127.0.0.1" if host in ("0.0.0.0", "") else host
    return f"http://{shown}:{port}"


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Serve the timeline API until interrupted, optionally opening a tab."""
    resolved_db = Path(db_path or get_db_path())
    app = create_app(db_path=resolved_db)
    url = dashboard_url(host, port)
    logger.info("Dashboard for %s at %s", resolved_db, url)

    if open_browser:
        opener = threading.Timer(BROWSER_DELAY_SECONDS, _open_browser, args=(url,))
        opener.daemon = True
        opener.start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_browser(url: str) -> None:
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)
