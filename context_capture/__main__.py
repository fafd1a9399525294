"""Run the background service with a desktop page context attached."""

from __future__ import annotations

import logging
import os

import uvicorn

from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging()

    from .main import app, attach_desktop_page

    tab_id = os.getenv("CONTEXT_CAPTURE_TAB_ID", "1")
    attach_desktop_page(tab_id)

    host = os.getenv("CONTEXT_CAPTURE_HOST", "127.0.0.1")
    port = int(os.getenv("CONTEXT_CAPTURE_PORT", "8765"))
    logger.info("Serving on %s:%s with desktop page context %s", host, port, tab_id)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
