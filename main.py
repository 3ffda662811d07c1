"""
main.py: server launcher and entry point.

Run this file to start the scheduling dashboard API:

    python main.py

The API docs will be at http://127.0.0.1:8000/docs

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import uvicorn

from fairshift.utils.config import get_settings
from fairshift.utils.logger import configure_logging


HOST = "127.0.0.1"
PORT = 8000


def main() -> None:
    """Start the scheduling dashboard API server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    print("=" * 60)
    print(f"  {settings.app_name}")
    print("=" * 60)
    print(f"  Server            : http://{HOST}:{PORT}")
    print(f"  API docs          : http://{HOST}:{PORT}/docs")
    print(f"  Scheduling service: {settings.schedule_api_base_url}")
    print(f"  Reference timezone: {settings.reference_timezone}")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=True,     # hot-reload on file changes during development
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
