"""Executable entry point for launching the SOAP workbench FastAPI application.

This module is intentionally minimal so that process managers (uvicorn / gunicorn /
ASGI workers) can import a stable `app` object from `soap_workbench.app` OR run
`python -m soap_workbench.run_server` directly for local development.

Environment Variables:
    PORT (int): Override listening port (default 8000).

Example:
    $ python -m soap_workbench.run_server
    $ PORT=9000 python -m soap_workbench.run_server

Production Recommendation:
    Prefer invoking uvicorn or another ASGI server directly for tuned concurrency:
        uvicorn soap_workbench.app:app --host 0.0.0.0 --port 8000 --workers 4
"""

from __future__ import annotations

import os

import uvicorn

from .app import app


def main() -> None:
    """Launch the ASGI server with development-friendly defaults.

    Reads the ``PORT`` environment variable (default 8000).
    """
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
