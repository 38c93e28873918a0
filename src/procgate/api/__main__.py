"""
procgate.api.__main__

Entrypoint for running the gateway via `python -m procgate.api` (or `procgate`).

Responsibilities:
- Load settings and create the app.
- Start uvicorn with structlog-compatible logging config.
- Trust forwarded headers so audit records carry the real caller address.
"""

from __future__ import annotations

import uvicorn

from procgate.api.app import create_app
from procgate.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
