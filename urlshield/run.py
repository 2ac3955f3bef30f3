"""Programmatic uvicorn entry point for URL Shield.

Reads host and port from the loaded config (127.0.0.1:8480 by default) and
starts uvicorn with hardened defaults.

Usage:
    python -m urlshield.run   # reads .urlshield/config.yaml
    urlshield                 # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from urlshield.config import load_config

# Maximum number of concurrent connections accepted by uvicorn.
# New connections receive HTTP 503 when this limit is exceeded.
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP connection backlog queue size.
UVICORN_BACKLOG: int = 50

# HTTP keep-alive timeout in seconds. Low value reduces the Slow Loris window.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the URL Shield server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "urlshield.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
