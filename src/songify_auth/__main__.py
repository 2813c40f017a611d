"""Command-line entry point: ``songify-auth`` / ``python -m songify_auth``.

Example
-------
    songify-auth --env-file .env --port 3001
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

import uvicorn
from dotenv import load_dotenv

from songify_auth.oauth.errors import ConfigurationError
from songify_auth.servers.main import create_app
from songify_auth.utils.environment import AuthSettings
from songify_auth.utils.logging import setup_logging

logger = logging.getLogger("songify-auth.cli")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="songify-auth",
        description="Run the Songify Spotify OAuth session backend.",
    )
    parser.add_argument("--env-file", type=Path, default=None, help="Path to a .env file")
    parser.add_argument("--host", default=None, help="Bind address (overrides HOST)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (overrides PORT)")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    parser.add_argument(
        "--reload", action="store_true", help="Auto-reload on code changes (development)"
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    # existing environment variables win over the file
    load_dotenv(dotenv_path=args.env_file, override=False)

    try:
        settings = AuthSettings.from_env()
    except ConfigurationError as exc:
        setup_logging(logging.ERROR)
        logger.error("Invalid configuration: %s", exc)
        return 2

    overrides = {
        key: value
        for key, value in (
            ("host", args.host),
            ("port", args.port),
            ("log_level", args.log_level),
        )
        if value is not None
    }
    settings = replace(settings, **overrides)
    setup_logging(settings.log_level)

    if args.reload:
        # the reloader imports the factory itself, so it reads the environment again
        uvicorn.run(
            "songify_auth.servers.main:create_app",
            factory=True,
            host=settings.host,
            port=settings.port,
            reload=True,
            server_header=False,
            log_level=settings.log_level.lower(),
        )
        return 0

    try:
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.error("Refusing to start: %s", exc)
        return 2

    logger.info("Listening on http://%s:%s", settings.host, settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        server_header=False,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
