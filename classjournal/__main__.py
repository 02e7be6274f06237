"""
Run the class journal API server.

Usage:
  python -m classjournal
  python -m classjournal --config /etc/classjournal/config.toml
  python -m classjournal --create-schema
"""

import argparse
import asyncio
import logging
import os
import sys

logger = logging.getLogger("classjournal")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="classjournal", description="School class journal API server")
    parser.add_argument("--config", help="path to the TOML configuration file (default: ./config.toml)")
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="create missing tables and indexes, then exit",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.config:
        os.environ["CLASSJOURNAL_CONFIG"] = args.config

    # Settings are read at import time, so import only after --config is applied.
    from pydantic import ValidationError

    try:
        from classjournal.core.config import settings
    except (ValidationError, ValueError) as e:
        logging.basicConfig()
        logger.error("invalid configuration: %s", e)
        return 1

    from classjournal.core.logging import configure_logging

    configure_logging(settings.log_level)

    from classjournal.core.exceptions import DatabaseUnavailable
    from classjournal.db.schema import check_connection, create_schema
    from classjournal.db.session import engine

    async def prepare() -> None:
        try:
            await check_connection(engine)
            if args.create_schema:
                await create_schema(engine)
        finally:
            await engine.dispose()

    try:
        asyncio.run(prepare())
    except DatabaseUnavailable as e:
        logger.error("%s", e.message)
        return 1
    if args.create_schema:
        return 0

    import uvicorn

    from classjournal.main import app

    host, port = settings.web.host_port
    logger.info("starting HTTP server on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
