"""CLI entry point for the flow metrics service."""

from __future__ import annotations

import argparse
import dataclasses
import logging

import uvicorn

from common.config import get_settings

from .main import create_app

logger = logging.getLogger(__name__)


def main(argv=None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    settings = get_settings()

    p = argparse.ArgumentParser(description="Flow metrics service (Prometheus + JSON export)")
    p.add_argument("--host", default=settings.host)
    p.add_argument("--port", type=int, default=settings.port)
    p.add_argument("--detailed", action="store_true", help="enable detailed logging")
    args = p.parse_args(argv)

    settings = dataclasses.replace(
        settings,
        host=args.host,
        port=args.port,
        enable_detailed_logging=settings.enable_detailed_logging or bool(args.detailed),
    )
    if settings.enable_detailed_logging:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info("Flow metrics service starting on %s:%d", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
