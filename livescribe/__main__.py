"""Run the livescribe control surface with uvicorn."""

from __future__ import annotations

import argparse
import logging

import uvicorn

from .api.app import create_app
from .config import get_settings


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="livescribe", description=__doc__)
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
