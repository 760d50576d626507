from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

import uvicorn

from chat_board.configuration import AppConfig, load_config
from chat_board.main import create_app

logger = logging.getLogger(__name__)


def _build_parser(defaults: AppConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the open chat board HTTP server")
    parser.add_argument("--host", default=defaults.server.host, help="bind address")
    parser.add_argument("--port", type=int, default=defaults.server.port, help="listen port")
    parser.add_argument(
        "--data-path",
        type=Path,
        default=defaults.storage.data_path,
        help="JSON file holding the messages",
    )
    parser.add_argument("--log-level", default=defaults.log_level, help="logging level (INFO, DEBUG, ...)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    config = load_config()
    args = _build_parser(config).parse_args(argv)

    config.server.host = args.host
    config.server.port = args.port
    config.storage.data_path = args.data_path.expanduser()
    config.log_level = str(args.log_level).upper()

    logging.basicConfig(level=config.log_level, format="[%(asctime)s] %(message)s")
    logger.info("serving chat board on %s:%d (store: %s)", config.server.host, config.server.port, config.storage.data_path)

    app = create_app(config)
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_level=config.log_level.lower())
    logger.info("chat board stopped")


if __name__ == "__main__":
    main()
