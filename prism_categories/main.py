import argparse
import logging
import os
import sys
from typing import List, Optional

from . import HISTORY, __version__
from .config import load_settings
from .exceptions import ConfigError, PrismError
from .logging_config import configure_logging
from .sync_categories import run_sync

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 1
EXIT_API_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prism-categories",
        description="Configure Prism Central categories and security rules from a YAML file.",
    )
    parser.add_argument(
        "--history",
        action="store_true",
        help="print the release history and exit",
    )
    parser.add_argument(
        "--logfile",
        metavar="PATH",
        help="also append log output to this file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="enable debug logging",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        default=os.getenv("APP_CONFIG_FILE"),
        help="YAML/JSON config file (default: $APP_CONFIG_FILE)",
    )
    return parser


def print_history() -> None:
    print(f"prism-categories {__version__}")
    for version, note in HISTORY:
        print(f"  {version}: {note}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.history:
        print_history()
        return 0

    # Configure logging early so load_settings() warnings/errors are visible.
    configure_logging("DEBUG" if args.debug else os.getenv("LOG_LEVEL", "INFO"), args.logfile)

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR

    # Command-line flags win over the runtime section of the config file.
    configure_logging(
        "DEBUG" if args.debug else settings.log_level,
        args.logfile or settings.log_file,
    )

    try:
        return run_sync(settings)
    except PrismError as exc:
        logger.error("%s", exc)
        if exc.payload is not None:
            logger.error("Last request payload: %s", exc.payload)
        return EXIT_API_ERROR


if __name__ == "__main__":
    sys.exit(main())
