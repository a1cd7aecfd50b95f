import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

# Extra message categories on top of the stdlib levels.
DATA = 15
STEP = 21
SUM = 22
SUCCESS = 25

logging.addLevelName(DATA, "DATA")
logging.addLevelName(STEP, "STEP")
logging.addLevelName(SUM, "SUM")
logging.addLevelName(SUCCESS, "SUCCESS")


def level_number(name: str) -> Optional[int]:
    """Numeric value of a level name (stdlib or custom), None if unknown."""
    value = logging.getLevelName(str(name).strip().upper())
    return value if isinstance(value, int) else None


def configure_logging(level: Union[str, int] = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure root logger with console and optional file handlers.

    Args:
        level: Log level name (INFO, DEBUG, DATA, ...) or number.
        log_file: If provided, messages are also appended to this file.
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    # Console handler (always present)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            root.info("Logging to file: %s", log_file)
        except PermissionError as exc:
            root.error(
                "File logging disabled (permission error writing to %s). "
                "Make sure the path is writable for the current user (uid=%s gid=%s). "
                "Error: %s",
                str(log_file),
                os.getuid(),
                os.getgid(),
                exc,
            )
        except OSError as exc:
            root.error(
                "File logging disabled (OS error creating log file %s): %s",
                str(log_file),
                exc,
            )
