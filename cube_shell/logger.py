"""
Logging setup for the shell.

The terminal belongs to the prompt and to command output, so log records
go to a file by default. Console records only appear with --verbose (or
[logging] console), in a compact form next to the shell's own [ERROR]
lines.
"""

import logging
import sys
from pathlib import Path

from .config import LogConfig

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# Transport chatter already reported by the client's own retry logging
QUIET_LOGGERS = ("urllib3", "asyncio")


def setup_logging(config: LogConfig) -> None:
    """
    Configure the root logger from a LogConfig.

    Note:
        - A FileHandler (full timestamped format) is added if config.file is set.
        - A stderr StreamHandler (CONSOLE_FORMAT) is added if config.console is True.
        - With neither, a NullHandler keeps Python's last-resort handler from
          printing warnings over the prompt.
        - urllib3 and asyncio are held at WARNING whatever the level.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    if config.console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(console_handler)

    if not root_logger.handlers:
        root_logger.addHandler(logging.NullHandler())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
