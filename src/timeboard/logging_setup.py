"""Root logger configuration shared by the CLI and the API server."""

import logging
from pathlib import Path
from typing import Optional

from timeboard.core.config import ConfigManager

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_MARKER = "_timeboard_handler"


def setup_logging(config: ConfigManager, log_file: Optional[Path] = None) -> None:
    """Configure the root logger from ``general.log_level``.

    Calling this more than once replaces the handlers it installed earlier.

    Args:
        config: Configuration manager
        log_file: Also write records to this file when given
    """
    log_level = getattr(logging, config.get("general.log_level", "INFO"))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARKER, True)
        root_logger.addHandler(handler)
