"""Logging setup for the Penci relay."""
import os
import logging
from typing import Optional

from .path_config import get_logs_dir

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None, log_format: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure root logging with a stream handler and an optional file handler.

    Relative `log_file` names are placed in the logs directory.
    """
    level = getattr(logging, str(log_level).upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    handlers = [logging.StreamHandler()]
    if log_file:
        if not os.path.isabs(log_file):
            log_file = os.path.join(get_logs_dir(), log_file)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=log_format, handlers=handlers, force=True)

    # python-socketio and engineio are chatty at INFO
    for noisy in ("socketio", "engineio"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    return logging.getLogger("penci-relay")
