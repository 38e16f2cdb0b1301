# app/utils/logger.py
"""
Centralised logging configuration for the entire application.
Logs to console and to a rotating file in /logs/.

Email action links carry a capability token in the URL path, so every handler
passes records through a filter that masks the token segment before it is
written anywhere (uvicorn access logs included).
"""

import logging
import os
import re
from logging.handlers import RotatingFileHandler

from app.config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")
os.makedirs(LOG_DIR, exist_ok=True)

_ACTION_TOKEN_RE = re.compile(r"(/email-actions/[\w-]+/\d+/)[^/?\s\"']+")

_configured = False


def redact_action_tokens(text: str) -> str:
    """Replace the token segment of any email-action path with '***'."""
    return _ACTION_TOKEN_RE.sub(r"\1***", text)


class ActionTokenFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_action_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    token_filter = ActionTokenFilter()

    console = logging.StreamHandler()
    console.setLevel(LOG_LEVEL)
    console.setFormatter(fmt)
    console.addFilter(token_filter)

    # Rotating file handler - keeps last 10 × 5MB log files
    file_handler = RotatingFileHandler(
        filename=os.path.join(LOG_DIR, "visitors.log"),
        maxBytes=5 * 1024 * 1024,
        backupCount=10,
        encoding="utf-8",
    )
    file_handler.setLevel(LOG_LEVEL)
    file_handler.setFormatter(fmt)
    file_handler.addFilter(token_filter)

    root = logging.getLogger()
    root.setLevel(LOG_LEVEL)
    root.addHandler(console)
    root.addHandler(file_handler)

    # uvicorn's access logger does not propagate; attach the filter directly
    logging.getLogger("uvicorn.access").addFilter(token_filter)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
