"""Structured JSON logging configuration."""

import logging
import sys
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'
SERVICE_NAME = "cyberguard-telemetry"


def setup_logger(
    name: str = "cyberguard_telemetry",
    level: str = "INFO",
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure the JSON logger shared by every telemetry component.

    Each record is one JSON object with ``level`` and ``service`` fields;
    components attach structured fields through ``extra=`` and log through
    ``logger.getChild(ClassName)``, so their records reach this handler.

    Args:
        name: Logger name
        level: Log level name, case-insensitive
        stream: Output stream (stdout when omitted)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers = []

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter(
        LOG_FORMAT,
        rename_fields={"levelname": "level"},
        static_fields={"service": SERVICE_NAME},
        timestamp=True
    ))
    logger.addHandler(handler)

    logger.propagate = False

    return logger
