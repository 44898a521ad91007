"""Logging setup for the EstateHub functions, driven by environment variables."""

import os
import logging
import sys
from pythonjsonlogger.json import JsonFormatter

NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "supabase", "storage3", "postgrest")


class LoggingConfig:
    """Environment-driven logging settings, read once at import."""

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
    LOG_SERVICE_NAME = os.environ.get("LOG_SERVICE_NAME", "estatehub-backend")
    LOG_MESSAGE_CONTENT = os.environ.get("LOG_MESSAGE_CONTENT", "true").lower() == "true"
    LOG_MASK_SENSITIVE = os.environ.get("LOG_MASK_SENSITIVE", "true").lower() == "true"
    LOG_CORRELATION_ID_HEADER = os.environ.get("LOG_CORRELATION_ID_HEADER", "X-Correlation-ID")
    LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "1000"))

    @classmethod
    def level(cls) -> int:
        return getattr(logging, cls.LOG_LEVEL, logging.INFO)

    @classmethod
    def build_formatter(cls) -> logging.Formatter:
        """JSON lines tagged with the service and environment, or plain text."""
        if cls.LOG_FORMAT != "json":
            return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        return JsonFormatter(
            "%(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level"},
            static_fields={
                "service": cls.LOG_SERVICE_NAME,
                "environment": os.environ.get("ENVIRONMENT", "production"),
            },
            timestamp=True,
        )

    @classmethod
    def setup_logging(cls) -> None:
        """Send every record to stdout, where the serverless runtime collects it."""
        root_logger = logging.getLogger()
        root_logger.setLevel(cls.level())
        root_logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(cls.level())
        handler.setFormatter(cls.build_formatter())
        root_logger.addHandler(handler)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
