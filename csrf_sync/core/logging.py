import logging
from logging.config import dictConfig

# Fields the guard passes through ``extra``; token values are never among them.
CSRF_CONTEXT_FIELDS = ("method", "path", "reason", "overwrite", "error")


class CsrfContextFilter(logging.Filter):
    """Render the guard's ``extra`` fields as ``key=value`` pairs on ``record.csrf_context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        pairs = [f"{name}={getattr(record, name)}" for name in CSRF_CONTEXT_FIELDS if hasattr(record, name)]
        record.csrf_context = " ".join(pairs)
        return True


def guard_log_level(log_level: str) -> str:
    """Level for the ``csrf_sync`` loggers: the host level, but never above WARNING.

    Rejections are logged at WARNING and stay visible when the host runs quieter.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    return logging.getLevelName(min(level, logging.WARNING))


def configure_logging(log_level: str = "INFO") -> None:
    """Configure logging for the demo host.

    Only the ``csrf_sync`` and uvicorn loggers get handlers; the root logger is
    left to the embedding application.
    """
    csrf_level = guard_log_level(log_level)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "csrf_context": {"()": CsrfContextFilter},
            },
            "formatters": {
                "standard": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                },
                "csrf": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s %(csrf_context)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                },
            },
            "handlers": {
                "default": {
                    "level": log_level.upper(),
                    "formatter": "standard",
                    "class": "logging.StreamHandler",
                },
                "csrf": {
                    "level": csrf_level,
                    "formatter": "csrf",
                    "filters": ["csrf_context"],
                    "class": "logging.StreamHandler",
                },
            },
            "loggers": {
                "csrf_sync": {
                    "handlers": ["csrf"],
                    "level": csrf_level,
                },
                "uvicorn": {
                    "handlers": ["default"],
                    "level": log_level.upper(),
                    "propagate": False,
                },
                "uvicorn.access": {
                    "handlers": ["default"],
                    "level": log_level.upper(),
                    "propagate": False,
                },
            },
        }
    )

    logging.getLogger("csrf_sync").debug("Logging configured.", extra={"level": csrf_level})
