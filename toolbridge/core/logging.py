"""
Logging configuration for the tool server.
"""

import logging
import sys

import structlog

#: Keys whose values never reach the log output.
SECRET_KEYS = frozenset({
    "token",
    "password",
    "client_secret",
    "authorization",
    "access_token",
})

_MASK = "***"


def _scrub(value):
    if isinstance(value, dict):
        return {
            key: _MASK if str(key).lower() in SECRET_KEYS else _scrub(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_scrub(item) for item in value]
    return value


def secret_scrubbing_processor(logger, method_name, event_dict):
    """
    Structlog processor that masks credentials.

    Tool arguments carry management API tokens and user passwords, and
    they are logged as key/value context on failures.
    """
    for key, value in list(event_dict.items()):
        if key.lower() in SECRET_KEYS:
            event_dict[key] = _MASK
        elif isinstance(value, (dict, list)):
            event_dict[key] = _scrub(value)
    return event_dict


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Setup structured logging with structlog.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Render JSON lines; otherwise a human-readable console format
    """

    # stdout is left to the process that embeds the server
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
        format="%(message)s",
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        secret_scrubbing_processor,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
