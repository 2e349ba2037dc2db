import logging
import sys
import structlog

from whistlebox.core.config import Settings

REDACTED = "[REDACTED]"

# Event keys that may carry a PIN, complaint plaintext or credentials
SENSITIVE_KEYS = frozenset({
    "pin",
    "secret",
    "secret_hash",
    "title",
    "description",
    "location",
    "token",
    "authorization",
    "private_key",
    "encryption_key",
})


def redact_sensitive(logger, method_name, event_dict):
    """
    structlog processor: masks sensitive keys, including one level down in
    dict values such as a dumped request body.
    """
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if str(k).lower() in SENSITIVE_KEYS else v
                for k, v in value.items()
            }
    return event_dict


def setup_logging(settings: Settings):
    """
    Structured logging for the service: JSON lines in production, console
    output elsewhere. Sensitive event keys are redacted before rendering.
    """

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
    ]

    if settings.ENVIRONMENT == "production":
        renderers = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=shared_processors + renderers,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (uvicorn, sqlalchemy) to stdout at the same level
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=settings.LOG_LEVEL.upper(),
    )
