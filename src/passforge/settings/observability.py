"""Observability settings for Passforge.

Configures structlog for structured JSON logging, both for our own loggers
and for foreign (stdlib) loggers such as Django's.
"""

import typing as t

import structlog
from decouple import config

from .base import DEBUG, VERSION

# Service identification
SERVICE_NAME = config("SERVICE_NAME", default="passforge")
SERVICE_VERSION = VERSION
DEPLOYMENT_ENVIRONMENT = config("DEPLOYMENT_ENVIRONMENT", default="development" if DEBUG else "production")

LOG_LEVEL = config("LOG_LEVEL", default="INFO")

# Fields to completely redact. Matched as substrings of the lowercased key.
SENSITIVE_KEYS = [
    "password",
    "passphrase",
    "private_key",
    "privatekey",
    "p12",
    "pem",
    "secret",
    "api_key",
    "token",
    "authorization",
    "cookie",
]


# Structlog configuration
def scrub_secrets(logger: t.Any, method_name: str, event_dict: dict[str, t.Any]) -> dict[str, t.Any]:
    """Scrub signing secrets from log events.

    Redacts passwords, private keys, certificate bundles and tokens.
    """

    # Recursively scrub nested dicts
    def _scrub_dict(d: t.Any) -> dict[str, t.Any]:
        if not isinstance(d, dict):
            return t.cast(dict[str, t.Any], d)

        for key in list(d.keys()):
            if any(sensitive in str(key).lower() for sensitive in SENSITIVE_KEYS):
                d[key] = "[REDACTED]"
            elif isinstance(d[key], dict):
                d[key] = _scrub_dict(d[key])
            elif isinstance(d[key], str) and "-----BEGIN" in d[key]:
                d[key] = "[REDACTED PEM]"

        return t.cast(dict[str, t.Any], d)

    return _scrub_dict(event_dict)


def add_app_context(logger: t.Any, method_name: str, event_dict: dict[str, t.Any]) -> dict[str, t.Any]:
    """Add application-level context to all log events."""
    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = SERVICE_VERSION
    event_dict["environment"] = DEPLOYMENT_ENVIRONMENT
    return event_dict


# Structlog processors for direct use
STRUCTLOG_PROCESSORS = [
    structlog.contextvars.merge_contextvars,  # Merge context variables
    structlog.stdlib.filter_by_level,  # Drop events below the logger's level
    structlog.stdlib.add_logger_name,  # Add logger name
    structlog.stdlib.add_log_level,  # Add log level
    structlog.stdlib.PositionalArgumentsFormatter(),  # Format positional args
    structlog.processors.TimeStamper(fmt="iso"),  # Add ISO timestamp
    structlog.processors.StackInfoRenderer(),  # Render stack info
    structlog.processors.format_exc_info,  # Format exceptions
    structlog.processors.UnicodeDecoder(),  # Decode unicode
    add_app_context,  # Add service/version/environment
    scrub_secrets,  # Scrub secrets before serialization
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,  # Rendered by the handler formatter
]

# Processors for foreign loggers (Django, etc.)
FOREIGN_PRE_CHAIN = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    add_app_context,
    scrub_secrets,
]

# Structlog configuration
structlog.configure(
    processors=STRUCTLOG_PROCESSORS,  # type: ignore[arg-type]
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
            "foreign_pre_chain": FOREIGN_PRE_CHAIN,
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "django.db.backends": {
            "handlers": ["console"],
            "level": "WARNING",  # Only log slow queries/errors
            "propagate": False,
        },
        "httpx": {
            "handlers": ["console"],
            "level": "WARNING",  # Reduce noise from HTTP libraries
            "propagate": False,
        },
    },
}
