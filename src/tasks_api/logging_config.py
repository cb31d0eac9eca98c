from __future__ import annotations

import logging.config


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a single console handler.

    Safe to call more than once; later calls replace the earlier setup.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "{asctime} {levelname} {name} {message}",
                    "style": "{",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": level,
            },
            "loggers": {
                # Requests are already logged by AccessLogMiddleware
                "uvicorn.access": {"level": "WARNING"},
            },
        }
    )
