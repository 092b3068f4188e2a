from __future__ import annotations

import logging.config
import os

import structlog

PLUGIN_NAME = "image-compressor"
LOG_LEVEL_ENV = "IMGCOMPRESSOR_LOG_LEVEL"


def add_plugin_name(logger: object, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("plugin", PLUGIN_NAME)
    return event_dict


def configure_logging(style: str = "plain", level: str = "WARNING") -> None:
    """Route the package loggers to stderr.

    ``style`` is ``"plain"`` for humans or ``"json"`` for the plugin side
    channel, where every record becomes one JSON object per line.
    """
    level = (os.environ.get(LOG_LEVEL_ENV) or level).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "()": "logging.Formatter",
                    "fmt": "[%(asctime)s] %(levelname)-8s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": [
                        structlog.processors.TimeStamper(fmt="iso", key="ts"),
                        structlog.stdlib.add_log_level,
                        add_plugin_name,
                    ],
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.processors.format_exc_info,
                        structlog.processors.EventRenamer("msg"),
                        structlog.processors.JSONRenderer(),
                    ],
                },
            },
            "handlers": {
                "stream": {
                    "formatter": style,
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "imgcompressor": {"handlers": ["stream"], "level": level, "propagate": False},
            },
        }
    )
