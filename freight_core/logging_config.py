"""
Logging setup.

Modules log through ``logging.getLogger(__name__)`` and attach
structured fields with ``extra=``. The formatter renders those
fields as key=value pairs after the message so log lines stay
greppable by trip_id, account_id, and so on.
"""

import logging

# Attributes every LogRecord carries; anything else came from extra=.
_RESERVED = set(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED
        }
        if fields:
            pairs = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
            line = f"{line} {pairs}"
        return line


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the package logger."""
    logger = logging.getLogger("freight_core")
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(KeyValueFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s"
    ))
    logger.addHandler(handler)
