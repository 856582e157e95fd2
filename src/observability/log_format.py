import logging
import sys

from pythonjsonlogger import jsonlogger

SENSITIVE_KEYS = ("secret", "api_key", "secret_key", "webhook_secret", "signature_header")
# ReconciliationLogger passes structured fields through ``extra`` with this prefix.
FIELD_PREFIX = "ctx_"


class ReconciliationJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per line with level, logger and timestamp always present."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        for key in SENSITIVE_KEYS:
            for name in (key, FIELD_PREFIX + key):
                if name in log_record:
                    log_record[name] = "***REDACTED***"


def configure_logging(debug: bool = False, json_output: bool = True, stream=None) -> logging.Handler:
    """Install a single stdout handler on the root logger.

    ``debug`` is the DEBUG_PAYMENTS switch: it lowers the level so raw
    payloads and per-step records are emitted.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    if json_output:
        handler.setFormatter(ReconciliationJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    return handler
