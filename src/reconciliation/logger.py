import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.observability.log_format import FIELD_PREFIX

_base_logger = logging.getLogger("src.reconciliation")


@dataclass
class LogRecord:
    component: str
    operation: str
    message: str
    level: int
    timestamp: datetime
    correlation_id: str | None = None
    fields: dict = field(default_factory=dict)


class ReconciliationLogger:
    """Thread-safe structured logger for the reconciliation pipeline.

    Every record names the component and operation that produced it and the
    correlation id of the request (the ledger hash once it is known). Records
    go to stdlib logging and into a bounded in-memory history.
    """

    def __init__(self, max_records: int = 1000):
        self._records: deque[LogRecord] = deque(maxlen=max_records)
        self._lock = threading.Lock()

    def record(
        self,
        component: str,
        operation: str,
        message: str,
        *,
        correlation_id: str | None = None,
        level: int = logging.INFO,
        exc_info: bool = False,
        **fields,
    ) -> LogRecord:
        entry = LogRecord(
            component=component,
            operation=operation,
            message=message,
            level=level,
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id,
            fields=fields,
        )
        with self._lock:
            self._records.append(entry)

        _base_logger.getChild(component).log(
            level,
            message,
            exc_info=exc_info,
            extra={
                "component": component,
                "operation": operation,
                "correlation_id": correlation_id,
                **{f"{FIELD_PREFIX}{k}": v for k, v in fields.items()},
            },
        )
        return entry

    def get_records(
        self,
        correlation_id: str | None = None,
        component: str | None = None,
    ) -> list[LogRecord]:
        with self._lock:
            records = list(self._records)
        if correlation_id is not None:
            records = [r for r in records if r.correlation_id == correlation_id]
        if component is not None:
            records = [r for r in records if r.component == component]
        return records

    def get_errors(self) -> list[LogRecord]:
        with self._lock:
            return [r for r in self._records if r.level >= logging.WARNING]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class RequestContext:
    """Per-request correlation passed explicitly through the pipeline.

    Starts out keyed by the request id and switches to the ledger hash once
    the metadata resolver finds it.
    """

    def __init__(self, logger: ReconciliationLogger, request_id: str):
        self.logger = logger
        self.request_id = request_id
        self.correlation_id = request_id

    def correlate(self, hash_: str) -> None:
        self.correlation_id = hash_

    def log(self, component: str, operation: str, message: str, **kwargs) -> LogRecord:
        kwargs.setdefault("request_id", self.request_id)
        return self.logger.record(
            component, operation, message, correlation_id=self.correlation_id, **kwargs
        )
