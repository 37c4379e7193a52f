"""
Structured logging with correlation ID propagation.
Provides the application logger, a per-request adapter and an audit trail writer.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

from app.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Guarantees every record carries a correlation_id attribute for the formatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


class CorrelationAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Injects the request correlation ID into every message logged through it."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("correlation_id", (self.extra or {}).get("correlation_id", "-"))
        kwargs["extra"] = extra
        return msg, kwargs


def _build_logger(name: str) -> logging.Logger:
    built = logging.getLogger(name)
    if not built.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        built.addHandler(handler)
    built.setLevel(settings.LOG_LEVEL.upper())
    built.propagate = False
    return built


logger = _build_logger("debtpilot")
_audit_logger = _build_logger("debtpilot.audit")


def get_logger_with_correlation(correlation_id: Optional[str]) -> CorrelationAdapter:
    """Returns a logger bound to the given correlation ID for distributed tracing."""
    return CorrelationAdapter(logger, {"correlation_id": correlation_id or "-"})


def audit_log(action: str, user: str, resource: str, details: Optional[Dict[str, Any]] = None) -> None:
    """
    Writes an immutable audit entry as a single JSON line.
    Used for every state-changing or financially relevant operation.
    """
    details = details or {}
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "user": user,
        "resource": resource,
        "details": details,
    }
    _audit_logger.info(
        json.dumps(entry, default=str),
        extra={"correlation_id": details.get("correlation_id", "-")}
    )
