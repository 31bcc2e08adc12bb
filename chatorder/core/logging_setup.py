from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from chatorder.core.request_context import get_customer, get_request_id, get_state, get_tenant_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

# record attributes copied into the JSON line when a call site passes them via ``extra``
EXTRA_FIELDS = (
    "lane",
    "source",
    "confidence",
    "from_state",
    "to_state",
    "endpoint",
    "method",
    "status_code",
    "duration_ms",
)

_SECRET_PATTERNS = (
    re.compile(r"(authorization\s*[:=]\s*(?:bearer|basic)\s+)([^\s\"]+)", re.IGNORECASE),
    re.compile(r"((?:api_?)?(?:key|token|secret)\s*[:=]\s*)([^\s\",}&]+)", re.IGNORECASE),
)
_LONG_NUMBER = re.compile(r"\b(\d{6,})(\d{4})\b")


def mask_phone(phone: str | None) -> str | None:
    if not phone:
        return phone
    digits = re.sub(r"\D", "", phone)
    if len(digits) <= 4:
        return digits
    return "*" * (len(digits) - 4) + digits[-4:]


def redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1***", text)
    return _LONG_NUMBER.sub(lambda match: "*" * len(match.group(1)) + match.group(2), text)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the conversation the record belongs to."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "tenant_id": getattr(record, "tenant_id", None) or get_tenant_id(),
            "customer": mask_phone(getattr(record, "customer", None) or get_customer()),
            "state": getattr(record, "state", None) or get_state(),
            "message": redact(record.getMessage()),
        }
        payload.update(
            {name: getattr(record, name) for name in EXTRA_FIELDS if getattr(record, name, None) is not None}
        )
        if record.exc_info:
            payload["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    handler = logging.StreamHandler()
    if fmt == "text":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(level)

    for logger_name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(logger_name).setLevel(level)
    # the observability middleware already writes one line per request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
