"""Structured JSON logging for the resolver service.

Every line carries the request id of the HTTP request being served ("-"
outside a request). Resolver and safeguard log calls attach rate context via
`extra=` (instrument_id, source, rate); those keys are copied into the JSON
object when present.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Mapping

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

RATE_CONTEXT_FIELDS = ("instrument_id", "source", "rate", "status", "duration_ms")


def rate_context(**fields: Any) -> Mapping[str, Any]:
    """`extra=` payload for a log call; None values are dropped."""
    return {k: v for k, v in fields.items() if v is not None}


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = request_id_ctx.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "request_id": getattr(record, "request_id", "-"),
        }
        for field in RATE_CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = str(value) if not isinstance(value, (int, float)) else value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def init_logging(debug: bool = False) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    level = logging.DEBUG if debug else logging.INFO
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    # httpx logs every indexer request at INFO
    logging.getLogger("httpx").setLevel(level if debug else logging.WARNING)


async def request_context_middleware(request, call_next):  # type: ignore
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    token = request_id_ctx.set(rid)
    logger = logging.getLogger("rate_handler.request")
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["x-request-id"] = rid
        logger.info(
            "%s %s",
            request.method,
            request.url.path,
            extra=rate_context(
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            ),
        )
        return response
    finally:
        request_id_ctx.reset(token)
