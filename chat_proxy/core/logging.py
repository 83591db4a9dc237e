from __future__ import annotations

import json
import logging
import textwrap
from datetime import datetime, timezone
from typing import Any, Dict

from chat_proxy.core.settings import get_settings

_RESERVED_ATTRS = frozenset(
    (
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    )
)


class JsonFormatter(logging.Formatter):
    def __init__(self, *, pretty: bool = False) -> None:
        super().__init__()
        self.pretty = bool(pretty)

    def format(self, record: logging.LogRecord) -> str:
        event = getattr(record, "event", None)
        if event in {"upstream_request", "upstream_response"}:
            return self._format_upstream(record)

        base: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)

        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS or k.startswith("_"):
                continue
            if k not in base:
                try:
                    json.dumps(v)
                    base[k] = v
                except (TypeError, ValueError):
                    base[k] = str(v)

        indent = 2 if self.pretty else None
        return json.dumps(base, ensure_ascii=False, indent=indent)

    def _format_upstream(self, record: logging.LogRecord) -> str:
        direction = getattr(record, "direction", "").lower() or "unknown"
        tag = "REQUEST" if direction == "input" else "RESPONSE" if direction == "output" else direction.upper()
        header = f"====== UPSTREAM {tag} ======"

        lines = [
            header,
            f"level: {record.levelname}",
            f"model: {getattr(record, 'model', '-')}",
            f"endpoint: {getattr(record, 'endpoint', '-')}",
        ]
        latency = getattr(record, "latency_ms", None)
        if latency is not None:
            lines.append(f"latency_ms: {latency:.1f}")

        body_key = "payload" if direction == "input" else "response"
        body = getattr(record, body_key, None)
        if body is None:
            body = getattr(record, "payload", None) or getattr(record, "response", None)

        if body is not None:
            lines.append("body:")
            lines.append(textwrap.indent(self._render_structure(body), "  "))

        lines.append("=" * len(header))
        return "\n".join(lines)

    def _render_structure(self, data: Any) -> str:
        try:
            indent = 2 if self.pretty else None
            rendered = json.dumps(data, ensure_ascii=False, indent=indent)
        except TypeError:
            return str(data)

        if not self.pretty:
            return rendered

        # show escaped newlines of prompt text as real line breaks
        return rendered.replace("\\n", "\n")


def get_logger(name: str = "chat_proxy") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        settings = get_settings()
        level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
        logger.setLevel(level)
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter(pretty=bool(settings.LOG_PRETTY)))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


logger = get_logger("chat_proxy")
