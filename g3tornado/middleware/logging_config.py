"""
Logging setup for G3 Tornado.

One stderr handler on the root logger:
    production          JSON lines, one object per record
    development / test  short readable lines

Request context (request id, status, duration, acting user) arrives through
``extra=`` from the timing middleware and is rendered by both formatters.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "user_id",
    "task_id",
    "project_id",
)


def _context(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:01:07 INFO  g3tornado.services.task_service: Task created [rid=ab12 204ms]``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{ts} {record.levelname:<5} {record.name}: {record.getMessage()}"

        ctx = _context(record)
        tags = []
        if "request_id" in ctx:
            tags.append(f"rid={ctx['request_id']}")
        if "duration_ms" in ctx:
            tags.append(f"{ctx['duration_ms']:.0f}ms")
        if tags:
            line += f" [{' '.join(tags)}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the handler. ``LOG_LEVEL`` overrides the per-environment default."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())

    # create_app() runs once per test session as well; replace, never stack
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    app.logger.setLevel(level)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    if not testing:
        app.logger.info("Logging ready: level=%s json=%s", level_name, production)
