"""
Structured Logging for the rewind crawl

Every log line is JSON with queryable fields (module, action, root_id,
match_id, queue, ...). Set LOG_FORMAT=pretty for one-line human output.

LOKI QUERIES
============
# Everything for one scan
{app="rewind"} | json | root_id="3f1c..."

# Rate limit pressure on the list stage
{app="rewind"} | json | module="list" action="rate_limited"

# Scans reaching ready
{app="rewind"} | json | module="completion" action="ready"

USAGE
=====
from rewind.utils.rewind_logging import log

# In activities (pass activity.logger):
log.info(activity.logger, "fetch", "persisted", "Match persisted",
         match_id=match_id, root_id=root_id)

# In workflows (pass workflow.logger):
log.warning(workflow.logger, "list", "released", "Page abandoned",
            root_id=root_id)
"""

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """JSON formatter. Strips the context dict Temporal appends to messages."""

    TEMPORAL_CONTEXT = re.compile(r"\s*\(\{'.+\}\)\s*$")

    def __init__(self, pretty: bool = False):
        super().__init__()
        self.pretty = pretty

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def format(self, record: logging.LogRecord) -> str:
        msg = self.TEMPORAL_CONTEXT.sub("", record.getMessage())

        if getattr(record, "_structured", False):
            data = {
                "ts": self._timestamp(),
                "level": record.levelname,
                "module": record._module,
                "action": record._action,
                "msg": msg,
            }
            data.update(record._extra)
        else:
            data = {
                "ts": self._timestamp(),
                "level": record.levelname,
                "module": record.name,
                "action": "log",
                "msg": msg,
            }

        if record.exc_info and not self.pretty:
            data["exc"] = self.formatException(record.exc_info)

        if self.pretty:
            return self._pretty(data)
        return json.dumps(data, default=str, separators=(",", ":"))

    def _pretty(self, data: dict) -> str:
        """Human-readable format for development."""
        lvl = data["level"][0]
        mod = str(data["module"]).upper()[:10].ljust(10)
        skip = {"ts", "level", "module", "action", "msg"}
        ctx = " ".join(f"{k}={v}" for k, v in data.items() if k not in skip)
        return f"{lvl} [{mod}] {data['action']}: {data['msg']}" + (f" | {ctx}" if ctx else "")


class StructuredLogger:
    """
    Centralized structured logging.

    All methods take a logger (activity.logger, workflow.logger or the
    fallback logger), a module name, an action name, a message and
    arbitrary context fields. None-valued fields are dropped.
    """

    def _log(self, logger: logging.Logger, level: int, module: str, action: str, msg: str, **kwargs) -> None:
        extra = {
            "_structured": True,
            "_module": module,
            "_action": action,
            "_extra": {k: v for k, v in kwargs.items() if v is not None},
        }
        logger.log(level, msg, extra=extra)

    def info(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        """
        Log INFO level.

        Args:
            logger: activity.logger, workflow.logger or get_fallback_logger()
            module: Source module (rewind, list, fetch, completion, worker)
            action: Action name (started, enqueued, persisted, ready, ...)
            msg: Human-readable message
            **kwargs: Context fields (root_id, match_id, queue, start, ...)
        """
        self._log(logger, logging.INFO, module, action, msg, **kwargs)

    def warning(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        """Log WARNING level."""
        self._log(logger, logging.WARNING, module, action, msg, **kwargs)

    def error(
        self,
        logger: logging.Logger,
        module: str,
        action: str,
        msg: str,
        error: Optional[str] = None,
        error_type: Optional[str] = None,
        **kwargs
    ) -> None:
        """Log ERROR level with the error message and exception class name."""
        self._log(
            logger, logging.ERROR, module, action, msg,
            error=error, error_type=error_type, **kwargs
        )

    def debug(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        """Log DEBUG level."""
        self._log(logger, logging.DEBUG, module, action, msg, **kwargs)


# Singleton instance
log = StructuredLogger()

_fallback_logger = None


def get_fallback_logger() -> logging.Logger:
    """Logger for code running outside an activity/workflow context."""
    global _fallback_logger
    if _fallback_logger is None:
        _fallback_logger = logging.getLogger("rewind.infra")
    return _fallback_logger


def configure_logging():
    """Configure root logger with structured formatter. Call once at startup."""
    pretty = os.environ.get("LOG_FORMAT", "json") == "pretty"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(pretty=pretty))

    logging.basicConfig(
        level=logging.INFO,
        handlers=[handler],
        force=True,
    )

    logging.getLogger("temporalio.activity").setLevel(logging.INFO)
    logging.getLogger("temporalio.workflow").setLevel(logging.INFO)

    # Quiet noisy loggers
    logging.getLogger("temporalio.worker").setLevel(logging.WARNING)
    logging.getLogger("temporalio.client").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
