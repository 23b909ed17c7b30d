# guitarshare/observability/logger.py

# structured JSON logger
import logging
import os
import sys

from opentelemetry import trace
from pythonjsonlogger.json import JsonFormatter


class TraceIdFilter(logging.Filter):
    """Inject trace_id into the record when a span is active."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            ctx = trace.get_current_span().get_span_context()
            record.trace_id = f"{ctx.trace_id:032x}" if ctx and ctx.trace_id else None
        return True


def _build_formatter() -> logging.Formatter:
    return JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def configure_logging(settings, logs_path: str = "logs") -> None:
    """Configure root logging with JSON output.

    - Adds a JSON console handler (stdout) on the root logger.
    - Routes the `access` and `error` loggers to files when LOG_TO_FILE is set.
    - Injects trace_id when tracing is enabled.
    """
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL)

    formatter = _build_formatter()
    trace_filter = TraceIdFilter()

    # Add a JSON console handler on root (single instance)
    have_console = any(isinstance(h, logging.StreamHandler) for h in root.handlers)
    if not have_console:
        console = logging.StreamHandler(stream=sys.stdout)
        console.setFormatter(formatter)
        console.addFilter(trace_filter)
        root.addHandler(console)

    if settings.LOG_TO_FILE:
        os.makedirs(logs_path, exist_ok=True)
        for logger_name in ("access", "error"):
            lg = logging.getLogger(logger_name)
            # Avoid adding handlers twice (e.g. during autoreload)
            if any(isinstance(h, logging.FileHandler) for h in lg.handlers):
                continue
            handler = logging.FileHandler(
                os.path.join(logs_path, f"{logger_name}.log"), encoding="utf-8"
            )
            handler.setFormatter(formatter)
            handler.addFilter(trace_filter)
            lg.addHandler(handler)

    logging.getLogger("startup").info("logging configured")
