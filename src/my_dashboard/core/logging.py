"""Structured logging for the dashboard, configurable per process.

Uses structlog's ProcessorFormatter to transparently upgrade all existing
``logging.getLogger(__name__)`` call sites. Zero changes needed at call sites.

Two output formats:
- ``text``: Colored, human-readable console output (dev default)
- ``json``: Machine-parseable JSON lines (production / log aggregation)

The process role (``api`` or ``scheduler``), the current request id and the
OTel trace context are injected automatically via processors that read from
ContextVars and the current OTel span.

When ``log_root`` is set, JSON copies are written to
``{log_root}/{process}.log`` and ``{log_root}/http/{process}.log``.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

# ---------------------------------------------------------------------------
# Context (asyncio-safe via ContextVar)
# ---------------------------------------------------------------------------

_process_context: ContextVar[str | None] = ContextVar("dashboard_process", default=None)
_request_context: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_process_context(name: str) -> None:
    """Set the process role (``api``, ``scheduler``) for the current context."""
    _process_context.set(name)


def get_request_id() -> str | None:
    """Get the request id bound to the current async context."""
    return _request_context.get()


@contextmanager
def request_context(request_id: str | None) -> Iterator[None]:
    """Bind *request_id* to every log record emitted inside the block."""
    token = _request_context.set(request_id)
    try:
        yield
    finally:
        _request_context.reset(token)


# ---------------------------------------------------------------------------
# Structlog processors
# ---------------------------------------------------------------------------


def add_dashboard_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject ``process`` and ``request_id`` keys from the ContextVars."""
    event_dict["process"] = _process_context.get()
    request_id = _request_context.get()
    if request_id is not None:
        event_dict["request_id"] = request_id
    return event_dict


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject ``trace_id`` and ``span_id`` from the current OTel span."""
    span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx and ctx.trace_id:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


# ---------------------------------------------------------------------------
# Credential redaction
# ---------------------------------------------------------------------------

# The Cypress reporting API takes its key as a ``token`` query parameter, so
# transport logs would otherwise carry it in the request URL.
_REDACTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)([?&](?:token|api_key|apikey)=)[^&\s\"']+"), r"\1[REDACTED]"),
    (re.compile(r"(?i)\b(Bearer)\s+[A-Za-z0-9._~+/=-]+"), r"\1 [REDACTED]"),
    (
        re.compile(r"(?i)\b(x-api-key|circle-token)(['\"]?\s*[:=]\s*['\"]?)[^\s,;'\"]+"),
        r"\1\2[REDACTED]",
    ),
)


def redact(message: str) -> str:
    """Replace credential values in *message* with ``[REDACTED]``."""
    for pattern, replacement in _REDACTION_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class CredentialRedactionFilter(logging.Filter):
    """Scrub tokens and API keys from records before any handler sees them."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            original = record.getMessage()
        except (TypeError, ValueError):
            return True
        redacted = redact(original)
        if redacted != original:
            record.msg = redacted
            record.args = ()
        return True


# ---------------------------------------------------------------------------
# Noise suppression
# ---------------------------------------------------------------------------

_NOISE_LOGGERS = (
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
    "httpcore",
)

_DIR_HTTP = "http"


def _build_processors(
    time_fmt: str,
) -> list[structlog.types.Processor]:
    """Build the pre-chain processor list with the given timestamp format."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_dashboard_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _make_file_handler(path: Path, processors: list) -> logging.FileHandler:
    """Create a JSON file handler at *path*."""
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=processors,
    )
    handler = logging.FileHandler(path)
    handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    handler.addFilter(CredentialRedactionFilter())
    return handler


# ---------------------------------------------------------------------------
# configure_logging()
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | str | None = None,
    process_name: str | None = None,
) -> None:
    """Configure structured logging for the process.

    Parameters
    ----------
    level:
        Root log level (e.g. "DEBUG", "INFO", "WARNING").
    fmt:
        Output format: ``"text"`` for colored console, ``"json"`` for JSON lines.
    log_root:
        Directory for JSON log files. Application logs go to
        ``{log_root}/{process_name}.log``; uvicorn/httpx transport logs go to
        ``{log_root}/http/{process_name}.log``.
    process_name:
        Process role. Set in the ContextVar and used for file naming.
    """
    if process_name:
        set_process_context(process_name)

    if fmt == "json":
        console_processors = _build_processors(time_fmt="iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        console_processors = _build_processors(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=console_processors,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(CredentialRedactionFilter())

    root = logging.getLogger()
    # Remove existing handlers to avoid duplicate output on reconfiguration
    root.handlers.clear()
    root.addHandler(console_handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_root is not None:
        log_root = Path(log_root)
        file_processors = _build_processors(time_fmt="iso")
        log_name = process_name or "dashboard"

        (log_root / _DIR_HTTP).mkdir(parents=True, exist_ok=True)

        root.addHandler(_make_file_handler(log_root / f"{log_name}.log", file_processors))

        http_handler = _make_file_handler(log_root / _DIR_HTTP / f"{log_name}.log", file_processors)
        for name in _NOISE_LOGGERS:
            logging.getLogger(name).addHandler(http_handler)

    structlog.configure(
        processors=[
            *console_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
