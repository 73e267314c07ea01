"""Logging configuration and custom formatters for vidshift.

This module provides the log record factory, the run-context filter, the
human-readable formatter and the ``dictConfig`` setup used by the CLI and
the test suite. JSON output is delegated to ``python-json-logger``.
"""

from collections.abc import Mapping
from contextvars import ContextVar, Token
import json
import logging
from logging.config import dictConfig
import sys
from typing import Any, Literal

_original_log_record_factory = logging.getLogRecordFactory()


def custom_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    """Create a log record carrying structured exception information.

    Walks the exception chain of ``exc_info`` and collects the public
    attributes of every exception (``run_id``, ``stderr``, ``file_name``...)
    plus the chain of messages, so formatters can render them without a
    full stack trace.

    Args:
        *args: Arguments passed to the original log record factory.
        **kwargs: Keyword arguments passed to the original log record factory.

    Returns:
        LogRecord with ``exc_custom_attrs`` and ``semantic_trace`` set when
        an exception is attached.
    """
    record = _original_log_record_factory(*args, **kwargs)

    if record.exc_info and record.exc_info[1]:
        collected_attrs: dict[str, Any] = {}
        semantic_chain_messages: list[str] = []

        current_exc: BaseException | None = record.exc_info[1]
        while current_exc:
            for name, val in vars(current_exc).items():
                if not name.startswith("_") and name not in collected_attrs:
                    collected_attrs[name] = val

            semantic_chain_messages.append(str(current_exc) or type(current_exc).__name__)
            current_exc = current_exc.__cause__ or current_exc.__context__

        if collected_attrs:
            record.exc_custom_attrs = collected_attrs
        if semantic_chain_messages:
            record.semantic_trace = semantic_chain_messages

    return record


_context_id_var: ContextVar[str | None] = ContextVar("context_id", default=None)


def set_context_id(context_id: str | None) -> Token[str | None]:
    """Set the context ID for the current async context.

    Every record logged within the context carries the id through
    ``ContextIdFilter``. The session uses the run identifier here.

    Args:
        context_id: The context identifier to set (e.g., ``"run-3"``).

    Returns:
        Token that restores the previous value via ``reset_context_id``.
    """
    return _context_id_var.set(context_id)


def reset_context_id(token: Token[str | None]) -> None:
    """Restore the context ID that was active before ``set_context_id``."""
    _context_id_var.reset(token)


class ContextIdFilter(logging.Filter):
    """Inject the current context_id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context_id = _context_id_var.get()
        if context_id is not None:
            record.context_id = context_id
        return True


_should_include_stacktrace: bool = False

_STANDARD_RECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "context_id",
        "taskName",
        "exc_custom_attrs",
        "semantic_trace",
    }
)


class HumanReadableExtrasFormatter(logging.Formatter):
    """Human-readable formatter that appends ``extra`` fields.

    Output looks like::

        2026-01-01 12:00:00 INFO [vidshift.session] CtxID:run-1 phase:RUNNING - Run started.

    Exception attributes collected by ``custom_record_factory`` are merged
    into the extras. When stack traces are suppressed, the semantic cause
    chain is printed instead.
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: Literal["%", "{", "$"] = "%",
        validate: bool = True,
        *,
        defaults: Mapping[str, Any] | None = None,
    ):
        super().__init__(fmt, datefmt, style, validate, defaults=defaults)

    def _format_extras(self, record: logging.LogRecord) -> str:
        combined_extras: dict[str, Any] = {}
        exc_custom_attributes = getattr(record, "exc_custom_attrs", None)
        if isinstance(exc_custom_attributes, dict):
            combined_extras.update(exc_custom_attributes)  # type: ignore

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                combined_extras[key] = value

        pairs: list[str] = []
        for key, value in combined_extras.items():
            try:
                if isinstance(value, dict | list | tuple):
                    formatted_value = json.dumps(
                        value, sort_keys=True, separators=(", ", ":")
                    )
                else:
                    formatted_value = str(value)  # type: ignore
                pairs.append(f"{key}:{formatted_value}")
            except TypeError:
                pairs.append(f"{key}=[Unserializable Value: {type(value)}]")  # type: ignore
        return " ".join(pairs)

    def format(self, record: logging.LogRecord) -> str:
        prefix_parts = [
            self.formatTime(record, self.datefmt),
            record.levelname,
            f"[{record.name}]",
        ]
        ctx_id = getattr(record, "context_id", None)
        if ctx_id is not None:
            prefix_parts.append(f"CtxID:{ctx_id}")

        main_message = record.getMessage()
        log_string_parts = [
            " ".join(prefix_parts),
            self._format_extras(record),
            f"- {main_message}" if main_message else "-",
        ]
        final_log_string = " ".join(filter(None, log_string_parts))

        if record.exc_info:
            if _should_include_stacktrace:
                if not record.exc_text:
                    record.exc_text = self.formatException(record.exc_info)
                if record.exc_text:
                    final_log_string += "\n" + record.exc_text
            else:
                semantic_trace_list: list[str] | None = getattr(
                    record, "semantic_trace", None
                )
                if semantic_trace_list:
                    first, *causes = semantic_trace_list
                    final_log_string += f"\nError: {first}"
                    for msg in causes:
                        final_log_string += f"\n  Caused by: {msg}"

        if record.stack_info:
            final_log_string += "\n" + self.formatStack(record.stack_info)

        return final_log_string


LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "context_id_filter": {
            "()": ContextIdFilter,
        },
    },
    "formatters": {
        "human_readable_formatter": {
            "()": HumanReadableExtrasFormatter,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "json_formatter": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(levelname)s %(name)s %(context_id)s %(message)s",
        },
    },
    "handlers": {
        "console_handler": {
            "class": "logging.StreamHandler",
            "formatter": "human_readable_formatter",
            "stream": "ext://sys.stderr",
            "filters": ["context_id_filter"],
        },
    },
    "loggers": {
        "vidshift": {
            "handlers": ["console_handler"],
            "level": "INFO",
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console_handler"],
        "level": "WARNING",
    },
}


def setup_logging(
    log_format_type: Literal["human", "json"],
    app_log_level_name: str,
    include_stacktrace: bool,
) -> None:
    """Configure logging for the application.

    Args:
        log_format_type: Format for logs ('human' or 'json').
        app_log_level_name: Logging level name (e.g., 'INFO', 'DEBUG').
        include_stacktrace: Whether to include full stack traces in error logs.
    """
    global _should_include_stacktrace
    _should_include_stacktrace = include_stacktrace

    logging.setLogRecordFactory(custom_record_factory)

    log_level_upper = app_log_level_name.upper()
    if not isinstance(getattr(logging, log_level_upper, None), int):
        print(
            f"Warning: Invalid LOG_LEVEL '{app_log_level_name}'. Defaulting to INFO.",
            file=sys.stderr,
        )
        log_level_upper = "INFO"
    LOGGING_CONFIG["loggers"]["vidshift"]["level"] = log_level_upper

    formatter = (
        "json_formatter"
        if log_format_type.lower() == "json"
        else "human_readable_formatter"
    )
    LOGGING_CONFIG["handlers"]["console_handler"]["formatter"] = formatter

    dictConfig(LOGGING_CONFIG)
