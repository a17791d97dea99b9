"""Structured logging helpers with run correlation context."""

from __future__ import annotations

import contextvars
import logging
import uuid
from concurrent.futures import Executor, Future
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

_RUN_ID_VAR: contextvars.ContextVar[str] = contextvars.ContextVar(
    "run_id", default="-"
)
_PHASE_VAR: contextvars.ContextVar[str] = contextvars.ContextVar(
    "phase", default="-"
)

_T = TypeVar("_T")

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | run_id=%(run_id)s | phase=%(phase)s | "
    "%(threadName)s | %(name)s | %(message)s"
)


class _RunContextFilter(logging.Filter):
    """Inject run correlation fields into all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _RUN_ID_VAR.get("-")
        record.phase = _PHASE_VAR.get("-")
        return True


def _ensure_filter_on_root_handlers() -> None:
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        has_filter = any(isinstance(f, _RunContextFilter) for f in handler.filters)
        if not has_filter:
            handler.addFilter(_RunContextFilter())


def configure_structured_logging(level: int = logging.INFO) -> None:
    """Configure root logging format with run/phase context."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        root_logger.setLevel(level)
        formatter = logging.Formatter(LOG_FORMAT)
        for handler in root_logger.handlers:
            handler.setFormatter(formatter)
    _ensure_filter_on_root_handlers()


def set_run_id(run_id: str | None = None) -> str:
    """Set or generate run correlation ID."""
    value = run_id or uuid.uuid4().hex[:12]
    _RUN_ID_VAR.set(value)
    return value


def get_run_id() -> str:
    """Get current run correlation ID."""
    return _RUN_ID_VAR.get("-")


def get_phase() -> str:
    """Get the current pipeline phase."""
    return _PHASE_VAR.get("-")


@contextmanager
def run_scope(run_id: str | None = None) -> Iterator[str]:
    """Bind a run id for the duration of one extraction run."""
    token = _RUN_ID_VAR.set(run_id or uuid.uuid4().hex[:12])
    try:
        yield _RUN_ID_VAR.get()
    finally:
        _RUN_ID_VAR.reset(token)


@contextmanager
def phase_scope(phase: str) -> Iterator[None]:
    """Temporarily set phase context for emitted logs."""
    token = _PHASE_VAR.set(phase)
    try:
        yield
    finally:
        _PHASE_VAR.reset(token)


def submit_with_context(
    executor: Executor,
    fn: Callable[..., _T],
    *args: Any,
) -> Future[_T]:
    """Submit ``fn`` so that it runs with the caller's run/phase context.

    Worker threads do not inherit context variables, so each task runs inside
    a copy of the submitting context.
    """
    ctx = contextvars.copy_context()
    return executor.submit(ctx.run, fn, *args)
