"""Logging helpers for extension correlation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

_current_ext_id: ContextVar[str | None] = ContextVar("extension_host_ext_id", default=None)


def get_current_ext_id() -> str | None:
    """Return the extension id active in the current context, if any."""
    return _current_ext_id.get()


@contextmanager
def extension_log_scope(ext_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with ``ext_id``."""
    token = _current_ext_id.set(ext_id)
    try:
        yield
    finally:
        _current_ext_id.reset(token)


class ExtensionContextFilter(logging.Filter):
    """Attach the active extension id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject ext_id into the log record."""
        record.ext_id = get_current_ext_id() or "-"
        return True


def install_extension_log_filter(loggers: Iterable[logging.Logger] | None = None) -> None:
    """Install extension context filters for structured logging.

    Args:
        loggers: Optional iterable of loggers to attach the filter to. Defaults to root logger.
    """
    targets = list(loggers) if loggers is not None else [logging.getLogger()]
    for logger in targets:
        if any(isinstance(flt, ExtensionContextFilter) for flt in logger.filters):
            continue
        logger.addFilter(ExtensionContextFilter())


def extension_logger(ext_id: str) -> logging.Logger:
    """Return the logger used for a bundle's console output."""
    return logging.getLogger(f"extension_host.bundle.{ext_id.replace('/', '.')}")
