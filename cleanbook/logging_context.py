"""Cart session logging context for tracing one booking across modules.

Every log line carries the cart's session id, so a single customer's path
through the store, the availability checks and the submission can be
followed in the logs. The id lives in a ContextVar set by the cart store;
``install_session_filter`` puts it on each record a handler emits, and
``LOG_FORMAT`` prints it.

Usage:
    from cleanbook.logging_context import get_session_logger, set_session_id

    set_session_id("session_1718000000000_ab12cd34e")
    logger = get_session_logger(__name__)
    logger.info("Item added")  # ... [session_1718...] INFO: Item added
"""

import logging
from contextvars import ContextVar
from typing import Iterable

NO_SESSION = "NO_SESSION"

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def set_session_id(session_id: str) -> None:
    """Set the cart session id for the current context."""
    _session_id.set(session_id)


def get_session_id() -> str:
    """Retrieve the current cart session id."""
    return _session_id.get()


class SessionIdFilter(logging.Filter):
    """Injects session_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def _has_session_filter(filterer: logging.Filterer) -> bool:
    return any(isinstance(f, SessionIdFilter) for f in filterer.filters)


def install_session_filter(handlers: Iterable[logging.Handler]) -> None:
    """Attach the session filter to handlers so ``LOG_FORMAT`` can render
    records from any logger, session-aware or not."""
    for handler in handlers:
        if not _has_session_filter(handler):
            handler.addFilter(SessionIdFilter())


def get_session_logger(name: str) -> logging.Logger:
    """Return a logger with the SessionIdFilter attached.

    Records from this logger carry ``session_id`` even when they reach
    handlers that were configured elsewhere.
    """
    logger = logging.getLogger(name)
    if not _has_session_filter(logger):
        logger.addFilter(SessionIdFilter())
    return logger
