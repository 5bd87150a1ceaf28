import logging
import sys
import contextvars
from typing import Optional

# Context variable to carry the current poll id across the call chain
_POLL_ID: contextvars.ContextVar[str] = contextvars.ContextVar("poll_id", default="-")


class _PollFilter(logging.Filter):
    """Logging filter that injects the poll_id from contextvars into the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.poll_id = _POLL_ID.get()
        except LookupError:
            record.poll_id = "-"
        return True


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | poll=%(poll_id)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_root_logger(level: str = "INFO") -> None:
    """
    Configure root logger and polledconfig-specific logger.

    Root logger stays at INFO to suppress library noise (httpx, httpcore).
    Only polledconfig namespace logs are set to the requested level.

    Args:
        level: Log level for polledconfig logs (DEBUG, INFO, WARNING, ERROR).

    Safe to call multiple times; it will not duplicate handlers (idempotent).
    """
    root = logging.getLogger()
    package_logger = logging.getLogger("polledconfig")

    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and any(isinstance(f, _PollFilter) for f in h.filters):
            # Already configured; just update the package logger level
            package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter())
    handler.addFilter(_PollFilter())
    handler.setLevel(logging.DEBUG)
    root.addHandler(handler)
    if root.level == logging.NOTSET or root.level > logging.INFO:
        root.setLevel(logging.INFO)

    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str = "polledconfig") -> logging.Logger:
    """Get a module-specific logger under the polledconfig namespace.

    Handlers are owned by the root logger; call ``configure_root_logger`` from
    application entry points (the CLI does) to get the poll-aware stdout format.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, _PollFilter) for f in logger.filters):
        logger.addFilter(_PollFilter())
    return logger


def push_poll_id(poll_id: Optional[str]) -> Optional[contextvars.Token]:
    """Set the current poll id in context and return a token for later reset."""
    if not poll_id:
        return None
    return _POLL_ID.set(poll_id)


def reset_poll_id(token: Optional[contextvars.Token]) -> None:
    """Reset the poll id context using the provided token (if any)."""
    if token is None:
        return
    try:
        _POLL_ID.reset(token)
    except ValueError:
        # Token created in another context; leave the current value in place
        pass
