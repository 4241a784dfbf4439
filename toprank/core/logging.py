"""
Toprank: Logging Setup

Centralised logging configuration for the rebalance pipeline.

Every record emitted while a run is in progress carries the run label
(``<strategy slug>@<run date>``) in its ``run`` attribute, including
records from scorer worker threads, so interleaved output from a
re-run or a concurrent CLI invocation can be told apart in the log
file. Outside a run the label is ``-``.

HTTP client libraries used by the oracle SDK and the price and universe
clients log every request at INFO; they are capped at WARNING.

Thread safety: Thread-safe (the run label is guarded by a lock and the
logging module is process-global)
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

import logging
import sys
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from toprank.core.config import ToprankConfig, get_config

# ============================================================================
# Run context
# ============================================================================

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(run)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_run_lock = threading.Lock()
_run_label: Optional[str] = None


def current_run_label() -> str:
    with _run_lock:
        return _run_label or "-"


@contextmanager
def run_context(label: str) -> Iterator[None]:
    """Tag log records emitted inside the block with ``label``."""

    global _run_label
    with _run_lock:
        previous, _run_label = _run_label, label
    try:
        yield
    finally:
        with _run_lock:
            _run_label = previous


class RunContextFilter(logging.Filter):
    """Attach the current run label to each record as ``record.run``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run"):
            record.run = current_run_label()
        return True


# ============================================================================
# Public API
# ============================================================================


def setup_logging(config: Optional[ToprankConfig] = None) -> None:
    """Configure the root logger once.

    A console handler is always attached; a file handler is attached
    when ``LOG_FILE`` is non-empty. Calling this again is a no-op while
    the root logger has handlers.
    """

    if config is None:
        config = get_config()

    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    run_filter = RunContextFilter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(run_filter)
        root_logger.addHandler(handler)

    root_logger.setLevel(log_level)
    logging.getLogger("toprank").setLevel(log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``toprank`` namespace.

    Module ``__name__`` values inside the package are used as is; any
    other name is prefixed with ``toprank.``.
    """

    setup_logging()
    if name == "toprank" or name.startswith("toprank."):
        return logging.getLogger(name)
    return logging.getLogger(f"toprank.{name}")
