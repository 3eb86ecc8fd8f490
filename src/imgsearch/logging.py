"""Process-wide logging setup.

Modules either import the shared ``logger`` or call
``logging.getLogger(__name__)``; both end up under the ``imgsearch`` hierarchy
configured here.
"""
from __future__ import annotations

import logging
import sys
import uuid

from imgsearch.config import settings

_RUN_ID = uuid.uuid4().hex[:12]
_FORMAT = "%(asctime)s %(levelname)s [%(run_id)s] %(name)s: %(message)s"


class _RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _RUN_ID
        return True


def get_run_id() -> str:
    """Identifier of this process, stamped on every log line."""
    return _RUN_ID


def configure_logging(level: str | None = None) -> logging.Logger:
    root = logging.getLogger("imgsearch")
    if not any(getattr(h, "_imgsearch", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(_RunIdFilter())
        handler._imgsearch = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())
    return root


logger = configure_logging()
