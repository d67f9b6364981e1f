"""
Session-scoped log capture.

One SessionLog collects the diagnostics emitted while serving one
aggregation request. The active session id travels in a context
variable, so asyncio tasks spawned by the request inherit it and
records from concurrent requests never mix.
"""

import logging
import re
import uuid
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

# Logger hierarchies scrapers write to: per-source loggers and module loggers
CAPTURED_LOGGERS = ('scraper', 'scrapers')

ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

_active_session: ContextVar[Optional[str]] = ContextVar('scrape_session_id', default=None)


def current_session_id() -> Optional[str]:
    """Session id bound to the running task, if any."""
    return _active_session.get()


# Logger name -> [open sessions, level configured before the first one]
_level_holds: Dict[str, list] = {}


def _lower_level(target: logging.Logger, level: int):
    """
    Let records at ``level`` reach handlers while any session is open.

    Records below a logger's effective level never reach handlers. The
    configured level is remembered and put back once the last
    overlapping session detaches.
    """
    hold = _level_holds.get(target.name)
    if hold is None:
        hold = _level_holds[target.name] = [0, target.level]
    hold[0] += 1
    if target.getEffectiveLevel() > level:
        target.setLevel(level)


def _release_level(target: logging.Logger):
    hold = _level_holds.get(target.name)
    if hold is None:
        return
    hold[0] -= 1
    if hold[0] <= 0:
        del _level_holds[target.name]
        target.setLevel(hold[1])


class SessionLog(logging.Handler):
    """
    Logging handler that keeps the records of one session in memory.

    Entries are dicts of {timestamp, level, logger, message}; only the
    newest ``limit`` entries are retained.
    """

    def __init__(self, session_id: Optional[str] = None, limit: int = 1000, level: int = logging.INFO):
        super().__init__(level)
        self.session_id = session_id or str(uuid.uuid4())
        self.limit = limit
        self._entries: deque = deque(maxlen=max(1, limit))

    def emit(self, record: logging.LogRecord):
        if _active_session.get() != self.session_id:
            return
        try:
            self._entries.append({
                'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                'level': record.levelname,
                'logger': record.name,
                'message': ANSI_ESCAPE.sub('', record.getMessage()),
            })
        except Exception:
            self.handleError(record)

    @property
    def entries(self) -> List[Dict[str, str]]:
        return list(self._entries)

    def __len__(self):
        return len(self._entries)

    @contextmanager
    def attach(self, *logger_names: str) -> Iterator['SessionLog']:
        """
        Bind this session to the current context and capture its records.

        Usage:
            with SessionLog().attach() as session:
                await manager.run()
            session.entries
        """
        names = logger_names or CAPTURED_LOGGERS
        loggers = [logging.getLogger(name) for name in names]
        for target in loggers:
            _lower_level(target, self.level)
            target.addHandler(self)

        context_token = _active_session.set(self.session_id)
        try:
            yield self
        finally:
            _active_session.reset(context_token)
            for target in loggers:
                target.removeHandler(self)
                _release_level(target)
