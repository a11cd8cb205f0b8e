"""Chat-session tagging for log output.

The orchestrator records the active session before it handles a message.
Every record that reaches the console handler then carries that session
as ``record.session_id``, whichever module logged it, so a single
conversation can be followed from detection through ticket jobs.
"""

import logging
from contextvars import ContextVar

NO_SESSION = "-"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def set_session_id(session_id: str) -> None:
    """Tag log records from the current task with a chat session."""
    _session_id.set(session_id or NO_SESSION)


def get_session_id() -> str:
    return _session_id.get()


class SessionIdFilter(logging.Filter):
    """Copies the active chat session onto each record it sees.

    A record that already carries a session keeps it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def session_handler() -> logging.Handler:
    """Console handler whose records always have ``session_id`` set."""
    handler = logging.StreamHandler()
    handler.addFilter(SessionIdFilter())
    return handler
