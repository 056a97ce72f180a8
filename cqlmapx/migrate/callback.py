"""Dispatching of migration callbacks by event and name."""

from __future__ import annotations

import enum
from collections.abc import Callable
from typing import Any

CallbackFunc = Callable[[Any, "CallbackEvent", str], Any]
"""Called as ``func(session, event, name)``; raising aborts the migration."""


class CallbackEvent(enum.IntEnum):
    """Kind of event a migration callback is invoked for.

    BEFORE_MIGRATION and AFTER_MIGRATION fire around each migration file;
    CALL_COMMENT fires for each ``-- CALL <name>;`` comment.
    """

    BEFORE_MIGRATION = 0
    AFTER_MIGRATION = 1
    CALL_COMMENT = 2


class CallbackRegister:
    """Registry of handlers keyed by event and name, usable as a callback.

    Events with no handler are ignored, except CALL_COMMENT, for which a
    missing handler raises LookupError.
    """

    def __init__(self) -> None:
        self._handlers: dict[tuple[str, CallbackEvent], CallbackFunc] = {}

    def add(self, event: CallbackEvent, name: str, func: CallbackFunc) -> None:
        """Register ``func`` for ``event`` on ``name``, replacing any earlier one."""
        self._handlers[(name, CallbackEvent(event))] = func

    def __call__(self, session: Any, event: CallbackEvent, name: str) -> Any:
        handler = self._handlers.get((name, CallbackEvent(event)))
        if handler is None:
            if event == CallbackEvent.CALL_COMMENT:
                raise LookupError("missing handler")
            return None
        return handler(session, event, name)