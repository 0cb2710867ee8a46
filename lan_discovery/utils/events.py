"""
Minimal listener registry used to publish scan events.

Listeners run synchronously on the thread that emits the event. A listener
that raises is reported and skipped; it never interrupts the emitter.
"""

import threading
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Optional

from .error_handler import ErrorContext, ErrorHandler, ErrorSeverity, ErrorType

Listener = Callable[..., Any]


class EventEmitter:
    """Registry of named events and their listeners."""

    def __init__(self, error_handler: Optional[ErrorHandler] = None):
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)
        self._listeners_lock = threading.Lock()
        self._event_error_handler = error_handler or ErrorHandler()

    def on(self, event: str, listener: Listener) -> Listener:
        """
        Register a listener for an event.

        Returns:
            The listener, so the method can be used as a decorator
        """
        with self._listeners_lock:
            self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        with self._listeners_lock:
            if listener in self._listeners.get(event, []):
                self._listeners[event].remove(listener)

    def emit(self, event: str, *args: Any) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(*args)
            except Exception as e:
                context = ErrorContext(
                    error_type=ErrorType.LISTENER_ERROR,
                    severity=ErrorSeverity.MEDIUM,
                    operation=f"emit:{event}",
                    component=type(self).__name__,
                )
                self._event_error_handler.handle_error(e, context)
