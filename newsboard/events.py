"""
In-process error events.

The display viewer emits `permission-error` when the store denies a live
query. `DevErrorListener` turns those events into exceptions while
debugging so a misconfigured rule is impossible to miss.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from newsboard.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)

PERMISSION_ERROR = "permission-error"

Listener = Callable[[PermissionDeniedError], None]


class ErrorEmitter:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.Lock()

    def on(self, event: str, listener: Listener) -> None:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

    def emit(self, event: str, error: PermissionDeniedError) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, []))
        if not listeners:
            logger.warning("Unhandled %s", event, extra=error.context())
        for listener in listeners:
            listener(error)


class DevErrorListener:
    """
    Surfaces permission errors.

    Always logs the denied operation and path; when `raise_errors` is set
    (debug mode) the error propagates out of `emit()` as well.
    """

    def __init__(self, emitter: ErrorEmitter, *, raise_errors: bool = False) -> None:
        self.emitter = emitter
        self.raise_errors = raise_errors
        self.last_error: PermissionDeniedError | None = None

    def __enter__(self) -> "DevErrorListener":
        self.attach()
        return self

    def __exit__(self, *exc: object) -> None:
        self.detach()

    def attach(self) -> None:
        self.emitter.on(PERMISSION_ERROR, self)

    def detach(self) -> None:
        self.emitter.off(PERMISSION_ERROR, self)

    def __call__(self, error: PermissionDeniedError) -> None:
        self.last_error = error
        logger.error("Permission denied", extra=error.context())
        if self.raise_errors:
            raise error


# Shared emitter for the running process
error_emitter = ErrorEmitter()
