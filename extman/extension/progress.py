"""
Installation Progress.

This module provides progress notification for long-running operations.

A Progress object dispatches ProgressEvent values to a single subscriber
callback. Subscriber errors never interrupt the operation being reported.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class ProgressKind(Enum):
    """Progress event kinds."""

    START = "start"
    PROGRESS = "progress"
    MESSAGE = "message"
    END = "end"


@dataclass(frozen=True)
class ProgressEvent:
    """
    A single progress notification.

    Attributes:
        kind: Event kind
        percent: Completion percentage (PROGRESS events only)
        message: Message text (MESSAGE events only)
    """

    kind: ProgressKind
    percent: int | None = None
    message: str | None = None


ProgressCallback = Callable[[ProgressEvent], None]


class Progress:
    """Progress reporter bound to an optional subscriber."""

    def __init__(self, subscriber: ProgressCallback | None = None):
        self._subscriber = subscriber
        self._ended = False

    def _dispatch(self, event: ProgressEvent) -> None:
        if self._subscriber is None:
            return
        try:
            self._subscriber(event)
        except Exception as e:
            logger.debug("Progress subscriber failed on %s: %s", event.kind.value, e)

    def start(self) -> None:
        self._dispatch(ProgressEvent(ProgressKind.START, percent=0))

    def progress(self, percent: int) -> None:
        self._dispatch(ProgressEvent(ProgressKind.PROGRESS, percent=percent))

    def message(self, text: str) -> None:
        self._dispatch(ProgressEvent(ProgressKind.MESSAGE, message=text))

    def end(self) -> None:
        """Emit the end notification (only once)."""
        if self._ended:
            return
        self._ended = True
        self._dispatch(ProgressEvent(ProgressKind.END))
