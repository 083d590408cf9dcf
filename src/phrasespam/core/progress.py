"""Progress notifications passed explicitly through classifier calls.

A progress handler is any callable accepting a ProgressEvent. Handlers are
handed to each call (or registered on a SpamClassifier instance); there is
no module-level callback.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

ProgressKind = Literal["retry", "phrase", "page"]


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """A single progress notification.

    Attributes:
        kind: "retry" for storage contention, "phrase" for per-phrase work,
              "page" for each page consumed during an export
        current: Attempt number, phrase index (1-based) or pages consumed
        total: Attempt limit, phrase count, or None when unknown
        detail: Operation name, phrase text, or rows seen so far
    """

    kind: ProgressKind
    current: int
    total: int | None = None
    detail: str | None = None


ProgressHandler = Callable[[ProgressEvent], None]


def notify(handler: ProgressHandler | None, event: ProgressEvent) -> None:
    """Send an event to a handler if one was supplied."""
    if handler is not None:
        handler(event)
