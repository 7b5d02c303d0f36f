"""Cooperative cancellation shared down the estimator -> tournament -> match chain."""

from __future__ import annotations

from typing import Callable, List, Optional


class CancellationToken:
    """
    One-way cancellation flag.

    A child token reports cancelled as soon as its parent is cancelled, so one
    ``cancel()`` at the top reaches every match started below it. Callbacks
    registered with ``on_cancel`` run once, synchronously, on the first
    ``cancel()`` of this token or of an ancestor.
    """

    def __init__(self, parent: Optional[CancellationToken] = None):
        self._parent = parent
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []
        if parent is not None:
            parent.on_cancel(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self._cancelled or (self._parent is not None and self._parent.cancelled)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        if self.cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def child(self) -> CancellationToken:
        return CancellationToken(self)
