"""Cancellation token checked by async tasks before they touch shared state."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Set once when the owning view is torn down; never reset."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError("view was closed")
