"""Acquisition source contract and the scoped capture session.

The package never talks to audio hardware itself.  Anything that can
deliver :class:`~beeplistener.models.SampleFrame` objects and exposes a
gain control satisfies :class:`SampleSource`: a sounddevice stream paired
with an FFT, a browser bridge, or the synthetic sources used in the tests.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol, runtime_checkable

from .models import SampleFrame

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], None]


@runtime_checkable
class SampleSource(Protocol):
    """Frame producer consumed by the listener."""

    def activate(self) -> None:
        """Start (resume) acquisition."""

    def deactivate(self) -> None:
        """Stop (suspend) acquisition."""

    def is_active(self) -> bool:
        """Return ``True`` while acquisition is running."""

    def next_frame(self) -> SampleFrame:
        """Block until the next frame is available and return it."""

    def set_gain(self, value: float) -> None:
        """Set the amplification applied before analysis."""

    def get_gain(self) -> float:
        """Return the current amplification."""


class Session:
    """One activation of a source bounded by a deadline.

    Use as a context manager: the source is activated on entry and
    deactivated exactly once on exit, whichever way the block is left.
    The deadline is never enforced preemptively; loops call
    :meth:`active` once per iteration and stop at the first ``False``.

    Args:
        source: Source to activate.
        timeout_ms: Time allowed in milliseconds, counted from construction.
        clock: Monotonic clock returning seconds.
        deadline: Absolute deadline (``clock`` seconds).  Overrides
            ``timeout_ms`` when given.
    """

    def __init__(
        self,
        source: SampleSource,
        timeout_ms: float = 0.0,
        *,
        clock: Clock = time.monotonic,
        deadline: Optional[float] = None,
    ) -> None:
        self.source = source
        self.clock = clock
        self.deadline = (
            deadline if deadline is not None else clock() + timeout_ms / 1000.0
        )
        self._closed = True

    def __enter__(self) -> "Session":
        self.source.activate()
        self._closed = False
        logger.debug("Source activated")
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def close(self) -> None:
        """Deactivate the source unless this session already did."""
        if self._closed:
            return
        self._closed = True
        self.source.deactivate()
        logger.debug("Source deactivated")

    def timed_out(self) -> bool:
        return self.clock() >= self.deadline

    def active(self) -> bool:
        """``True`` while the deadline is ahead and the source still runs."""
        if self._closed or self.timed_out():
            return False
        return self.source.is_active()


__all__ = ["Clock", "Sleep", "SampleSource", "Session"]
