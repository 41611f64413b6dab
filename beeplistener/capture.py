"""Trigger/buffer/validate state machine.

A capture runs the cycle below until a track is accepted or the session
deadline passes::

    Idle -> AwaitingTrigger -> Buffering -> Validating -> Accepted
                  ^                                |
                  +------------- rejected ---------+

The deadline is checked once per step, never preemptively, so a track
window that has started always finishes.  A track whose window closes
after the deadline, or while the source stopped on its own, counts as
lost to the timeout and is only kept for diagnostics.
"""

from __future__ import annotations

import enum
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .config import CaptureConfig
from .constants import DIAGNOSTIC_TRACK_LIMIT, TRIGGER_POLL_INTERVAL_MS
from .models import Track, ValidationResult
from .pitch import FrameAnalyser
from .source import Clock, Session, Sleep
from .track import collect_track, validate_track
from .trigger import await_trigger

logger = logging.getLogger(__name__)


class CaptureState(enum.Enum):
    IDLE = "idle"
    AWAITING_TRIGGER = "awaiting_trigger"
    BUFFERING = "buffering"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    TIMED_OUT = "timed_out"


@dataclass
class CaptureOutcome:
    """What a run of :class:`CaptureOrchestrator` observed.

    ``validation`` holds the accepted verdict; it is ``None`` when the run
    ended without an accepted track.
    """

    state: CaptureState
    validation: Optional[ValidationResult] = None
    frequency_matched: bool = False
    tracks: list[Track] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.state is CaptureState.ACCEPTED


class CaptureOrchestrator:
    """Drive one capture session through the trigger/buffer/validate cycle.

    ``TIMED_OUT`` is also the final state when the source is deactivated
    from outside before a track is accepted.

    Args:
        analyser: Converts frames into readings.
        clock: Monotonic clock in seconds.
        sleep: Blocking sleep used between trigger polls.
        poll_interval_ms: Delay between trigger polls.
        diagnostic_limit: Number of most recent tracks kept in the outcome.
    """

    def __init__(
        self,
        analyser: FrameAnalyser,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
        poll_interval_ms: float = TRIGGER_POLL_INTERVAL_MS,
        diagnostic_limit: int = DIAGNOSTIC_TRACK_LIMIT,
    ) -> None:
        self.analyser = analyser
        self.clock = clock
        self.sleep = sleep
        self.poll_interval_ms = poll_interval_ms
        self.diagnostic_limit = diagnostic_limit
        self.state = CaptureState.IDLE

    def run(self, session: Session, config: CaptureConfig) -> CaptureOutcome:
        """Cycle until a track is accepted or ``session`` stops being active.

        The caller owns ``session`` and is responsible for closing it.
        """
        tracks: deque[Track] = deque(maxlen=self.diagnostic_limit)
        frequency_matched = False
        self.state = CaptureState.AWAITING_TRIGGER

        while session.active():
            self.state = CaptureState.AWAITING_TRIGGER
            if not await_trigger(
                session,
                self.analyser,
                config,
                sleep=self.sleep,
                poll_interval_ms=self.poll_interval_ms,
            ):
                break

            self.state = CaptureState.BUFFERING
            track = collect_track(
                session.source, self.analyser, config.track_size_ms, clock=self.clock
            )
            tracks.append(track)
            # A window cut short by the deadline or by the source stopping
            # is kept for diagnostics only.
            if not session.active():
                break

            self.state = CaptureState.VALIDATING
            validation = validate_track(track, config)
            frequency_matched = frequency_matched or validation.frequency_matched
            if validation.accepted:
                self.state = CaptureState.ACCEPTED
                return CaptureOutcome(
                    self.state, validation, frequency_matched, list(tracks)
                )
            logger.debug(
                "Track rejected (frequency matched: %s), waiting for next trigger",
                validation.frequency_matched,
            )

        self.state = CaptureState.TIMED_OUT
        return CaptureOutcome(self.state, None, frequency_matched, list(tracks))


__all__ = ["CaptureState", "CaptureOutcome", "CaptureOrchestrator"]
