"""Wait for the first reading that looks like the expected beep."""

from __future__ import annotations

import time

from .config import CaptureConfig
from .constants import TRIGGER_POLL_INTERVAL_MS
from .models import Reading
from .pitch import FrameAnalyser
from .source import Session, Sleep


def reading_qualifies(reading: Reading, config: CaptureConfig) -> bool:
    """Return ``True`` if a single reading falls inside the acceptance bands."""
    if not reading.in_band(config.min_freq, config.max_freq):
        return False
    if config.amplitude_validation:
        return config.min_amplitude <= reading.amplitude <= config.max_amplitude
    return True


def await_trigger(
    session: Session,
    analyser: FrameAnalyser,
    config: CaptureConfig,
    *,
    sleep: Sleep = time.sleep,
    poll_interval_ms: float = TRIGGER_POLL_INTERVAL_MS,
) -> bool:
    """Poll single readings until one qualifies.

    Returns:
        ``True`` once a qualifying reading was seen, ``False`` if the
        session stopped being active first.
    """
    while session.active():
        reading = analyser.read(session.source.next_frame())
        if reading_qualifies(reading, config):
            return True
        sleep(poll_interval_ms / 1000.0)
    return False


__all__ = ["reading_qualifies", "await_trigger"]
