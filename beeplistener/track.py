"""Track buffering and percentage-gated validation."""

from __future__ import annotations

import logging
import time
from typing import Sequence

import numpy as np

from .config import CaptureConfig
from .models import Track, ValidationResult
from .pitch import FrameAnalyser, round_half_up
from .source import Clock, SampleSource

logger = logging.getLogger(__name__)


def collect_track(
    source: SampleSource,
    analyser: FrameAnalyser,
    duration_ms: float,
    *,
    clock: Clock = time.monotonic,
) -> Track:
    """Read frames back to back for ``duration_ms`` and return the readings.

    At least one frame is always read.  Collection ends early if the
    source is deactivated while the window is open.
    """
    track = Track()
    start = clock()
    window = duration_ms / 1000.0
    while True:
        track.append(analyser.read(source.next_frame()))
        if clock() - start >= window or not source.is_active():
            break
    return track


def validate_track_percentage(
    frequencies: Sequence[float], config: CaptureConfig
) -> bool:
    """Return ``True`` if enough readings lie in the frequency band.

    For instance a track of 100 readings with ``valid_track_percentage=70``
    needs at least 70 readings inside ``[min_freq, max_freq]``.
    """
    in_range = sum(
        1 for f in frequencies if config.min_freq <= f <= config.max_freq
    )
    # Compared in percent units so exact shares such as 7 of 100 pass.
    return in_range * 100 >= len(frequencies) * config.valid_track_percentage


def filter_track(track: Track, config: CaptureConfig) -> Track:
    """Keep only the readings whose frequency lies in the band."""
    return Track([r for r in track if r.in_band(config.min_freq, config.max_freq)])


def calculate_media(
    frequencies: Sequence[float], amplitudes: Sequence[float]
) -> tuple[float, float]:
    """Return the mean frequency and the approximate median amplitude.

    The amplitude "median" is the sorted amplitudes indexed at
    ``round_half_up(n / 2)``: the upper middle value for even ``n`` and the
    element right after the middle for odd ``n`` (``[-28, -25, -22]`` gives
    ``-22``), not a textbook median.  The index is clamped to the last
    element so single readings are usable.
    """
    if len(frequencies) == 0 or len(amplitudes) == 0:
        raise ValueError("cannot aggregate an empty track")
    mean_frequency = float(np.mean(frequencies))
    ordered = np.sort(np.asarray(amplitudes, dtype=np.float64))
    index = min(round_half_up(len(ordered) / 2), len(ordered) - 1)
    return mean_frequency, float(ordered[index])


def validate_track(track: Track, config: CaptureConfig) -> ValidationResult:
    """Accept or reject ``track`` against ``config``.

    The percentage gate runs first; a track failing it is rejected without
    aggregates.  Surviving readings are aggregated with
    :func:`calculate_media` and, when ``config.amplitude_validation`` is
    set, the median amplitude must lie in the amplitude band.
    """
    if not validate_track_percentage(track.frequencies, config):
        return ValidationResult(accepted=False)

    filtered = filter_track(track, config)
    if not len(filtered):
        # Only reachable with a 0% gate: nothing left to aggregate.
        return ValidationResult(accepted=False)

    mean_frequency, median_amplitude = calculate_media(
        filtered.frequencies, filtered.amplitudes
    )
    accepted = True
    if config.amplitude_validation:
        accepted = config.min_amplitude <= median_amplitude <= config.max_amplitude
    logger.debug(
        "Track of %d readings: %d in band, mean %.2f Hz, median %.2f dB -> %s",
        len(track),
        len(filtered),
        mean_frequency,
        median_amplitude,
        "accepted" if accepted else "rejected",
    )
    return ValidationResult(
        accepted=accepted,
        frequency_matched=True,
        filtered_frequencies=tuple(filtered.frequencies),
        filtered_amplitudes=tuple(filtered.amplitudes),
        mean_frequency=mean_frequency,
        median_amplitude=median_amplitude,
    )


__all__ = [
    "collect_track",
    "validate_track_percentage",
    "filter_track",
    "calculate_media",
    "validate_track",
]
