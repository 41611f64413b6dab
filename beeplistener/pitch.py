"""Pitch and amplitude extraction from a single :class:`SampleFrame`."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_EVEN, Decimal
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
from scipy.signal import correlate

from .constants import FFT_SIZE, MAX_LOCAL_MAXIMA, SAMPLE_RATE
from .models import Reading, SampleFrame


def round_half_up(value: float) -> int:
    """Round ``value`` to the nearest integer with halves rounded up.

    Python's :func:`round` rounds halves to even; bin and median indices
    here always round ``x.5`` up.
    """
    return math.floor(value + 0.5)


def detect_pitch_autocorrelation(
    samples: np.ndarray,
    sample_rate: float,
    max_maxima: int = MAX_LOCAL_MAXIMA,
) -> float:
    """Estimate the fundamental frequency of ``samples``.

    The unnormalised autocorrelation ``corr[l] = sum(x[i] * x[i + l])`` is
    scanned for local maxima in increasing lag order.  The mean spacing of
    the first ``max_maxima`` maxima approximates one period in samples.

    Args:
        samples: One frame of time-domain samples.
        sample_rate: Sampling frequency in hertz.
        max_maxima: Maximum number of autocorrelation peaks to collect.

    Returns:
        Estimated frequency in hertz, or ``nan`` when fewer than two maxima
        exist (silence, noise, too short a frame).
    """
    x = np.asarray(samples, dtype=np.float64).reshape(-1)
    n = x.size
    if n < 3:
        return math.nan
    corr = correlate(x, x, mode="full")[n - 1 :]
    # diff[k] = corr[k] - corr[k + 1]; lag p is a peak when the curve rises
    # into it and falls after it.
    diff = corr[:-1] - corr[1:]
    peaks = np.flatnonzero((diff[:-1] < 0) & (diff[1:] > 0)) + 1
    peaks = peaks[:max_maxima]
    if peaks.size < 2:
        return math.nan
    period = float(np.mean(np.diff(peaks)))
    return float(sample_rate / period)


def find_amplitude(
    frequency: float, magnitudes: Sequence[float], hertz_per_division: float
) -> float:
    """Return the magnitude of the bin closest to ``frequency``.

    ``nan`` is returned when ``frequency`` is not finite or the bin lies
    outside ``magnitudes``.
    """
    if not math.isfinite(frequency) or hertz_per_division <= 0:
        return math.nan
    index = round_half_up(frequency / hertz_per_division)
    if index < 0 or index >= len(magnitudes):
        return math.nan
    return float(magnitudes[index])


def _round_2(value: float) -> float:
    # Works on the shortest decimal repr, so 10.005 ties to 10.0 like 10.004999.
    rounded = Decimal(repr(float(value))).quantize(Decimal("0.01"), ROUND_HALF_EVEN)
    return float(rounded)


def round_values(values: Iterable[float]) -> list[float]:
    """Round finite, non-integer values to two decimals (ties to even).

    Integers, ``nan`` and infinities pass through unchanged.
    """
    fixed: list[float] = []
    for value in values:
        if math.isfinite(value) and not float(value).is_integer():
            fixed.append(_round_2(value))
        else:
            fixed.append(value)
    return fixed


@dataclass(frozen=True)
class FrameAnalyser:
    """Turn frames of a source with known geometry into readings."""

    sample_rate: float = SAMPLE_RATE
    fft_size: int = FFT_SIZE

    @property
    def hertz_per_division(self) -> float:
        return self.sample_rate / self.fft_size

    def read(self, frame: SampleFrame) -> Reading:
        """Estimate frequency and amplitude of ``frame``, rounded to 2 decimals."""
        frequency = detect_pitch_autocorrelation(frame.time_domain, self.sample_rate)
        amplitude = find_amplitude(
            frequency, frame.frequency_domain, self.hertz_per_division
        )
        frequency, amplitude = round_values((frequency, amplitude))
        return Reading(frequency, amplitude)


__all__ = [
    "round_half_up",
    "detect_pitch_autocorrelation",
    "find_amplitude",
    "round_values",
    "FrameAnalyser",
]
