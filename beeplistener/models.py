"""Value types shared by the analysis, capture and calibration layers."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np


@dataclass(frozen=True, eq=False)
class SampleFrame:
    """One snapshot produced by a :class:`~beeplistener.source.SampleSource`.

    Attributes:
        time_domain: Raw waveform samples of the frame.
        frequency_domain: Magnitudes in dB indexed by frequency bin.
    """

    time_domain: np.ndarray
    frequency_domain: np.ndarray

    def __post_init__(self) -> None:
        time_domain = np.array(self.time_domain, dtype=np.float64)
        frequency_domain = np.array(self.frequency_domain, dtype=np.float64)
        time_domain.setflags(write=False)
        frequency_domain.setflags(write=False)
        object.__setattr__(self, "time_domain", time_domain)
        object.__setattr__(self, "frequency_domain", frequency_domain)


@dataclass(frozen=True)
class Reading:
    """Frequency (Hz, ``nan`` when no pitch) and amplitude (dB) of a frame."""

    frequency: float
    amplitude: float

    def in_band(self, low: float, high: float) -> bool:
        return low <= self.frequency <= high


@dataclass
class Track:
    """Readings gathered over one capture window, in acquisition order."""

    readings: list[Reading] = field(default_factory=list)

    def append(self, reading: Reading) -> None:
        self.readings.append(reading)

    @property
    def frequencies(self) -> list[float]:
        return [r.frequency for r in self.readings]

    @property
    def amplitudes(self) -> list[float]:
        return [r.amplitude for r in self.readings]

    def __len__(self) -> int:
        return len(self.readings)

    def __iter__(self):
        return iter(self.readings)

    @classmethod
    def from_series(
        cls, frequencies: Sequence[float], amplitudes: Sequence[float]
    ) -> "Track":
        """Build a track from parallel frequency and amplitude series."""
        if len(frequencies) != len(amplitudes):
            raise ValueError("frequency and amplitude series differ in length")
        return cls([Reading(float(f), float(a)) for f, a in zip(frequencies, amplitudes)])


@dataclass(frozen=True)
class ValidationResult:
    """Verdict of :func:`~beeplistener.track.validate_track`.

    ``frequency_matched`` is ``True`` once the percentage gate passed, even
    if the amplitude gate later rejected the track.  The filtered series and
    aggregates are only populated when the percentage gate passed.
    """

    accepted: bool
    frequency_matched: bool = False
    filtered_frequencies: tuple[float, ...] = ()
    filtered_amplitudes: tuple[float, ...] = ()
    mean_frequency: Optional[float] = None
    median_amplitude: Optional[float] = None


class FailureReason(enum.Enum):
    """Why a capture, probe or calibration did not succeed."""

    CONFIGURATION = "configuration"
    NO_SIGNAL = "no_signal"
    AMPLITUDE_OUT_OF_RANGE = "amplitude_out_of_range"
    CALIBRATION_TIMEOUT = "calibration_timeout"
    CALIBRATION_NO_SIGNAL = "calibration_no_signal"
    CALIBRATION_NO_CONVERGENCE = "calibration_no_convergence"


@dataclass(frozen=True)
class Series:
    """Values of an accepted track plus their aggregate."""

    values: tuple[float, ...] = ()
    mean: Optional[float] = None


@dataclass(frozen=True)
class SeriesStats:
    """Values of an accepted track with their spread."""

    values: tuple[float, ...]
    mean: float
    min: float
    max: float

    @classmethod
    def from_values(cls, values: Sequence[float], mean: float) -> "SeriesStats":
        finite = [v for v in values if not math.isnan(v)]
        return cls(
            values=tuple(values),
            mean=mean,
            min=min(finite) if finite else math.nan,
            max=max(finite) if finite else math.nan,
        )


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of :meth:`~beeplistener.listener.BeepListener.capture`."""

    success: bool
    message: str
    frequency: Series = Series()
    amplitude: Series = Series()
    diagnostic_tracks: tuple[Track, ...] = ()
    failure: Optional[FailureReason] = None


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a frequency-only track measurement."""

    success: bool
    message: str
    frequency: Optional[SeriesStats] = None
    amplitude: Optional[SeriesStats] = None
    failure: Optional[FailureReason] = None


@dataclass
class GainSearchState:
    """Mutable state of one gain search; discarded when the search ends."""

    current_gain: float
    samples: list[tuple[float, float]] = field(default_factory=list)

    def record(self, gain: float, amplitude: float) -> None:
        self.samples.append((gain, amplitude))


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of :meth:`~beeplistener.listener.BeepListener.calibrate`.

    ``gain`` is the gain left applied on the source: the calibrated value on
    success, the pre-calibration value on failure.
    """

    success: bool
    message: str
    gain: Optional[float] = None
    rounds: int = 0
    samples: tuple[tuple[float, float], ...] = ()
    failure: Optional[FailureReason] = None


__all__ = [
    "SampleFrame",
    "Reading",
    "Track",
    "ValidationResult",
    "FailureReason",
    "Series",
    "SeriesStats",
    "CaptureResult",
    "ProbeResult",
    "GainSearchState",
    "CalibrationResult",
]
