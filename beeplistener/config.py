"""Configuration dataclasses and their validation.

Every public operation of :class:`~beeplistener.listener.BeepListener`
takes one of the frozen dataclasses below.  Unset fields fall back to the
defaults in :mod:`beeplistener.constants`.  Before any acquisition starts
the operation runs the matching ``check_*`` function, which returns a
:class:`ConfigCheck` instead of raising.

Checks run in three passes, the first failure wins:

1. type: numeric fields must be ``int`` or ``float`` (``bool`` is
   rejected), flag fields must be ``bool``;
2. range: each value must lie inside its accepted interval (``nan`` never
   does);
3. scale: minimum/maximum pairs must be ordered.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import numbers
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .constants import (
    AMPLITUDE_TOLERANCE,
    AMPLITUDE_VALIDATION,
    CALIBRATION_MAX_FREQ,
    CALIBRATION_MIN_FREQ,
    CALIBRATION_TIMEOUT_MS,
    CALIBRATION_TRACK_SIZE_MS,
    FFT_SIZE,
    FIRST_READ_TIMEOUT_MS,
    GAIN,
    GAIN_STEP,
    MAX_AMPLITUDE,
    MAX_FFT_SIZE,
    MAX_FREQ,
    MAX_SAMPLE_RATE,
    MIN_AMPLITUDE,
    MIN_FFT_SIZE,
    MIN_FREQ,
    MIN_SAMPLE_RATE,
    SAMPLE_RATE,
    TIMEOUT_MS,
    TRACK_SIZE_MS,
    VALID_TRACK_PERCENTAGE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListenerOptions:
    """Analyser settings shared by every operation of a listener.

    Attributes:
        sample_rate: Sampling frequency of the source in hertz.
        fft_size: Samples per frame; must be a power of two.
        gain: Gain applied to the source when the listener is created.
    """

    sample_rate: float = SAMPLE_RATE
    fft_size: int = FFT_SIZE
    gain: float = GAIN

    @property
    def hertz_per_division(self) -> float:
        """Width of one frequency-domain bin."""
        return self.sample_rate / self.fft_size


@dataclass(frozen=True)
class CaptureConfig:
    """Acceptance profile of a beep.

    Attributes:
        min_freq: Lower edge of the frequency band (Hz).
        max_freq: Upper edge of the frequency band (Hz).
        amplitude_validation: Whether the amplitude band is enforced.
        min_amplitude: Lower edge of the amplitude band (dB).
        max_amplitude: Upper edge of the amplitude band (dB).
        valid_track_percentage: Share of a track (0–100) that must lie in
            the frequency band.
        track_size_ms: Length of the capture window started by a trigger.
        timeout_ms: Overall deadline of the operation.
    """

    min_freq: float = MIN_FREQ
    max_freq: float = MAX_FREQ
    amplitude_validation: bool = AMPLITUDE_VALIDATION
    min_amplitude: float = MIN_AMPLITUDE
    max_amplitude: float = MAX_AMPLITUDE
    valid_track_percentage: float = VALID_TRACK_PERCENTAGE
    track_size_ms: float = TRACK_SIZE_MS
    timeout_ms: float = TIMEOUT_MS

    def frequency_only(self) -> "CaptureConfig":
        """Return a copy with amplitude validation disabled."""
        return dataclasses.replace(self, amplitude_validation=False)


@dataclass(frozen=True)
class CalibrationConfig:
    """Settings of the adaptive gain search.

    The frequency band and percentage gate select the calibration tone,
    the amplitude band defines the target: the search aims at its centre
    and stops once the measured amplitude is within ``amplitude_tolerance``
    of it.
    """

    min_freq: float = CALIBRATION_MIN_FREQ
    max_freq: float = CALIBRATION_MAX_FREQ
    min_amplitude: float = MIN_AMPLITUDE
    max_amplitude: float = MAX_AMPLITUDE
    valid_track_percentage: float = VALID_TRACK_PERCENTAGE
    track_size_ms: float = CALIBRATION_TRACK_SIZE_MS
    first_read_timeout_ms: float = FIRST_READ_TIMEOUT_MS
    calibration_timeout_ms: float = CALIBRATION_TIMEOUT_MS
    amplitude_tolerance: float = AMPLITUDE_TOLERANCE
    gain_step: float = GAIN_STEP

    @property
    def central_amplitude(self) -> float:
        return (self.min_amplitude + self.max_amplitude) / 2

    def probe_config(self) -> CaptureConfig:
        """Frequency-only capture profile used for every calibration read."""
        return CaptureConfig(
            min_freq=self.min_freq,
            max_freq=self.max_freq,
            amplitude_validation=False,
            min_amplitude=self.min_amplitude,
            max_amplitude=self.max_amplitude,
            valid_track_percentage=self.valid_track_percentage,
            track_size_ms=self.track_size_ms,
            timeout_ms=self.first_read_timeout_ms,
        )


@dataclass(frozen=True)
class ConfigCheck:
    """Result of a configuration check; ``reason`` is set when not ``ok``."""

    ok: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


_OK = ConfigCheck(True)


def _fail(reason: str) -> ConfigCheck:
    logger.warning("Invalid configuration: %s", reason)
    return ConfigCheck(False, reason)


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def check_type(name: str, value: Any, expected: type) -> ConfigCheck:
    """Check that ``value`` is of the ``expected`` kind.

    ``float`` accepts any non-bool real number, ``int`` only non-bool
    integers; numpy scalars count.
    """
    if expected is bool:
        valid = isinstance(value, bool)
    elif expected is int:
        valid = isinstance(value, numbers.Integral) and not isinstance(value, bool)
    else:
        valid = _is_number(value)
    if valid:
        return _OK
    return _fail(f"{name} is not of type {expected.__name__}")


def check_range(
    name: str, value: float, low: float, high: float = math.inf
) -> ConfigCheck:
    """Check that ``low <= value <= high``."""
    if low <= value <= high:
        return _OK
    return _fail(f"{name} is outside the range [{low} - {high}]")


def check_scale(
    low_name: str, high_name: str, low: float, high: float
) -> ConfigCheck:
    """Check that a minimum/maximum pair is ordered."""
    if low <= high:
        return _OK
    return _fail(f"invalid scale, {low_name} is greater than {high_name}")


def _first_failure(checks: Iterable[ConfigCheck]) -> ConfigCheck:
    # ``checks`` is lazy so later checks never run on wrongly typed values.
    for check in checks:
        if not check:
            return check
    return _OK


def check_listener_options(options: ListenerOptions) -> ConfigCheck:
    """Validate analyser options."""

    def checks():
        yield check_type("sample_rate", options.sample_rate, float)
        yield check_type("fft_size", options.fft_size, int)
        yield check_type("gain", options.gain, float)
        yield check_range(
            "sample_rate", options.sample_rate, MIN_SAMPLE_RATE, MAX_SAMPLE_RATE
        )
        yield check_range("fft_size", options.fft_size, MIN_FFT_SIZE, MAX_FFT_SIZE)
        if options.fft_size & (options.fft_size - 1):
            yield _fail("fft_size is not a power of 2")
        if not options.gain > 0:
            yield _fail("gain must be greater than 0")

    return _first_failure(checks())


def _band_checks(config: Any):
    yield check_type("min_freq", config.min_freq, float)
    yield check_type("max_freq", config.max_freq, float)
    yield check_type(
        "valid_track_percentage", config.valid_track_percentage, float
    )
    yield check_type("track_size_ms", config.track_size_ms, float)


def _band_ranges(config: Any):
    yield check_range("min_freq", config.min_freq, 0)
    yield check_range("max_freq", config.max_freq, 0)
    yield check_range(
        "valid_track_percentage", config.valid_track_percentage, 0, 100
    )
    if not config.track_size_ms > 0:
        yield _fail("track_size_ms must be greater than 0")


def check_capture_config(config: CaptureConfig) -> ConfigCheck:
    """Validate a capture profile.

    The amplitude scale is only enforced while amplitude validation is
    enabled.
    """

    def checks():
        yield from _band_checks(config)
        yield check_type("amplitude_validation", config.amplitude_validation, bool)
        yield check_type("min_amplitude", config.min_amplitude, float)
        yield check_type("max_amplitude", config.max_amplitude, float)
        yield check_type("timeout_ms", config.timeout_ms, float)
        yield from _band_ranges(config)
        yield check_range("timeout_ms", config.timeout_ms, 0)
        yield check_scale("min_freq", "max_freq", config.min_freq, config.max_freq)
        if config.amplitude_validation:
            yield check_scale(
                "min_amplitude",
                "max_amplitude",
                config.min_amplitude,
                config.max_amplitude,
            )

    return _first_failure(checks())


def check_probe_config(config: CaptureConfig) -> ConfigCheck:
    """Validate a frequency-only profile; amplitude fields are ignored."""

    def checks():
        yield from _band_checks(config)
        yield check_type("timeout_ms", config.timeout_ms, float)
        yield from _band_ranges(config)
        yield check_range("timeout_ms", config.timeout_ms, 0)
        yield check_scale("min_freq", "max_freq", config.min_freq, config.max_freq)

    return _first_failure(checks())


def check_calibration_config(config: CalibrationConfig) -> ConfigCheck:
    """Validate gain search settings."""

    def checks():
        yield from _band_checks(config)
        for name in (
            "min_amplitude",
            "max_amplitude",
            "first_read_timeout_ms",
            "calibration_timeout_ms",
            "amplitude_tolerance",
            "gain_step",
        ):
            yield check_type(name, getattr(config, name), float)
        yield from _band_ranges(config)
        yield check_range("first_read_timeout_ms", config.first_read_timeout_ms, 0)
        yield check_range("calibration_timeout_ms", config.calibration_timeout_ms, 0)
        yield check_range("amplitude_tolerance", config.amplitude_tolerance, 0)
        if not config.gain_step > 0:
            yield _fail("gain_step must be greater than 0")
        yield check_scale("min_freq", "max_freq", config.min_freq, config.max_freq)
        yield check_scale(
            "min_amplitude", "max_amplitude", config.min_amplitude, config.max_amplitude
        )

    return _first_failure(checks())


__all__ = [
    "ListenerOptions",
    "CaptureConfig",
    "CalibrationConfig",
    "ConfigCheck",
    "check_type",
    "check_range",
    "check_scale",
    "check_listener_options",
    "check_capture_config",
    "check_probe_config",
    "check_calibration_config",
]
