"""The listener context object and its public operations.

A :class:`BeepListener` owns everything a test station needs between
calls: the acquisition source, the analyser geometry, and the clock and
sleep functions.  Create one with :func:`init_listener` and pass it around
explicitly.

Example::

    init = init_listener(source, ListenerOptions(sample_rate=48_000))
    if not init.success:
        fail_step(init.message)
    calibration = init.listener.calibrate()
    result = init.listener.capture(CaptureConfig(min_freq=2900, max_freq=3100))
    if not result.success:
        fail_step(result.message, result.diagnostic_tracks)

None of the operations raise for configuration or measurement problems;
they return result objects carrying a
:class:`~beeplistener.models.FailureReason`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from .calibration import GainCalibrator
from .capture import CaptureOrchestrator, CaptureOutcome
from .config import (
    CalibrationConfig,
    CaptureConfig,
    ListenerOptions,
    check_calibration_config,
    check_capture_config,
    check_listener_options,
    check_probe_config,
)
from .models import (
    CalibrationResult,
    CaptureResult,
    FailureReason,
    ProbeResult,
    Series,
    SeriesStats,
)
from .pitch import FrameAnalyser
from .source import Clock, SampleSource, Session, Sleep
from .track import collect_track

logger = logging.getLogger(__name__)

MSG_INVALID_CONFIG = "Invalid configuration values"
MSG_INIT_OK = "Listener initialised successfully"
MSG_TRACK_OK = "Track detected within expected values"
MSG_AMPLITUDE_OUT_OF_RANGE = (
    "Track detected in expected frequency range, but amplitude out of range"
)
MSG_NO_TRACK = "No track detected in expected frequency range"
MSG_PROBE_FAILED = "Expected track not detected"


@dataclass(frozen=True)
class ListenerInit:
    """Outcome of :func:`init_listener`; ``listener`` is set on success."""

    success: bool
    message: str
    listener: Optional["BeepListener"] = None


class BeepListener:
    """Capture, probe and calibrate against one acquisition source.

    Args:
        source: Frame producer with a gain control.
        options: Analyser geometry; assumed to be validated.
        clock: Monotonic clock in seconds.
        sleep: Blocking sleep in seconds.
    """

    def __init__(
        self,
        source: SampleSource,
        options: ListenerOptions = ListenerOptions(),
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        self.source = source
        self.options = options
        self.analyser = FrameAnalyser(options.sample_rate, options.fft_size)
        self.clock = clock
        self.sleep = sleep

    # --------------------------------------------------------------
    @property
    def gain(self) -> float:
        return self.source.get_gain()

    def set_gain(self, gain: float) -> None:
        """Apply ``gain`` to the source, e.g. a value stored by a previous calibration."""
        if not gain > 0:
            raise ValueError(f"gain must be greater than 0, got {gain!r}")
        self.source.set_gain(float(gain))

    # --------------------------------------------------------------
    def _orchestrator(self) -> CaptureOrchestrator:
        return CaptureOrchestrator(self.analyser, clock=self.clock, sleep=self.sleep)

    def capture(self, config: Optional[CaptureConfig] = None) -> CaptureResult:
        """Wait for a beep matching ``config`` and validate it.

        Returns:
            A :class:`CaptureResult`.  On failure ``diagnostic_tracks``
            holds the last buffered tracks and ``failure`` tells whether a
            track matched the frequency band at all.
        """
        config = config or CaptureConfig()
        check = check_capture_config(config)
        if not check:
            return CaptureResult(
                success=False,
                message=f"{MSG_INVALID_CONFIG}: {check.reason}",
                failure=FailureReason.CONFIGURATION,
            )

        with Session(self.source, config.timeout_ms, clock=self.clock) as session:
            outcome = self._orchestrator().run(session, config)
        return self._capture_result(outcome)

    @staticmethod
    def _capture_result(outcome: CaptureOutcome) -> CaptureResult:
        diagnostics = tuple(outcome.tracks)
        if outcome.accepted and outcome.validation is not None:
            validation = outcome.validation
            logger.info(
                "%s: %.2f Hz, %.2f dB",
                MSG_TRACK_OK,
                validation.mean_frequency,
                validation.median_amplitude,
            )
            return CaptureResult(
                success=True,
                message=MSG_TRACK_OK,
                frequency=Series(
                    validation.filtered_frequencies, validation.mean_frequency
                ),
                amplitude=Series(
                    validation.filtered_amplitudes, validation.median_amplitude
                ),
                diagnostic_tracks=diagnostics,
            )

        if outcome.frequency_matched:
            failure = FailureReason.AMPLITUDE_OUT_OF_RANGE
            message = MSG_AMPLITUDE_OUT_OF_RANGE
        else:
            failure = FailureReason.NO_SIGNAL
            message = MSG_NO_TRACK
        if diagnostics:
            last = diagnostics[-1]
            logger.info(
                "%s; last track frequencies=%s amplitudes=%s",
                message,
                last.frequencies,
                last.amplitudes,
            )
        else:
            logger.info("%s; no track was buffered", message)
        return CaptureResult(
            success=False,
            message=message,
            diagnostic_tracks=diagnostics,
            failure=failure,
        )

    # --------------------------------------------------------------
    def _probe(self, config: CaptureConfig, deadline: float) -> ProbeResult:
        with Session(self.source, clock=self.clock, deadline=deadline) as session:
            outcome = self._orchestrator().run(session, config.frequency_only())
        if not outcome.accepted or outcome.validation is None:
            return ProbeResult(
                success=False,
                message=MSG_PROBE_FAILED,
                failure=FailureReason.NO_SIGNAL,
            )
        validation = outcome.validation
        return ProbeResult(
            success=True,
            message=MSG_TRACK_OK,
            frequency=SeriesStats.from_values(
                validation.filtered_frequencies, validation.mean_frequency
            ),
            amplitude=SeriesStats.from_values(
                validation.filtered_amplitudes, validation.median_amplitude
            ),
        )

    def probe(self, config: Optional[CaptureConfig] = None) -> ProbeResult:
        """Measure a track in the frequency band of ``config``.

        Amplitude validation is always disabled, which makes this the tool
        for finding out which amplitude band a device actually produces.
        """
        config = config or CaptureConfig()
        check = check_probe_config(config)
        if not check:
            return ProbeResult(
                success=False,
                message=f"{MSG_INVALID_CONFIG}: {check.reason}",
                failure=FailureReason.CONFIGURATION,
            )
        return self._probe(config, self.clock() + config.timeout_ms / 1000.0)

    def calibrate(
        self, config: Optional[CalibrationConfig] = None
    ) -> CalibrationResult:
        """Adjust the source gain so the calibration tone lands mid-band.

        Example::

            if stored_gain is None:
                result = listener.calibrate()
                if result.success:
                    stored_gain = result.gain
            else:
                listener.set_gain(stored_gain)
        """
        config = config or CalibrationConfig()
        check = check_calibration_config(config)
        if not check:
            return CalibrationResult(
                success=False,
                message=f"{MSG_INVALID_CONFIG}: {check.reason}",
                gain=self.gain,
                failure=FailureReason.CONFIGURATION,
            )
        calibrator = GainCalibrator(self.source, self._probe, clock=self.clock)
        return calibrator.run(config)

    def read_frequencies(self, duration_ms: float) -> list[float]:
        """Return the raw frequency series of one ``duration_ms`` window."""
        if not duration_ms > 0:
            raise ValueError(f"duration_ms must be greater than 0, got {duration_ms!r}")
        with Session(self.source, duration_ms, clock=self.clock) as session:
            track = collect_track(
                session.source, self.analyser, duration_ms, clock=self.clock
            )
        return track.frequencies


def init_listener(
    source: SampleSource,
    options: Optional[ListenerOptions] = None,
    *,
    clock: Clock = time.monotonic,
    sleep: Sleep = time.sleep,
) -> ListenerInit:
    """Validate ``options`` and build a listener around ``source``.

    On success the source gain is set to ``options.gain`` and the source is
    left inactive; operations activate it for their own duration.  Invalid
    options leave the source untouched.
    """
    options = options or ListenerOptions()
    check = check_listener_options(options)
    if not check:
        return ListenerInit(False, f"{MSG_INVALID_CONFIG}: {check.reason}")

    if source.is_active():
        source.deactivate()
    source.set_gain(float(options.gain))
    logger.info(
        "Listener ready: %s Hz, fft size %d, %.4f Hz per bin, gain %s",
        options.sample_rate,
        options.fft_size,
        options.hertz_per_division,
        options.gain,
    )
    return ListenerInit(
        True, MSG_INIT_OK, BeepListener(source, options, clock=clock, sleep=sleep)
    )


__all__ = ["ListenerInit", "BeepListener", "init_listener"]
