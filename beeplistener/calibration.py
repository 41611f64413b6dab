"""Adaptive gain search that centres the measured beep amplitude.

The search walks the gain in fixed steps towards the centre of the
amplitude band.  When a step overshoots the tolerance band, or would drive
the gain to zero, it restarts from the last sample that was still short of
the band with half the step.  Each restart is one refinement round.  The
loop ends on success, on the calibration deadline, or once the step has
shrunk below :data:`~beeplistener.constants.MIN_GAIN_STEP`.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from .config import CalibrationConfig, CaptureConfig
from .constants import MIN_GAIN_STEP
from .models import CalibrationResult, FailureReason, GainSearchState, ProbeResult
from .source import Clock, SampleSource

logger = logging.getLogger(__name__)

# ``probe(config, deadline)`` measures one frequency-only track and must
# give up once ``clock()`` reaches ``deadline``.
Probe = Callable[[CaptureConfig, float], ProbeResult]

MSG_SUCCESS = "Gain adjusted successfully"
MSG_NO_SIGNAL = "No track detected in expected frequency range"
MSG_SIGNAL_LOST = "Calibration tone lost during gain search"
MSG_TIMEOUT = "Microphone calibration time exceeded"
MSG_NO_CONVERGENCE = "Gain search did not converge"


class GainCalibrator:
    """Search the source gain that centres the measured amplitude.

    The calibrator is the only writer of the source gain while
    :meth:`run` executes.  Gains written are always ``> 0``.

    Args:
        source: Source whose gain is adjusted.
        probe: Frequency-only measurement, see :data:`Probe`.
        clock: Monotonic clock in seconds.
        min_step: Smallest step tried before giving up.
    """

    def __init__(
        self,
        source: SampleSource,
        probe: Probe,
        *,
        clock: Clock = time.monotonic,
        min_step: float = MIN_GAIN_STEP,
    ) -> None:
        self.source = source
        self.probe = probe
        self.clock = clock
        self.min_step = min_step

    def _read_amplitude(
        self, config: CaptureConfig, deadline: float
    ) -> Optional[float]:
        result = self.probe(config, deadline)
        if not result.success or result.amplitude is None:
            return None
        if math.isnan(result.amplitude.mean):
            return None
        return result.amplitude.mean

    def _finish(
        self,
        state: GainSearchState,
        original_gain: float,
        rounds: int,
        failure: FailureReason,
        message: str,
    ) -> CalibrationResult:
        if state.current_gain != original_gain:
            self.source.set_gain(original_gain)
        logger.info("%s, gain restored to %s", message, original_gain)
        return CalibrationResult(
            success=False,
            message=message,
            gain=original_gain,
            rounds=rounds,
            samples=tuple(state.samples),
            failure=failure,
        )

    def run(self, config: CalibrationConfig) -> CalibrationResult:
        """Calibrate the gain; ``config`` is assumed to be validated."""
        original_gain = self.source.get_gain()
        state = GainSearchState(current_gain=original_gain)
        central = config.central_amplitude
        tolerance = config.amplitude_tolerance
        probe_config = config.probe_config()

        amplitude = self._read_amplitude(
            probe_config, self.clock() + config.first_read_timeout_ms / 1000.0
        )
        if amplitude is None:
            return self._finish(
                state, original_gain, 0, FailureReason.CALIBRATION_NO_SIGNAL, MSG_NO_SIGNAL
            )
        if abs(amplitude - central) <= tolerance:
            logger.info("New gain value: %s (amplitude %.2f dB)", original_gain, amplitude)
            return CalibrationResult(True, MSG_SUCCESS, gain=original_gain)

        deadline = self.clock() + config.calibration_timeout_ms / 1000.0
        anchor = (original_gain, amplitude)
        step = config.gain_step
        rounds = 0

        while step >= self.min_step:
            rounds += 1
            anchor_gain, anchor_amplitude = anchor
            direction = -1.0 if anchor_amplitude > central else 1.0
            logger.debug(
                "Round %d: from gain %s (%.2f dB), step %s",
                rounds,
                anchor_gain,
                anchor_amplitude,
                direction * step,
            )

            gain = anchor_gain
            while gain + direction * step > 0:
                if self.clock() >= deadline:
                    return self._finish(
                        state, original_gain, rounds,
                        FailureReason.CALIBRATION_TIMEOUT, MSG_TIMEOUT,
                    )
                gain += direction * step
                self.source.set_gain(gain)
                state.current_gain = gain

                amplitude = self._read_amplitude(probe_config, deadline)
                if amplitude is None:
                    if self.clock() >= deadline:
                        return self._finish(
                            state, original_gain, rounds,
                            FailureReason.CALIBRATION_TIMEOUT, MSG_TIMEOUT,
                        )
                    return self._finish(
                        state, original_gain, rounds,
                        FailureReason.CALIBRATION_NO_SIGNAL, MSG_SIGNAL_LOST,
                    )
                state.record(gain, amplitude)
                logger.debug("Gain %s -> %.2f dB", gain, amplitude)

                if abs(amplitude - central) <= tolerance:
                    logger.info("New gain value: %s (amplitude %.2f dB)", gain, amplitude)
                    return CalibrationResult(
                        True,
                        MSG_SUCCESS,
                        gain=gain,
                        rounds=rounds,
                        samples=tuple(state.samples),
                    )
                # Still short of the band in the travel direction?
                if not (amplitude - central) * direction < -tolerance:
                    break
                anchor = (gain, amplitude)

            step /= 2

        return self._finish(
            state, original_gain, rounds,
            FailureReason.CALIBRATION_NO_CONVERGENCE, MSG_NO_CONVERGENCE,
        )


__all__ = ["Probe", "GainCalibrator"]
