import math

import pytest

from beeplistener.calibration import MSG_SIGNAL_LOST, GainCalibrator
from beeplistener.config import CalibrationConfig
from beeplistener.models import FailureReason, ProbeResult, SeriesStats

from conftest import FakeClock

# Inside the default calibration band and an integer period at 48 kHz.
TONE = 3200.0


def _gain_response(base_db: float):
    """Amplitude follows ``base_db + 20 * log10(gain)``."""

    def response(_index, _now, gain):
        return TONE, base_db + 20 * math.log10(gain)

    return response


def test_already_centred_keeps_gain(make_listener) -> None:
    listener, source = make_listener(_gain_response(-25.0))
    result = listener.calibrate()
    assert result.success
    assert result.gain == 1.0
    assert result.rounds == 0
    assert source.gain_history == []
    assert source.deactivations == 1


def test_gain_increases_and_refines(make_listener) -> None:
    listener, source = make_listener(_gain_response(-35.0))
    result = listener.calibrate(CalibrationConfig(amplitude_tolerance=0.2))
    assert result.success
    # 2, 3, 4 overshoots, then 3.5 and 3.25 overshoot, 3.125 lands.
    assert source.gain_history == [2.0, 3.0, 4.0, 3.5, 3.25, 3.125]
    assert result.gain == 3.125
    assert result.rounds == 4
    assert source.gain == 3.125
    assert abs(result.samples[-1][1] + 25.0) <= 0.2


def test_gain_decreases_in_steps(make_listener) -> None:
    listener, source = make_listener(_gain_response(-35.0), gain=10.0)
    result = listener.calibrate()
    assert result.success
    assert source.gain_history == [9.0, 8.0, 7.0, 6.0, 5.0, 4.0, 3.0]
    assert result.gain == 3.0
    assert result.rounds == 1


def test_gain_never_reaches_zero(make_listener) -> None:
    listener, source = make_listener(_gain_response(-5.0), gain=0.5)
    result = listener.calibrate()
    assert result.success
    assert source.gain_history == [0.25, 0.125]
    assert all(g > 0 for g in source.gain_history)
    assert result.gain == 0.125
    assert result.rounds == 4


def test_unresponsive_gain_times_out_and_restores(make_listener, clock) -> None:
    listener, source = make_listener(lambda _i, _now, _gain: (TONE, -40.0))
    result = listener.calibrate()
    assert not result.success
    assert result.failure is FailureReason.CALIBRATION_TIMEOUT
    assert result.message == "Microphone calibration time exceeded"
    assert result.gain == 1.0
    assert source.gain == 1.0
    assert source.gain_history[-1] == 1.0
    assert len(source.gain_history) > 2
    assert clock() >= 10.0


def test_step_discontinuity_does_not_converge(make_listener) -> None:
    def response(_index, _now, gain):
        return TONE, (-35.0 if gain < 3 else -15.0)

    listener, source = make_listener(response)
    result = listener.calibrate(CalibrationConfig(calibration_timeout_ms=60_000))
    assert not result.success
    assert result.failure is FailureReason.CALIBRATION_NO_CONVERGENCE
    assert result.rounds == 14
    assert source.gain == 1.0
    assert all(g <= 3.0 for g in source.gain_history)


def test_silent_source_reports_no_signal(make_listener, clock) -> None:
    listener, source = make_listener(lambda _i, _now, _gain: (None, -120.0))
    result = listener.calibrate()
    assert not result.success
    assert result.failure is FailureReason.CALIBRATION_NO_SIGNAL
    assert result.gain == 1.0
    assert source.gain_history == []
    assert 5.0 <= clock() < 6.0
    assert source.deactivations == 1


def test_tone_outside_calibration_band_reports_no_signal(make_listener) -> None:
    listener, _ = make_listener(lambda _i, _now, _gain: (3000.0, -25.0))
    result = listener.calibrate()
    assert result.failure is FailureReason.CALIBRATION_NO_SIGNAL


def test_invalid_config_is_rejected(make_listener) -> None:
    listener, source = make_listener(_gain_response(-35.0))
    result = listener.calibrate(CalibrationConfig(gain_step=0))
    assert not result.success
    assert result.failure is FailureReason.CONFIGURATION
    assert "gain_step must be greater than 0" in result.message
    assert result.gain == 1.0
    assert source.activations == 0


class _ScriptedSource:
    def __init__(self) -> None:
        self.gain = 1.0

    def activate(self) -> None:
        pass

    def deactivate(self) -> None:
        pass

    def is_active(self) -> bool:
        return True

    def next_frame(self):
        raise AssertionError("probe is scripted")

    def set_gain(self, value: float) -> None:
        self.gain = value

    def get_gain(self) -> float:
        return self.gain


def _probe_returning(amplitudes):
    """Scripted probe; ``None`` entries fail the measurement."""
    remaining = list(amplitudes)

    def probe(_config, _deadline):
        amplitude = remaining.pop(0)
        if amplitude is None:
            return ProbeResult(False, "Expected track not detected")
        stats = SeriesStats.from_values([amplitude], amplitude)
        return ProbeResult(True, "ok", frequency=stats, amplitude=stats)

    return probe


def test_signal_lost_mid_search_restores_gain() -> None:
    source = _ScriptedSource()
    calibrator = GainCalibrator(
        source, _probe_returning([-35.0, -31.0, None]), clock=FakeClock()
    )
    result = calibrator.run(CalibrationConfig())
    assert result.failure is FailureReason.CALIBRATION_NO_SIGNAL
    assert result.message == MSG_SIGNAL_LOST
    assert result.samples == ((2.0, -31.0),)
    assert source.gain == 1.0


def test_nan_amplitude_counts_as_missing() -> None:
    source = _ScriptedSource()
    calibrator = GainCalibrator(source, _probe_returning([math.nan]), clock=FakeClock())
    result = calibrator.run(CalibrationConfig())
    assert result.failure is FailureReason.CALIBRATION_NO_SIGNAL
    assert result.rounds == 0


@pytest.mark.parametrize("min_step", [0.5, 0.25])
def test_min_step_bounds_rounds(min_step: float) -> None:
    source = _ScriptedSource()
    # Every move from 1.0 upwards overshoots the band.
    probe = _probe_returning([-35.0] + [-10.0] * 10)
    calibrator = GainCalibrator(source, probe, clock=FakeClock(), min_step=min_step)
    result = calibrator.run(CalibrationConfig())
    assert result.failure is FailureReason.CALIBRATION_NO_CONVERGENCE
    assert result.rounds == int(math.log2(1 / min_step)) + 1
    assert source.gain == 1.0
