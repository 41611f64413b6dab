import math

import pytest

from beeplistener import (
    CaptureConfig,
    FailureReason,
    ListenerOptions,
    SampleSource,
    init_listener,
)

from conftest import FakeSource, constant


def test_fake_source_satisfies_protocol(clock) -> None:
    assert isinstance(FakeSource(clock, constant(None, -120.0)), SampleSource)


def test_init_sets_gain_and_leaves_source_inactive(clock) -> None:
    source = FakeSource(clock, constant(3000.0, -25.0))
    source.activate()
    init = init_listener(source, ListenerOptions(gain=2), clock=clock, sleep=clock.sleep)
    assert init.success
    assert init.message == "Listener initialised successfully"
    assert init.listener is not None
    assert source.gain_history == [2.0]
    assert not source.active
    assert init.listener.gain == 2.0


@pytest.mark.parametrize(
    "options",
    [
        ListenerOptions(fft_size=1000),
        ListenerOptions(sample_rate=4000),
        ListenerOptions(gain=-1),
    ],
)
def test_invalid_options_leave_source_untouched(clock, options) -> None:
    source = FakeSource(clock, constant(3000.0, -25.0))
    init = init_listener(source, options, clock=clock, sleep=clock.sleep)
    assert not init.success
    assert init.listener is None
    assert init.message.startswith("Invalid configuration values: ")
    assert source.gain_history == []
    assert source.activations == source.deactivations == 0


def test_analyser_uses_listener_geometry(clock) -> None:
    source = FakeSource(clock, constant(3000.0, -25.0))
    options = ListenerOptions(sample_rate=44_100, fft_size=4096)
    listener = init_listener(source, options, clock=clock, sleep=clock.sleep).listener
    assert listener.analyser.sample_rate == 44_100
    assert listener.analyser.hertz_per_division == pytest.approx(44_100 / 4096)


def test_set_gain(make_listener) -> None:
    listener, source = make_listener(constant(3000.0, -25.0))
    listener.set_gain(3)
    assert source.gain == 3.0
    for bad in (0, -2.5):
        with pytest.raises(ValueError):
            listener.set_gain(bad)
    assert source.gain_history == [3.0]


def test_stored_gain_is_applied_before_capture(make_listener) -> None:
    def response(_index, _now, gain):
        return 3000.0, -35.0 if gain < 3 else -25.0

    listener, _ = make_listener(response)
    assert listener.capture().failure is FailureReason.NO_SIGNAL
    listener.set_gain(3.125)
    assert listener.capture().success


def test_calibrated_gain_makes_capture_succeed(make_listener) -> None:
    def response(_index, _now, gain):
        return 3200.0, -35.0 + 20 * math.log10(gain)

    listener, source = make_listener(response)
    calibration = listener.calibrate()
    assert calibration.success
    assert calibration.gain == 3.0
    assert source.gain == calibration.gain
    result = listener.capture(CaptureConfig(min_freq=3150, max_freq=3250))
    assert result.success
    assert result.amplitude.mean == -25.46
