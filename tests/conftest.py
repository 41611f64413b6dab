"""Synthetic sources and a controllable clock for the listener tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Optional

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from beeplistener.models import SampleFrame  # noqa: E402

SAMPLE_RATE = 48_000
FFT_SIZE = 2048

# ``response(frame_index, now, gain)`` returns ``(frequency, amplitude_db)``;
# a ``None`` frequency yields a silent frame.
Response = Callable[[int, float, float], tuple[Optional[float], float]]


class FakeClock:
    """Manually advanced monotonic clock; its ``sleep`` advances time.

    Time is kept in milliseconds so that sums of frame durations stay exact.
    """

    def __init__(self) -> None:
        self.now_ms = 0.0

    def __call__(self) -> float:
        return self.now_ms / 1000.0

    def advance(self, ms: float) -> None:
        self.now_ms += ms

    def sleep(self, seconds: float) -> None:
        self.advance(seconds * 1000.0)


def sine_frame(
    frequency: Optional[float],
    amplitude_db: float,
    *,
    sample_rate: int = SAMPLE_RATE,
    fft_size: int = FFT_SIZE,
) -> SampleFrame:
    """Pure sine frame paired with a flat spectrum at ``amplitude_db``."""
    if frequency is None:
        samples = np.zeros(fft_size)
    else:
        t = np.arange(fft_size) / sample_rate
        samples = np.sin(2 * np.pi * frequency * t)
    spectrum = np.full(fft_size // 2, amplitude_db, dtype=np.float64)
    return SampleFrame(samples, spectrum)


class FakeSource:
    """:class:`~beeplistener.source.SampleSource` driven by a scripted response.

    Every frame advances ``clock`` by ``frame_ms``.  ``stop_after`` simulates
    an external deactivation once that many frames were served.
    """

    def __init__(
        self,
        clock: FakeClock,
        response: Response,
        *,
        gain: float = 1.0,
        frame_ms: float = 10.0,
        stop_after: Optional[int] = None,
    ) -> None:
        self.clock = clock
        self.response = response
        self.gain = gain
        self.frame_ms = frame_ms
        self.stop_after = stop_after
        self.active = False
        self.activations = 0
        self.deactivations = 0
        self.frames_served = 0
        self.gain_history: list[float] = []

    def activate(self) -> None:
        self.active = True
        self.activations += 1

    def deactivate(self) -> None:
        self.active = False
        self.deactivations += 1

    def is_active(self) -> bool:
        return self.active

    def next_frame(self) -> SampleFrame:
        self.clock.advance(self.frame_ms)
        frequency, amplitude = self.response(
            self.frames_served, self.clock(), self.gain
        )
        self.frames_served += 1
        if self.stop_after is not None and self.frames_served >= self.stop_after:
            self.active = False
        return sine_frame(frequency, amplitude)

    def set_gain(self, value: float) -> None:
        self.gain = value
        self.gain_history.append(value)

    def get_gain(self) -> float:
        return self.gain


def constant(frequency: Optional[float], amplitude: float) -> Response:
    return lambda _index, _now, _gain: (frequency, amplitude)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_listener(clock: FakeClock):
    """Build a ``(listener, source)`` pair around a :class:`FakeSource`."""
    from beeplistener.config import ListenerOptions
    from beeplistener.listener import BeepListener

    def factory(response: Response, **source_kwargs):
        source = FakeSource(clock, response, **source_kwargs)
        listener = BeepListener(
            source,
            ListenerOptions(sample_rate=SAMPLE_RATE, fft_size=FFT_SIZE),
            clock=clock,
            sleep=clock.sleep,
        )
        return listener, source

    return factory
