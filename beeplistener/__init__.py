"""Beeplistener package."""

from .config import CalibrationConfig, CaptureConfig, ListenerOptions
from .listener import BeepListener, ListenerInit, init_listener
from .models import (
    CalibrationResult,
    CaptureResult,
    FailureReason,
    ProbeResult,
    Reading,
    SampleFrame,
    Track,
)
from .pitch import detect_pitch_autocorrelation, find_amplitude
from .source import SampleSource

__all__ = [
    "BeepListener",
    "ListenerInit",
    "init_listener",
    "ListenerOptions",
    "CaptureConfig",
    "CalibrationConfig",
    "CaptureResult",
    "ProbeResult",
    "CalibrationResult",
    "FailureReason",
    "Reading",
    "SampleFrame",
    "Track",
    "SampleSource",
    "detect_pitch_autocorrelation",
    "find_amplitude",
]
