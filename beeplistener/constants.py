"""Default values used throughout the beep validation pipeline.

The values in this module configure the analyser, the capture state
machine and the gain calibration search.  Centralising them avoids
magic numbers spread throughout the code base and makes it easy to tune
a test station in one place.  The dataclasses in :mod:`beeplistener.config`
take their field defaults from here.
"""

from __future__ import annotations

# ─── Analyser configuration ─────────────────────────────────────────────────

# Sampling frequency of the acquisition source.  48 kHz is what most USB
# microphones deliver natively.
SAMPLE_RATE: int = 48_000

# Number of samples per analysis frame.  The frequency-domain half of a
# frame therefore has a bin width of ``SAMPLE_RATE / FFT_SIZE`` hertz.
FFT_SIZE: int = 2048

# Initial amplification applied by the source before analysis.
GAIN: float = 1.0

# Accepted ranges for the analyser options.
MIN_SAMPLE_RATE: int = 8_000
MAX_SAMPLE_RATE: int = 96_000
MIN_FFT_SIZE: int = 32
MAX_FFT_SIZE: int = 32_768

# ─── Pitch estimation ───────────────────────────────────────────────────────

# Number of autocorrelation maxima collected before the period is averaged.
MAX_LOCAL_MAXIMA: int = 10

# ─── Capture defaults ───────────────────────────────────────────────────────

# Expected frequency band of the beep, in hertz.
MIN_FREQ: float = 2950.0
MAX_FREQ: float = 3050.0

# Expected loudness band, in dB as reported by the frequency-domain frame.
AMPLITUDE_VALIDATION: bool = True
MIN_AMPLITUDE: float = -30.0
MAX_AMPLITUDE: float = -20.0

# Share of a track (in percent) whose readings must fall inside the
# frequency band for the track to be considered at all.
VALID_TRACK_PERCENTAGE: float = 70.0

# Length of the capture window started by a trigger, in milliseconds.
TRACK_SIZE_MS: float = 500.0

# Overall capture deadline, in milliseconds.
TIMEOUT_MS: float = 10_000.0

# Interval between single-reading polls while waiting for a trigger.
TRIGGER_POLL_INTERVAL_MS: float = 50.0

# How many buffered tracks a capture keeps for failure diagnostics.
DIAGNOSTIC_TRACK_LIMIT: int = 3

# ─── Calibration defaults ───────────────────────────────────────────────────

CALIBRATION_MIN_FREQ: float = 3050.0
CALIBRATION_MAX_FREQ: float = 3250.0
CALIBRATION_TRACK_SIZE_MS: float = 300.0

# Deadline for the very first reading taken before the gain search starts.
FIRST_READ_TIMEOUT_MS: float = 5_000.0

# Deadline for the gain search itself, measured after the first reading.
CALIBRATION_TIMEOUT_MS: float = 10_000.0

# Accepted distance (dB) between the measured amplitude and the centre of
# the amplitude band.
AMPLITUDE_TOLERANCE: float = 2.0

# Initial gain increment.  It is halved on every refinement pass.
GAIN_STEP: float = 1.0

# Below this step size the search gives up instead of waiting for the
# calibration deadline.
MIN_GAIN_STEP: float = 1e-4

__all__ = [
    "SAMPLE_RATE",
    "FFT_SIZE",
    "GAIN",
    "MIN_SAMPLE_RATE",
    "MAX_SAMPLE_RATE",
    "MIN_FFT_SIZE",
    "MAX_FFT_SIZE",
    "MAX_LOCAL_MAXIMA",
    "MIN_FREQ",
    "MAX_FREQ",
    "AMPLITUDE_VALIDATION",
    "MIN_AMPLITUDE",
    "MAX_AMPLITUDE",
    "VALID_TRACK_PERCENTAGE",
    "TRACK_SIZE_MS",
    "TIMEOUT_MS",
    "TRIGGER_POLL_INTERVAL_MS",
    "DIAGNOSTIC_TRACK_LIMIT",
    "CALIBRATION_MIN_FREQ",
    "CALIBRATION_MAX_FREQ",
    "CALIBRATION_TRACK_SIZE_MS",
    "FIRST_READ_TIMEOUT_MS",
    "CALIBRATION_TIMEOUT_MS",
    "AMPLITUDE_TOLERANCE",
    "GAIN_STEP",
    "MIN_GAIN_STEP",
]
