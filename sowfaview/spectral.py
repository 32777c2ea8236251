"""
Power spectral density of probe velocity signals.
"""

from typing import Tuple

import numpy as np
from scipy.signal import welch
from scipy.signal.windows import hann

from .exceptions import InvalidParameterError
from .computations import mean_time_step

# Fixed Welch analysis parameters
SEGMENT_LENGTH = 2 ** 8
OVERLAP = 128
NFFT = 2 ** 13


def _segment_window() -> np.ndarray:
    """Symmetric Hann window of SEGMENT_LENGTH points without the zero-valued end points."""
    return hann(SEGMENT_LENGTH + 2, sym=True)[1:-1]


def welch_psd(time: np.ndarray, signal: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    One-sided power spectral density of a velocity component using Welch's method.

    The sampling rate is 1 / mean(diff(time)). Segments of 256 samples overlapping by
    128 samples are Hann-windowed, zero-padded to 8192 points and their periodograms
    averaged. A leading 0 Hz bin is dropped so the result can be shown on log axes.

    Args:
        time: Sample times [s], at least two.
        signal: Velocity samples, at least SEGMENT_LENGTH of them.

    Returns:
        Tuple of (frequencies [Hz], power [(m/s)^2/Hz]).
    """
    signal = np.asarray(signal, dtype=np.float64).ravel()
    time = np.asarray(time, dtype=np.float64).ravel()
    if signal.size != time.size:
        raise InvalidParameterError(f"time ({time.size}) and signal ({signal.size}) lengths differ")
    if signal.size < SEGMENT_LENGTH:
        raise InvalidParameterError(
            f"PSD needs at least {SEGMENT_LENGTH} samples, got {signal.size}")

    fs = 1.0 / mean_time_step(time)
    freqs, power = welch(signal,
                         fs=fs,
                         window=_segment_window(),
                         noverlap=OVERLAP,
                         nfft=NFFT,
                         return_onesided=True,
                         scaling='density')

    if freqs.size > 1 and freqs[0] == 0:
        freqs = freqs[1:]
        power = power[1:]
    return freqs, power


def psd_axis_limits(freqs: np.ndarray, power: np.ndarray) -> Tuple[float, float, float, float]:
    """Log-log axis limits (f_min, f_max, P_min / 10, P_max * 10) for a PSD plot."""
    freqs = np.asarray(freqs)
    power = np.asarray(power)
    if freqs.size == 0 or power.size == 0:
        raise InvalidParameterError("cannot compute axis limits of an empty spectrum")
    return (float(np.min(freqs)), float(np.max(freqs)),
            float(np.min(power)) * 0.1, float(np.max(power)) * 10.0)
