"""
Turbulence intensity, moving-average smoothing and interval sweeps for probe velocity data.
"""

import logging
import numbers
import warnings
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .exceptions import DegenerateComputationWarning, InvalidParameterError
from .structs import AnalysisSession, ProbeDataset, SmoothedVelocity

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Parameter checks
# ---------------------------------------------------------------------------

def check_interval(interval: float) -> float:
    """Return `interval` as a float, rejecting NaN and non-positive values."""
    try:
        value = float(interval)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"averaging interval must be a number, got {interval!r}")
    if not np.isfinite(value) or value <= 0:
        raise InvalidParameterError(f"averaging interval must be greater than 0, got {interval!r}")
    return value


def check_intervals(intervals: Sequence[float]) -> List[float]:
    """Validate a list of averaging intervals and return it sorted ascending."""
    if intervals is None or len(intervals) == 0:
        raise InvalidParameterError("at least one averaging interval is required")
    return sorted(check_interval(v) for v in intervals)


def check_probe_index(probe_index, num_probes: int) -> int:
    """Return the 1-based probe index as an int, or raise InvalidParameterError."""
    if isinstance(probe_index, bool) or not isinstance(probe_index, numbers.Integral):
        raise InvalidParameterError(f"probe index must be an integer, got {probe_index!r}")
    probe_index = int(probe_index)
    if probe_index < 1 or probe_index > num_probes:
        raise InvalidParameterError(f"probe index must be between 1 and {num_probes}, got {probe_index}")
    return probe_index


def check_time_range(time_range: Sequence[float], time: np.ndarray) -> Tuple[float, float]:
    """
    Validate a [t0, t1] time range against the sample times.

    The range must satisfy t0 < t1 and lie within [min(time), max(time)].
    """
    if time_range is None or len(time_range) != 2:
        raise InvalidParameterError("time range must hold exactly two values (start, end)")
    try:
        t0, t1 = float(time_range[0]), float(time_range[1])
    except (TypeError, ValueError):
        raise InvalidParameterError(f"time range values must be numbers, got {time_range!r}")
    if np.isnan(t0) or np.isnan(t1) or t0 >= t1:
        raise InvalidParameterError(f"time range start must be less than end, got ({t0}, {t1})")

    time = np.asarray(time)
    if time.size == 0:
        raise InvalidParameterError("cannot select a time range from an empty time series")
    tmin, tmax = float(np.min(time)), float(np.max(time))
    if t0 < tmin or t1 > tmax:
        raise InvalidParameterError(f"time range ({t0}, {t1}) exceeds data range ({tmin:.1f} to {tmax:.1f})")
    return t0, t1


# ---------------------------------------------------------------------------
# Text input parsing
# ---------------------------------------------------------------------------

def _parse_number_list(text: str) -> List[float]:
    values = []
    for part in str(text).split(','):
        try:
            values.append(float(part.strip()))
        except ValueError:
            raise InvalidParameterError(f"invalid number {part.strip()!r} in comma-separated list {text!r}")
    return values


def parse_interval_list(text: str) -> List[float]:
    """
    Parse a comma-separated list of averaging intervals such as "1, 5, 2".

    Returns:
        The intervals sorted ascending.
    """
    return check_intervals(_parse_number_list(text))


def format_interval_list(intervals: Sequence[float]) -> str:
    """Format intervals back into the compact comma-separated form ("1,2,3.5")."""
    return ",".join(f"{v:g}" for v in intervals)


def parse_time_range(text: str, time: np.ndarray) -> Tuple[float, float]:
    """Parse "start,end" and validate it against the sample times."""
    values = _parse_number_list(text)
    if len(values) != 2:
        raise InvalidParameterError("please enter two numbers representing the start and end times")
    return check_time_range(values, time)


def parse_probe_id(text: str, num_probes: int) -> int:
    """Parse a probe ID typed by the user; IDs are 1-based."""
    try:
        value = float(str(text).strip())
    except ValueError:
        raise InvalidParameterError(f"probe ID must be an integer between 1 and {num_probes}, got {text!r}")
    if not np.isfinite(value) or value != round(value):
        raise InvalidParameterError(f"probe ID must be an integer between 1 and {num_probes}, got {text!r}")
    return check_probe_index(int(value), num_probes)


# ---------------------------------------------------------------------------
# Core statistics
# ---------------------------------------------------------------------------

def turbulence_intensity(samples: np.ndarray) -> float:
    """
    Turbulence intensity Iu = std(samples) / mean(samples) * 100 in percent.

    The standard deviation uses the N-1 normalisation. A zero mean is not guarded:
    the non-finite result is returned and a DegenerateComputationWarning is issued.

    Args:
        samples: 1-D array of velocity samples.

    Returns:
        Turbulence intensity in percent.
    """
    x = np.asarray(samples, dtype=np.float64).ravel()
    if x.size == 0:
        raise InvalidParameterError("turbulence intensity needs at least one sample")

    mean = np.mean(x)
    std = np.std(x, ddof=1) if x.size > 1 else 0.0
    if mean == 0:
        warnings.warn("mean of the signal is zero; turbulence intensity is not finite",
                      DegenerateComputationWarning, stacklevel=2)
    with np.errstate(divide='ignore', invalid='ignore'):
        return float(np.float64(std) / mean * 100.0)


def moving_average(samples: np.ndarray, window_samples: int) -> np.ndarray:
    """
    Centered moving average whose window shrinks at the signal boundaries.

    For an odd window k the average at sample i covers i-(k-1)/2 .. i+(k-1)/2; for an
    even window it covers i-k/2 .. i+k/2-1. Near the ends only the samples that exist
    are averaged, so the output always has the same length as the input.

    Args:
        samples: 1-D array of samples.
        window_samples: Window length in samples (integer >= 1). A window of 1 returns the input.

    Returns:
        Smoothed samples with the same length (and floating dtype) as `samples`.
    """
    if isinstance(window_samples, bool) or not isinstance(window_samples, numbers.Integral) or window_samples < 1:
        raise InvalidParameterError(f"window length must be an integer >= 1, got {window_samples!r}")

    x = np.asarray(samples)
    dtype = x.dtype if np.issubdtype(x.dtype, np.floating) else np.float64
    x = x.astype(dtype).ravel()
    if window_samples == 1 or x.size == 0:
        return x.copy()

    n = x.size
    n_before = window_samples // 2
    n_after = (window_samples - 1) // 2

    idx = np.arange(n)
    lo = np.clip(idx - n_before, 0, n)
    hi = np.clip(idx + n_after + 1, 0, n)

    csum = np.concatenate(([0.0], np.cumsum(x, dtype=np.float64)))
    out = (csum[hi] - csum[lo]) / (hi - lo)
    return out.astype(dtype)


def mean_time_step(time: np.ndarray) -> float:
    """Mean spacing of the sample times."""
    time = np.asarray(time, dtype=np.float64)
    if time.size < 2:
        raise InvalidParameterError("at least two time samples are required to determine the time step")
    return float(np.mean(np.diff(time)))


def nominal_time_step(time: np.ndarray) -> float:
    """Overall time step (t_end - t_start) / (T - 1) rounded to three decimals."""
    time = np.asarray(time, dtype=np.float64)
    if time.size < 2:
        raise InvalidParameterError("at least two time samples are required to determine the time step")
    return round(float((time[-1] - time[0]) / (time.size - 1)), 3)


def window_sample_count(interval: float, dt: float) -> int:
    """Number of samples spanned by an averaging interval: max(1, round(interval / dt))."""
    interval = check_interval(interval)
    if not dt > 0:
        raise InvalidParameterError(f"time step must be positive, got {dt}")
    # round half away from zero
    return max(1, int(np.floor(interval / dt + 0.5)))


def smooth_signal(samples: np.ndarray, interval: float, dt: float) -> np.ndarray:
    """Moving average of `samples` over an interval given in seconds."""
    return moving_average(samples, window_sample_count(interval, dt))


# ---------------------------------------------------------------------------
# Probe-level operations
# ---------------------------------------------------------------------------

def filter_time_range(dataset: ProbeDataset, probe_index: int,
                      time_range: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Select one probe's samples inside a time range.

    Returns:
        time_filtered: Sample times with t0 <= t <= t1
        velocity: (u, v, w) samples of the probe at those times, shape (T', 3)
    """
    probe_index = check_probe_index(probe_index, dataset.num_probes)
    t0, t1 = check_time_range(time_range, dataset.time)

    mask = (dataset.time >= t0) & (dataset.time <= t1)
    time_filtered = dataset.time[mask]
    velocity = dataset.velocities[mask, :, probe_index - 1]
    if time_filtered.size < 2:
        raise InvalidParameterError(f"time range ({t0}, {t1}) holds fewer than two samples")
    return time_filtered, velocity


def smooth_velocity(dataset: ProbeDataset, probe_index: int,
                    time_range: Sequence[float], interval: float) -> SmoothedVelocity:
    """
    Apply a single averaging interval to all three velocity components of a probe.

    Args:
        dataset: Parsed probe data.
        probe_index: 1-based probe index.
        time_range: (t0, t1) range to analyse.
        interval: Averaging interval [s].

    Returns:
        SmoothedVelocity holding the raw and smoothed (u, v, w) series.
    """
    time_filtered, raw = filter_time_range(dataset, probe_index, time_range)
    window = window_sample_count(interval, mean_time_step(time_filtered))

    smoothed = np.empty_like(raw)
    for comp in range(3):
        smoothed[:, comp] = moving_average(raw[:, comp], window)

    return SmoothedVelocity(time_filtered, np.array(raw), smoothed, float(interval), window)


def sweep_intervals(dataset: ProbeDataset, probe_index: int,
                    time_range: Sequence[float], intervals: Sequence[float]) -> List[Tuple[float, float]]:
    """
    Turbulence intensity of the smoothed u-component for each averaging interval.

    Args:
        dataset: Parsed probe data.
        probe_index: 1-based probe index.
        time_range: (t0, t1) range to analyse.
        intervals: Averaging intervals [s]; must be non-empty and strictly positive.

    Returns:
        List of (interval, Iu) pairs sorted by interval.
    """
    intervals = check_intervals(intervals)
    time_filtered, raw = filter_time_range(dataset, probe_index, time_range)
    dt = mean_time_step(time_filtered)
    u_raw = raw[:, 0]

    results = []
    for interval in intervals:
        u = smooth_signal(u_raw, interval, dt)
        results.append((interval, turbulence_intensity(u)))
    return results


def update_session_sweep(dataset: ProbeDataset, session: AnalysisSession) -> List[Tuple[float, float]]:
    """
    Recompute the interval sweep of a session and cache it on the session.

    The unsmoothed baseline Iu(0) over the same time range is stored in
    `session.baseline_intensity`.
    """
    with session.computing():
        time_filtered, raw = filter_time_range(dataset, session.probe_index, session.time_range)
        baseline = turbulence_intensity(raw[:, 0])
        results = sweep_intervals(dataset, session.probe_index, session.time_range, session.intervals)
        session.baseline_intensity = baseline
        session.sweep_results = results

    logger.info("Probe %d: Iu(0) = %.2f%% over %d samples, %d intervals",
                session.probe_index, baseline, time_filtered.size, len(results))
    return results


def session_sweep(dataset: ProbeDataset, session: AnalysisSession) -> List[Tuple[float, float]]:
    """Return cached sweep results of a session, computing them when missing."""
    if session.sweep_results is None:
        return update_session_sweep(dataset, session)
    return session.sweep_results


def smooth_session(dataset: ProbeDataset, session: AnalysisSession) -> SmoothedVelocity:
    """Apply the session's current averaging interval to its probe and time range."""
    with session.computing():
        return smooth_velocity(dataset, session.probe_index, session.time_range, session.averaging_window)


# ---------------------------------------------------------------------------
# Probe geometry
# ---------------------------------------------------------------------------

def location_bounds(locations: np.ndarray):
    """
    Bounding box of the probe locations.

    Returns:
        (min_loc, max_loc, center, max_range) where max_range is the largest extent of
        the three axes, or 1.0 when all probes coincide.
    """
    locations = np.asarray(locations, dtype=np.float64).reshape(-1, 3)
    if locations.shape[0] == 0:
        raise InvalidParameterError("no probe locations given")
    min_loc = np.min(locations, axis=0)
    max_loc = np.max(locations, axis=0)
    center = (min_loc + max_loc) / 2.0
    max_range = float(np.max(max_loc - min_loc))
    if max_range == 0:
        max_range = 1.0
    return min_loc, max_loc, center, max_range


def nearest_probe(locations: np.ndarray, point: Sequence[float]) -> Tuple[int, float]:
    """
    Find the probe closest to a 3D point.

    Returns:
        (probe_id, distance) with a 1-based probe ID.
    """
    locations = np.asarray(locations, dtype=np.float64).reshape(-1, 3)
    if locations.shape[0] == 0:
        raise InvalidParameterError("no probe locations given")
    point = np.asarray(point, dtype=np.float64).ravel()
    if point.size != 3:
        raise InvalidParameterError(f"point must have three coordinates, got {point.size}")
    distances = np.linalg.norm(locations - point, axis=1)
    idx = int(np.argmin(distances))
    return idx + 1, float(distances[idx])
