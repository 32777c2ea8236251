"""
Data structures for the sowfaview package.
"""

from contextlib import contextmanager
from typing import List, Optional, Tuple
import numbers
import threading
import numpy as np

from .exceptions import FormatError, InvalidParameterError


class ProbeDataset:
    """
    Time series of velocity samples recorded at a set of fixed probe locations.

    Attributes:
        time (np.ndarray): Sample times [s], shape (T,), float64
        locations (np.ndarray): Probe coordinates [m], shape (N, 3), float64
        velocities (np.ndarray): Velocity samples [m/s], shape (T, 3, N), float32.
            Axis 1 holds the (u, v, w) components, axis 2 the probe index.
        source (str): Path of the file the dataset was read from, if any

    Notes:
        - The arrays are made read-only on construction; a dataset is never modified after parsing.
        - Probe indices exposed to callers are 1-based, matching the order of the header declarations.
    """

    def __init__(self,
                 time: np.ndarray,
                 locations: np.ndarray,
                 velocities: np.ndarray,
                 source: Optional[str] = None):
        """Initialize ProbeDataset, checking that the array shapes agree."""
        time = np.array(time, dtype=np.float64).ravel()
        locations = np.array(locations, dtype=np.float64).reshape(-1, 3)
        velocities = np.array(velocities, dtype=np.float32)

        if velocities.ndim != 3 or velocities.shape[1] != 3:
            raise FormatError(f"velocities must have shape (T, 3, N), got {velocities.shape}")
        if velocities.shape[0] != time.shape[0]:
            raise FormatError(f"velocities hold {velocities.shape[0]} time steps but time has {time.shape[0]}")
        if velocities.shape[2] != locations.shape[0]:
            raise FormatError(f"velocities hold {velocities.shape[2]} probes but {locations.shape[0]} locations were given")

        for arr in (time, locations, velocities):
            arr.flags.writeable = False

        self._time = time
        self._locations = locations
        self._velocities = velocities
        self.source = source

    @property
    def time(self) -> np.ndarray:
        return self._time

    @property
    def locations(self) -> np.ndarray:
        return self._locations

    @property
    def velocities(self) -> np.ndarray:
        return self._velocities

    @property
    def num_probes(self) -> int:
        return self._locations.shape[0]

    @property
    def num_time_steps(self) -> int:
        return self._time.shape[0]

    def time_span(self) -> Tuple[float, float]:
        """Return (min(time), max(time))."""
        return float(np.min(self._time)), float(np.max(self._time))

    def probe_velocity(self, probe_index: int) -> np.ndarray:
        """Return the (T, 3) velocity samples of the 1-based probe index."""
        from .computations import check_probe_index
        probe_index = check_probe_index(probe_index, self.num_probes)
        return self._velocities[:, :, probe_index - 1]

    def __repr__(self):
        return (f"ProbeDataset(num_probes={self.num_probes}, "
                f"num_time_steps={self.num_time_steps}, source={self.source!r})")


class SmoothedVelocity:
    """
    Raw and moving-averaged velocity components of one probe over a time range.

    Attributes:
        time (np.ndarray): Sample times inside the selected range
        raw (np.ndarray): Unsmoothed (u, v, w) samples, shape (T', 3)
        smoothed (np.ndarray): Moving-averaged (u, v, w) samples, shape (T', 3)
        interval (float): Averaging interval [s]
        window_samples (int): Number of samples in the moving-average window
    """

    def __init__(self,
                 time: np.ndarray,
                 raw: np.ndarray,
                 smoothed: np.ndarray,
                 interval: float,
                 window_samples: int):
        self.time = time
        self.raw = raw
        self.smoothed = smoothed
        self.interval = interval
        self.window_samples = window_samples

    @property
    def u(self) -> np.ndarray:
        return self.smoothed[:, 0]

    @property
    def v(self) -> np.ndarray:
        return self.smoothed[:, 1]

    @property
    def w(self) -> np.ndarray:
        return self.smoothed[:, 2]


class ViewerParams:
    """
    User-adjustable defaults shared by the probe and profile viewers.

    Attributes:
        averaging_window (float): Default single averaging interval [s]
        intervals (List[float]): Default averaging intervals for the sweep [s]
        locations_var (str): Default variable name of the locations array in a cache artifact
        profile_step (int): Number of rows between consecutive vertical-profile frames
        play_speed (float): Playback speed multiplier (frame period is base_period / play_speed)
        base_period (float): Frame period at unit playback speed [s]
        von_karman (float): Von Karman constant used by the log-law fit
        reference_height (float): Default reference height for profile calibration [m]
        velocity_range (Tuple[float, float]): Default velocity axis range [m/s]
        intensity_range (Tuple[float, float]): Default turbulence intensity axis range
    """

    def __init__(self,
                 averaging_window: float = 0.1,
                 intervals: Optional[List[float]] = None,
                 locations_var: str = "locations",
                 profile_step: int = 500,
                 play_speed: float = 1.0,
                 base_period: float = 0.1,
                 von_karman: float = 0.4,
                 reference_height: float = 90.0,
                 velocity_range: Tuple[float, float] = (0.0, 15.0),
                 intensity_range: Tuple[float, float] = (0.0, 0.5)):
        """Initialize ViewerParams with the provided data."""
        self.averaging_window = averaging_window

        if intervals is None:
            self.intervals = [1.0, 2.0, 3.0, 5.0, 10.0, 30.0, 60.0]
        else:
            self.intervals = list(intervals)

        self.locations_var = locations_var
        self.profile_step = profile_step
        self.play_speed = play_speed
        self.base_period = base_period
        self.von_karman = von_karman
        self.reference_height = reference_height
        self.velocity_range = velocity_range
        self.intensity_range = intensity_range


class AnalysisSession:
    """
    Analysis state of a single probe-velocity window.

    One session belongs to exactly one viewer window and is passed explicitly into
    every analysis call.

    Attributes:
        probe_index (int): Selected probe, 1-based
        time_range (Tuple[float, float]): Active time range [t0, t1]
        intervals (List[float]): Averaging intervals for the sweep, sorted ascending
        averaging_window (float): Current single averaging interval [s]
        sweep_results (Optional[List[Tuple[float, float]]]): Cached (interval, Iu) pairs
        baseline_intensity (Optional[float]): Cached Iu of the unsmoothed u-component
    """

    def __init__(self,
                 probe_index: int,
                 time_range: Tuple[float, float],
                 intervals: List[float],
                 averaging_window: float):
        from .computations import check_intervals, check_interval

        if isinstance(probe_index, bool) or not isinstance(probe_index, numbers.Integral) or probe_index < 1:
            raise InvalidParameterError(f"probe index must be an integer >= 1, got {probe_index!r}")
        try:
            t0, t1 = float(time_range[0]), float(time_range[1])
        except (TypeError, ValueError, IndexError):
            raise InvalidParameterError(f"time range must hold two numbers (start, end), got {time_range!r}")
        if not t0 < t1:
            raise InvalidParameterError(f"time range start must be less than end, got ({t0}, {t1})")

        self.probe_index = int(probe_index)
        self.time_range = (t0, t1)
        self.intervals = check_intervals(intervals)
        self.averaging_window = check_interval(averaging_window)
        self.sweep_results = None
        self.baseline_intensity = None
        self._lock = threading.Lock()

    @classmethod
    def for_dataset(cls, dataset: ProbeDataset, probe_index: int,
                    params: Optional[ViewerParams] = None) -> "AnalysisSession":
        """Create a session covering the full time span of the dataset."""
        from .computations import check_probe_index

        if params is None:
            params = ViewerParams()
        probe_index = check_probe_index(probe_index, dataset.num_probes)
        return cls(probe_index, dataset.time_span(), params.intervals, params.averaging_window)

    def set_time_range(self, time_range: Tuple[float, float], time: np.ndarray) -> None:
        """Change the active time range; cached sweep results are dropped."""
        from .computations import check_time_range
        self.time_range = check_time_range(time_range, time)
        self.invalidate()

    def set_intervals(self, intervals: List[float]) -> None:
        from .computations import check_intervals
        self.intervals = check_intervals(intervals)
        self.invalidate()

    def set_averaging_window(self, interval: float) -> None:
        from .computations import check_interval
        self.averaging_window = check_interval(interval)

    def invalidate(self) -> None:
        self.sweep_results = None
        self.baseline_intensity = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def computing(self):
        """
        Mark the session as busy for the duration of a computation.

        Raises:
            RuntimeError: if a computation for this session is already in progress.
        """
        if not self._lock.acquire(blocking=False):
            raise RuntimeError(f"a computation for probe {self.probe_index} is already in progress")
        try:
            yield self
        finally:
            self._lock.release()


class ABLProfiles:
    """
    Planar-averaged atmospheric boundary layer statistics written by the ABL solver.

    Attributes:
        U_mean (np.ndarray): Rows of [time, dt, U(z_1), ..., U(z_H)]
        uu_mean (np.ndarray): Rows of [time, dt, uu(z_1), ..., uu(z_H)]
        height (np.ndarray): Cell-centre heights z_1..z_H [m]
        source (str): Folder the files were read from
    """

    def __init__(self, U_mean: np.ndarray, uu_mean: np.ndarray, height: np.ndarray,
                 source: Optional[str] = None):
        self.U_mean = U_mean
        self.uu_mean = uu_mean
        self.height = height
        self.source = source

    @property
    def num_rows(self) -> int:
        return self.U_mean.shape[0]


class ProfileFrames:
    """
    Vertical profiles sampled every `step` rows of an ABLProfiles record.

    Attributes:
        rows (np.ndarray): Row indices used for each frame (0-based)
        time (np.ndarray): Time of each frame [s], shape (F,)
        velocity (np.ndarray): Mean velocity per frame and height, shape (F, H)
        intensity (np.ndarray): Turbulence intensity sqrt(|uu|)/U per frame and height, shape (F, H)
        height (np.ndarray): Heights [m], shape (H,)
    """

    def __init__(self, rows, time, velocity, intensity, height):
        self.rows = rows
        self.time = time
        self.velocity = velocity
        self.intensity = intensity
        self.height = height

    @property
    def num_frames(self) -> int:
        return self.time.shape[0]


class ProfileCalibration:
    """
    Fitted wind-speed and turbulence-intensity profile models.

    Attributes:
        z_ref (float): Reference height [m]
        U_ref (float): Velocity at the reference height [m/s]
        I_ref (float): Turbulence intensity at the reference height
        alpha (float): Power-law exponent of the velocity profile
        beta (float): Power-law exponent of the turbulence intensity profile
        u_star (float): Friction velocity of the log-law fit [m/s]
        z0 (float): Roughness length of the log-law fit [m]
        I_ref_iec (float): IEC 61400-1 reference turbulence intensity
        von_karman (float): Von Karman constant used for the log-law fit
        height, velocity, intensity (np.ndarray): The valid data points used for fitting
    """

    def __init__(self, z_ref, U_ref, I_ref, alpha, beta, u_star, z0, I_ref_iec,
                 von_karman, height, velocity, intensity):
        self.z_ref = z_ref
        self.U_ref = U_ref
        self.I_ref = I_ref
        self.alpha = alpha
        self.beta = beta
        self.u_star = u_star
        self.z0 = z0
        self.I_ref_iec = I_ref_iec
        self.von_karman = von_karman
        self.height = height
        self.velocity = velocity
        self.intensity = intensity

    def fitted_curves(self, n_points: int = 100):
        """
        Evaluate all fitted models on an even grid spanning the valid heights.

        Returns:
            Dict with keys `z`, `U_power`, `I_power`, `U_log`, `I_iec`.
        """
        z = np.linspace(np.min(self.height), np.max(self.height), n_points)
        U_local = np.interp(z, self.height, self.velocity)
        return {
            "z": z,
            "U_power": self.U_ref * (z / self.z_ref) ** self.alpha,
            "I_power": self.I_ref * (z / self.z_ref) ** self.beta,
            "U_log": (self.u_star / self.von_karman) * np.log(z / self.z0),
            "I_iec": self.I_ref_iec * (0.75 + 5.6 / U_local),
        }
