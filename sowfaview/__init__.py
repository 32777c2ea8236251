"""
sowfaview - Probe and ABL profile analysis for wind simulation output

This package reads probe time-series files written by the flow solver, computes
turbulence intensity under moving-average smoothing and power spectral densities,
and prepares vertical profiles of mean velocity and turbulence intensity from the
ABL solver statistics. Plotting and windowing are left to the viewer applications.
"""

import logging

from .exceptions import (
    SowfaViewError,
    FormatError,
    InvalidParameterError,
    DegenerateComputationWarning
)

from .structs import (
    ProbeDataset,
    AnalysisSession,
    SmoothedVelocity,
    ViewerParams,
    ABLProfiles,
    ProfileFrames,
    ProfileCalibration
)

from .fileio import (
    parse_probe_file,
    read_probe_header,
    save_probe_cache,
    save_locations,
    load_probe_cache,
    load_probe_locations,
    load_probe_data,
    resolve_locations,
    export_probe_locations_csv,
    export_velocity_data,
    load_abl_profiles
)

from .computations import (
    turbulence_intensity,
    moving_average,
    window_sample_count,
    filter_time_range,
    smooth_velocity,
    sweep_intervals,
    update_session_sweep,
    smooth_session,
    parse_interval_list,
    parse_time_range,
    parse_probe_id,
    nominal_time_step,
    location_bounds,
    nearest_probe
)

from .spectral import welch_psd, psd_axis_limits
from .profiles import profile_frames, height_time_series, calibrate_profile
from .playback import FramePlayer, RepeatingTimer

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
