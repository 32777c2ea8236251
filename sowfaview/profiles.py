"""
Vertical profiles of mean velocity and turbulence intensity from ABL solver statistics.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from .exceptions import InvalidParameterError
from .structs import ABLProfiles, ProfileCalibration, ProfileFrames

logger = logging.getLogger(__name__)


def profile_frames(profiles: ABLProfiles, step: int = 500) -> ProfileFrames:
    """
    Sample the ABL statistics every `step` rows.

    For each sampled row the velocity profile is U(z) and the turbulence intensity
    profile is Ix(z) = sqrt(|uu(z)|) / U(z).

    Args:
        profiles: Loaded ABL statistics.
        step: Number of rows between consecutive frames (positive integer).

    Returns:
        ProfileFrames with one frame per sampled row, starting at the first row.
    """
    if isinstance(step, bool) or int(step) != step or step <= 0:
        raise InvalidParameterError(f"step size must be a positive integer, got {step!r}")
    step = int(step)

    rows = np.arange(0, profiles.num_rows, step)
    if rows.size == 0:
        raise InvalidParameterError("step size too large, no frames to display")
    logger.info("Using step %d: %d of %d rows", step, rows.size, profiles.num_rows)

    velocity = profiles.U_mean[rows, 2:]
    uu = profiles.uu_mean[rows, 2:]
    with np.errstate(divide='ignore', invalid='ignore'):
        intensity = np.sqrt(np.abs(uu)) / velocity
    time = profiles.U_mean[rows, 0]

    return ProfileFrames(rows, time, velocity, intensity, profiles.height)


def _sorted_by_height(height, *columns):
    order = np.argsort(height)
    return (height[order],) + tuple(np.asarray(c)[..., order] for c in columns)


def height_time_series(frames: ProfileFrames, target_height: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Velocity and turbulence intensity at one height through all frames.

    Values are linearly interpolated between the two nearest levels.

    Returns:
        (time, velocity, intensity), each of shape (F,)
    """
    target_height = float(target_height)
    hmin, hmax = float(np.min(frames.height)), float(np.max(frames.height))
    if np.isnan(target_height) or target_height < hmin or target_height > hmax:
        raise InvalidParameterError(f"Height must be between {hmin:.2f} and {hmax:.2f} m")

    height, velocity, intensity = _sorted_by_height(frames.height, frames.velocity, frames.intensity)
    velocity_ts = np.array([np.interp(target_height, height, row) for row in velocity])
    intensity_ts = np.array([np.interp(target_height, height, row) for row in intensity])
    return frames.time, velocity_ts, intensity_ts


def calibrate_profile(velocity: np.ndarray,
                      intensity: np.ndarray,
                      height: np.ndarray,
                      z_ref: float = 90.0,
                      z0: Optional[float] = None,
                      von_karman: float = 0.4) -> ProfileCalibration:
    """
    Fit wind-speed and turbulence-intensity profile models to one frame.

    Models:
        - Power law: U(z) = U_ref (z/z_ref)^alpha and I(z) = I_ref (z/z_ref)^beta,
          exponents from least squares through the origin in log space.
        - Log law: U(z) = (u*/k) ln(z/z0). With z0 None both u* and z0 are fitted by
          linear regression of U on ln(z); otherwise u* = mean(k U / ln(z/z0)).
        - IEC 61400-1: I(z) = I_ref_iec (0.75 + 5.6/U), I_ref_iec by least squares.

    Only points with positive velocity, intensity and height are used.

    Args:
        velocity: Mean velocity per level [m/s].
        intensity: Turbulence intensity per level.
        height: Level heights [m].
        z_ref: Reference height [m]; must lie within the valid heights.
        z0: Roughness length [m]; fitted when None.
        von_karman: Von Karman constant.

    Returns:
        ProfileCalibration holding the fitted parameters.
    """
    velocity = np.asarray(velocity, dtype=np.float64).ravel()
    intensity = np.asarray(intensity, dtype=np.float64).ravel()
    height = np.asarray(height, dtype=np.float64).ravel()

    valid = (velocity > 0) & (intensity > 0) & (height > 0)
    if not np.any(valid):
        raise InvalidParameterError("No valid data points found for fitting")
    height, velocity, intensity = _sorted_by_height(height[valid], velocity[valid], intensity[valid])

    z_ref = float(z_ref)
    if np.isnan(z_ref) or z_ref < height[0] or z_ref > height[-1]:
        raise InvalidParameterError(
            f"Reference height must be between {height[0]:.2f} and {height[-1]:.2f} m")

    U_ref = float(np.interp(z_ref, height, velocity))
    I_ref = float(np.interp(z_ref, height, intensity))

    log_h = np.log(height / z_ref)
    alpha = float(np.dot(log_h, np.log(velocity / U_ref)) / np.dot(log_h, log_h))
    beta = float(np.dot(log_h, np.log(intensity / I_ref)) / np.dot(log_h, log_h))

    if z0 is None:
        X = np.column_stack([np.ones_like(height), np.log(height)])
        (b, a), *_ = np.linalg.lstsq(X, velocity, rcond=None)
        u_star = float(von_karman * a)
        z0 = float(np.exp(-b / a))
    else:
        z0 = float(z0)
        if not z0 > 0:
            raise InvalidParameterError("Roughness length must be positive")
        u_star = float(np.mean(von_karman * velocity / np.log(height / z0)))

    p = 0.75 + 5.6 / velocity
    I_ref_iec = float(np.dot(p, intensity) / np.dot(p, p))

    logger.info("Calibration at z_ref=%.1f m: alpha=%.3f, beta=%.3f, u*=%.3f m/s, z0=%.4g m, I_ref(IEC)=%.3f",
                z_ref, alpha, beta, u_star, z0, I_ref_iec)

    return ProfileCalibration(z_ref, U_ref, I_ref, alpha, beta, u_star, z0, I_ref_iec,
                              von_karman, height, velocity, intensity)
