"""
File input/output operations for the sowfaview package.
"""

import logging
import os
import re
import warnings
from typing import Callable, Dict, List, Optional, Tuple

import h5py
import numpy as np
import pandas as pd
from scipy import io as sio
from scipy.io.matlab import MatReadError

from .computations import (
    filter_time_range,
    mean_time_step,
    session_sweep,
    smooth_signal,
)
from .exceptions import FormatError
from .structs import ABLProfiles, AnalysisSession, ProbeDataset

logger = logging.getLogger(__name__)

CACHE_SUFFIXES = ('.h5', '.hdf5', '.mat')
_DELIMITERS = re.compile(r"[\s()]+")


# ---------------------------------------------------------------------------
# Probe text files
# ---------------------------------------------------------------------------

def _parse_location_line(line: str, lineno: int) -> Tuple[float, float, float]:
    """Extract the (x y z) triple between the first '(' and the first ')' of a header line."""
    start = line.find('(')
    end = line.find(')')
    if end < start:
        raise FormatError(f"line {lineno}: malformed probe location {line.strip()!r}")

    parts = line[start + 1:end].split()
    if len(parts) < 3:
        raise FormatError(f"line {lineno}: probe location needs three coordinates, got {line.strip()!r}")
    try:
        return float(parts[0]), float(parts[1]), float(parts[2])
    except ValueError:
        raise FormatError(f"line {lineno}: cannot parse probe location {line.strip()!r}")


def read_probe_header(path: str) -> Tuple[int, np.ndarray]:
    """
    Scan the comment header of a probe file.

    Args:
        path: Path to the probe text file.

    Returns:
        header_lines: Number of leading empty or '#' lines
        locations: Nx3 array of probe coordinates in declaration order

    Notes:
        - A header line declares a probe when it contains "Probe" together with a '(' and ')'.
        - All other '#' lines are ignored; the first line not starting with '#' ends the header.
    """
    header_lines = 0
    locations = []
    with _open_text(path) as f:
        try:
            for line in f:
                stripped = line.rstrip('\r\n')
                if stripped.strip() and not stripped.startswith('#'):
                    break
                header_lines += 1
                if 'Probe' in stripped and '(' in stripped and ')' in stripped:
                    locations.append(_parse_location_line(stripped, header_lines))
        except UnicodeDecodeError as e:
            raise FormatError(f"{path}: header is not valid UTF-8 text") from e
    return header_lines, np.array(locations, dtype=np.float64).reshape(-1, 3)


def _open_text(path: str):
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Cannot open file: {path}")
    try:
        return open(path, 'r', encoding='utf-8')
    except OSError as e:
        raise FormatError(f"Cannot open file: {path}") from e


def parse_probe_file(path: str, save_cache: bool = False, cache_path: Optional[str] = None) -> ProbeDataset:
    """
    Reads a probe time-series file written by the flow solver.

    Args:
        path: Path to the probe text file.
        save_cache: If True, also write the parsed arrays to an HDF5 cache artifact.
        cache_path: Cache file name; defaults to the probe file name with a `.h5` suffix.

    Returns:
        ProbeDataset with time (T,), locations (N, 3) and velocities (T, 3, N).

    Expected File Format:
        # Probe 0 (x y z)
        # Probe 1 (x y z)
        # ...
        #       Probe      0      1
        #        Time
        t  (u v w)  (u v w)
        ...

        Each data row holds the time followed by three velocity components per probe,
        i.e. 3N+1 numbers separated by whitespace and/or parentheses.

    Raises:
        FileNotFoundError: the file does not exist.
        FormatError: a location triple cannot be parsed, no probes are declared,
            or a data row does not hold 3N+1 numbers.
    """
    header_lines, locations = read_probe_header(path)
    num_probes = locations.shape[0]
    if num_probes == 0:
        raise FormatError(f"{path}: no probe location declarations found in the header")
    logger.info("Number of probes: %d", num_probes)

    ncols = 3 * num_probes + 1
    rows = []
    with _open_text(path) as f:
        try:
            for lineno, line in enumerate(f, start=1):
                if lineno <= header_lines:
                    continue
                tokens = [tok for tok in _DELIMITERS.split(line) if tok]
                if not tokens:
                    continue
                if len(tokens) != ncols:
                    raise FormatError(f"{path}, line {lineno}: expected {ncols} columns for "
                                      f"{num_probes} probes, found {len(tokens)}")
                try:
                    rows.append([float(tok) for tok in tokens])
                except ValueError:
                    raise FormatError(f"{path}, line {lineno}: non-numeric value in data row")
        except UnicodeDecodeError as e:
            raise FormatError(f"{path}: data rows are not valid UTF-8 text") from e

    data = np.array(rows, dtype=np.float64).reshape(-1, ncols)
    time = data[:, 0].copy()
    # columns 3i+1..3i+3 hold (u, v, w) of probe i
    velocities = data[:, 1:].reshape(-1, num_probes, 3).transpose(0, 2, 1).astype(np.float32)
    logger.info("Number of time steps: %d", time.shape[0])

    dataset = ProbeDataset(time, locations, velocities, source=path)

    if save_cache:
        if not cache_path:
            cache_path = os.path.splitext(path)[0] + '.h5'
        save_probe_cache(cache_path, dataset)

    return dataset


# ---------------------------------------------------------------------------
# Cache artifacts
# ---------------------------------------------------------------------------

def save_probe_cache(path: str, dataset: ProbeDataset) -> None:
    """
    Writes a parsed probe dataset to an HDF5 cache artifact.

    The file holds three datasets: `locations` (N x 3, float64), `time` (T, float64)
    and `velocities` (T x 3 x N, float32).
    """
    logger.info("Saving probe data to cache file: %s", path)
    with h5py.File(path, 'w') as h5:
        h5['locations'] = dataset.locations
        h5['time'] = dataset.time
        h5['velocities'] = dataset.velocities
    logger.info("  locations: %dx%d", *dataset.locations.shape)
    logger.info("  time: %d", dataset.time.shape[0])
    logger.info("  velocities: %dx%dx%d", *dataset.velocities.shape)


def save_locations(path: str, locations: np.ndarray, var_name: str = "locations") -> None:
    """Writes only a probe locations array to an HDF5 file under the given variable name."""
    if not var_name:
        raise FormatError("variable name for the locations array must not be empty")
    with h5py.File(path, 'w') as h5:
        h5[var_name] = np.asarray(locations, dtype=np.float64).reshape(-1, 3)


def read_container(path: str) -> Dict[str, np.ndarray]:
    """
    Reads all top-level numeric arrays from an HDF5 file or a MATLAB .mat file.

    HDF5 files (including MATLAB v7.3 files) are read with h5py; older MATLAB files
    are read with scipy.io.loadmat.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Cannot open file: {path}")

    is_hdf5 = h5py.is_hdf5(path)
    if not is_hdf5 and not path.lower().endswith('.mat'):
        raise FormatError(f"{path} is neither an HDF5 nor a MATLAB file")

    variables = {}
    try:
        if is_hdf5:
            with h5py.File(path, 'r') as h5:
                for name, item in h5.items():
                    if isinstance(item, h5py.Dataset):
                        variables[name] = item[()]
        else:
            for name, value in sio.loadmat(path).items():
                if not name.startswith('__'):
                    variables[name] = value
    except (OSError, ValueError, NotImplementedError, MatReadError) as e:
        raise FormatError(f"Cannot read cache file {path}: {e}") from e
    return variables


def _as_locations(value) -> Optional[np.ndarray]:
    """Return value as an Nx3 float array if it is a 2-D numeric array with a dimension of 3."""
    arr = np.asarray(value)
    if arr.ndim != 2 or not (np.issubdtype(arr.dtype, np.number) and not np.iscomplexobj(arr)):
        return None
    if arr.shape[1] == 3:
        return arr.astype(np.float64)
    if arr.shape[0] == 3:
        return arr.T.astype(np.float64)
    return None


def _resolve_requested(variables, requested):
    if requested and requested in variables:
        locations = _as_locations(variables[requested])
        if locations is None:
            logger.info("Variable \"%s\" is not an Nx3 locations array, skipping", requested)
            return None
        return requested, locations
    return None


def _resolve_default(variables, requested):
    if 'locations' in variables and requested != 'locations':
        locations = _as_locations(variables['locations'])
        if locations is not None:
            return 'locations', locations
    return None


def _resolve_scan(variables, requested):
    for name, value in variables.items():
        locations = _as_locations(value)
        if locations is not None:
            return name, locations
    return None


# Tried in order; the first strategy that returns a match wins.
LOCATION_RESOLVERS: List[Callable] = [_resolve_requested, _resolve_default, _resolve_scan]


def resolve_locations(variables: Dict[str, np.ndarray], requested: str = "locations") -> Tuple[str, np.ndarray]:
    """
    Find the probe locations array among the variables of a cache container.

    Tries the requested variable name, then `locations`, then the first numeric 2-D array
    with a dimension of size 3 (transposed to N x 3 if needed).

    Returns:
        (variable name, Nx3 locations)
    """
    for resolver in LOCATION_RESOLVERS:
        match = resolver(variables, requested)
        if match is not None:
            name, locations = match
            if name != requested:
                logger.info("Found locations in variable \"%s\"", name)
            return name, locations
    raise FormatError("Could not find locations data in cache file. Available variables: "
                      + ", ".join(variables.keys()))


def _fix_velocity_dimensions(velocities: np.ndarray, num_time: int, num_probes: int) -> np.ndarray:
    """Bring velocities into [time, component, probe] order."""
    expected_shape = (num_time, 3, num_probes)
    if velocities.shape == expected_shape:
        return velocities
    # MATLAB v7.3 files store arrays in column-major order: [probe, component, time]
    if velocities.shape == (num_probes, 3, num_time):
        warnings.warn(f"Transposing velocities from shape {velocities.shape} to {expected_shape}")
        return np.transpose(velocities, (2, 1, 0))
    raise FormatError(f"Cannot fix dimension mismatch for velocities: {velocities.shape} vs {expected_shape}")


def load_probe_cache(path: str, locations_var: str = "locations"):
    """
    Loads probe data from a cache artifact.

    Args:
        path: HDF5 or MATLAB file.
        locations_var: Preferred variable name of the locations array.

    Returns:
        (locations, time, velocities); time and velocities are None when the container
        holds only locations.
    """
    variables = read_container(path)
    _, locations = resolve_locations(variables, locations_var)

    time = velocities = None
    if 'time' in variables and 'velocities' in variables:
        time = np.asarray(variables['time'], dtype=np.float64).ravel()
        velocities = _fix_velocity_dimensions(np.asarray(variables['velocities'], dtype=np.float32),
                                              time.shape[0], locations.shape[0])
        logger.info("Loaded time and velocity data from %s", path)
    return locations, time, velocities


def load_probe_locations(path: str, locations_var: str = "locations") -> np.ndarray:
    """Loads only the Nx3 probe locations from a cache artifact or a probe text file."""
    if path.lower().endswith(CACHE_SUFFIXES):
        locations, _, _ = load_probe_cache(path, locations_var)
        return locations
    return read_probe_header(path)[1]


def load_probe_data(path: str, locations_var: str = "locations") -> ProbeDataset:
    """
    Loads a full probe dataset from either a cache artifact or a probe text file.

    Raises:
        FormatError: a cache artifact does not hold both `time` and `velocities`.
    """
    if path.lower().endswith(CACHE_SUFFIXES):
        locations, time, velocities = load_probe_cache(path, locations_var)
        if time is None:
            raise FormatError(f"Could not find time and velocities data in {path}")
        dataset = ProbeDataset(time, locations, velocities, source=path)
    else:
        dataset = parse_probe_file(path)
    logger.info("Data loaded successfully. Found %d probes.", dataset.num_probes)
    return dataset


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

def export_probe_locations_csv(path: str, locations: np.ndarray) -> None:
    """Writes probe locations as CSV with columns ProbeID,X,Y,Z (1-based IDs)."""
    locations = np.asarray(locations, dtype=np.float64).reshape(-1, 3)
    df = pd.DataFrame({
        'ProbeID': np.arange(1, locations.shape[0] + 1),
        'X': locations[:, 0],
        'Y': locations[:, 1],
        'Z': locations[:, 2],
    })
    df.to_csv(path, index=False, float_format='%.6f', lineterminator='\n')


def velocity_export_tables(dataset: ProbeDataset, session: AnalysisSession):
    """
    Build the tables written by export_velocity_data.

    Returns:
        raw: DataFrame with columns Time, U, V, W over the session time range
        averaged: List of (interval, DataFrame) with columns Time_<L>s, U_<L>s, V_<L>s, W_<L>s
        intensity: DataFrame with columns AveragingInterval, TurbulenceIntensity
    """
    time_filtered, raw = filter_time_range(dataset, session.probe_index, session.time_range)
    dt = mean_time_step(time_filtered)

    raw_table = pd.DataFrame({'Time': time_filtered, 'U': raw[:, 0], 'V': raw[:, 1], 'W': raw[:, 2]})

    averaged = []
    for interval in session.intervals:
        suffix = f"{interval:.1f}s"
        averaged.append((interval, pd.DataFrame({
            f"Time_{suffix}": time_filtered,
            f"U_{suffix}": smooth_signal(raw[:, 0], interval, dt),
            f"V_{suffix}": smooth_signal(raw[:, 1], interval, dt),
            f"W_{suffix}": smooth_signal(raw[:, 2], interval, dt),
        })))

    sweep = session_sweep(dataset, session)
    intensity = pd.DataFrame(sweep, columns=['AveragingInterval', 'TurbulenceIntensity'])
    return raw_table, averaged, intensity


def export_velocity_data(path: str, dataset: ProbeDataset, session: AnalysisSession) -> List[str]:
    """
    Writes raw and averaged velocity data of the session's probe.

    An `.xlsx` path produces one workbook with sheets RawData, Avg_<L>s per interval and
    TurbulenceIntensity. Any other path produces a CSV of the raw data plus a
    `<name>_turbulence.csv` file with the turbulence intensity table.

    Returns:
        List of the files written.
    """
    raw_table, averaged, intensity = velocity_export_tables(dataset, session)

    if path.lower().endswith('.xlsx'):
        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            raw_table.to_excel(writer, sheet_name='RawData', index=False)
            for interval, table in averaged:
                table.to_excel(writer, sheet_name=f"Avg_{interval:.1f}s", index=False)
            intensity.to_excel(writer, sheet_name='TurbulenceIntensity', index=False)
        written = [path]
    else:
        ti_path = os.path.splitext(path)[0] + '_turbulence.csv'
        raw_table.to_csv(path, index=False)
        intensity.to_csv(ti_path, index=False)
        written = [path, ti_path]

    logger.info("Data saved to: %s", ", ".join(written))
    return written


# ---------------------------------------------------------------------------
# ABL solver statistics
# ---------------------------------------------------------------------------

def load_abl_profiles(folder: str) -> ABLProfiles:
    """
    Loads planar-averaged ABL statistics from a solver output folder.

    Args:
        folder: Directory containing the `U_mean`, `uu_mean` and `hLevelsCell` files.

    Returns:
        ABLProfiles object.

    Expected Files:
        - `U_mean`, `uu_mean`: whitespace-delimited rows of [time, dt, value at each level]
        - `hLevelsCell`: whitespace-delimited rows; the first row lists the level heights
    """
    if not os.path.isdir(folder):
        raise FileNotFoundError(f"The specified data folder does not exist: {folder}")

    arrays = {}
    for name in ('U_mean', 'uu_mean', 'hLevelsCell'):
        file = os.path.join(folder, name)
        if not os.path.isfile(file):
            raise FileNotFoundError(f"{name} file not found in: {folder}")
        try:
            arrays[name] = np.loadtxt(file, ndmin=2)
        except ValueError as e:
            raise FormatError(f"Cannot parse {file}: {e}") from e

    U_mean = arrays['U_mean']
    uu_mean = arrays['uu_mean']
    height = arrays['hLevelsCell'][0, :]

    if U_mean.shape != uu_mean.shape:
        raise FormatError(f"U_mean {U_mean.shape} and uu_mean {uu_mean.shape} shapes differ")
    if U_mean.shape[1] - 2 != height.shape[0]:
        raise FormatError(f"U_mean holds {U_mean.shape[1] - 2} levels but hLevelsCell lists {height.shape[0]}")

    return ABLProfiles(U_mean, uu_mean, height, source=folder)

