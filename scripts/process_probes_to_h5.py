# process_probes_to_h5.py
"""
Convert probe time-series files to HDF5 cache files and print a turbulence summary.

Usage:
    python process_probes_to_h5.py [probe_file ...]

Without arguments every file in `probe_folder` is converted.
"""
import os
import sys
import logging

import sowfaview

# ------------------------ config / knobs ------------------------
localpath = os.path.dirname(os.path.abspath(__file__))
probe_folder = os.path.join(localpath, "../postProcessing", "probes")
skip_existing = True


def probe_files_in(directory: str):
    """List candidate probe files (everything that is not already a cache file)."""
    if not os.path.isdir(directory):
        return []
    fs = [os.path.join(directory, f) for f in os.listdir(directory)]
    return sorted(f for f in fs if os.path.isfile(f) and not f.lower().endswith(sowfaview.fileio.CACHE_SUFFIXES))


def convert(path: str):
    h5_path = os.path.splitext(path)[0] + ".h5"
    if skip_existing and os.path.isfile(h5_path):
        print(f"Skipping {path}, {h5_path} already exists.")
        return None

    try:
        data = sowfaview.parse_probe_file(path, save_cache=True, cache_path=h5_path)
    except (sowfaview.FormatError, OSError) as e:
        print(f"Warning: Skipping {path}: {e}")
        return None

    print(f"{os.path.basename(path)}: {data.num_probes} probes, {data.num_time_steps} time steps -> {h5_path}")
    for probe_id in range(1, data.num_probes + 1):
        u = data.probe_velocity(probe_id)[:, 0]
        x, y, z = data.locations[probe_id - 1]
        print(f"  probe {probe_id:4d} ({x:10.3f} {y:10.3f} {z:10.3f})  "
              f"Iu = {sowfaview.turbulence_intensity(u):6.2f} %")
    return h5_path


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    files = sys.argv[1:] or probe_files_in(probe_folder)
    if not files:
        print(f"No probe files given and none found in {probe_folder}")
    for file in files:
        convert(file)
