"""
Shared fixtures: synthetic track folders in the PARSEC file layout
"""

import numpy as np
import pytest

from starverses.parsec import reset_catalog
from starverses.parsec.data import MASS_GRID, TrajectoryCatalog

SOLAR_RADIUS_CM = 6.957e10
HEADER = "MODELL MASS AGE LOG_L LOG_TE LOG_R PHASE"


def write_track(folder, name, rows, header=HEADER):
    """
    Write one track file. Each row is (mass, age, log_l, log_te, log_r) or a
    raw string written as is.
    """
    folder.mkdir(parents=True, exist_ok=True)
    lines = [header] if header else []
    for model, row in enumerate(rows):
        if isinstance(row, str):
            lines.append(row)
        else:
            mass, age, log_l, log_te, log_r = row
            lines.append(
                f"{model} {mass:.5f} {age:.6e} {log_l:.4f} {log_te:.4f} {log_r:.4f} 0.0"
            )
    path = folder / name
    path.write_text("\n".join(lines) + "\n")
    return path


def synthetic_track(initial_mass, n_rows=20):
    """
    Rough main sequence scaling relations, good enough to exercise the code
    """
    lifetime = 1e10 * initial_mass**-2.5
    ages = np.linspace(0.0, lifetime, n_rows)
    rows = []
    for i, age in enumerate(ages):
        progress = i / (n_rows - 1)
        mass = initial_mass * (1 - 0.02 * progress)
        log_l = 3.5 * np.log10(initial_mass) + 0.3 * progress
        log_te = np.log10(5772 * initial_mass**0.5)
        log_r = np.log10(SOLAR_RADIUS_CM * initial_mass**0.8) + 0.1 * progress
        rows.append((mass, age, log_l, log_te, log_r))
    return rows


@pytest.fixture(scope="session")
def full_track_folder(tmp_path_factory):
    folder = tmp_path_factory.mktemp("parsec") / "Z0.01"
    for mass in MASS_GRID:
        write_track(folder, f"Z0.01Y0.267_M{mass:07.3f}.DAT", synthetic_track(mass))
    return folder


@pytest.fixture(scope="session")
def catalog(full_track_folder):
    return TrajectoryCatalog.from_folder(full_track_folder)


@pytest.fixture(autouse=True)
def fresh_shared_catalog():
    reset_catalog()
    yield
    reset_catalog()
