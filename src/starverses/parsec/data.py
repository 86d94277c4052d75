"""Evolutionary tracks from the PARSEC stellar evolution code.

Every track file holds the evolution of one nominal initial mass. Tracks are
filed under the closest mass of a fixed grid and looked up by (mass, age).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import astropy.units as u
import dill
import numpy as np
import pandas as pd
from tqdm import tqdm

import starverses.util.misc as misc
from starverses.base.star import Z_DIRECTION, Star
from starverses.errors import DataUnavailable, IoFailure
from starverses.evolution import StarDataEvolution, StarDataLifestageEvolution, StarFate
from starverses.parsec.download import METALLICITY, ensure_files, get_data_path

logger = logging.getLogger(__name__)

# Initial masses of the tracks, in solar masses
MASS_GRID = np.array(
    [
        0.09, 0.10, 0.12, 0.14, 0.16, 0.20, 0.25, 0.30, 0.35, 0.40,
        0.45, 0.50, 0.55, 0.60, 0.65, 0.70, 0.75, 0.80, 0.85, 0.90,
        0.95, 1.00, 1.05, 1.10, 1.15, 1.20, 1.25, 1.30, 1.35, 1.40,
        1.45, 1.50, 1.55, 1.60, 1.65, 1.70, 1.75, 1.80, 1.85, 1.90,
        1.95, 2.00, 2.05, 2.10, 2.15, 2.20, 2.25, 2.30, 2.40, 2.60,
        2.80, 3.00, 3.20, 3.40, 3.60, 3.80, 4.00, 4.20, 4.40, 4.60,
        4.80, 5.00, 5.20, 5.40, 5.60, 5.80, 6.00, 6.20, 6.40, 7.00,
        8.00, 9.00, 10.0, 12.0, 14.0, 16.0, 18.0, 20.0, 24.0, 28.0,
        30.0, 35.0, 40.0, 45.0, 50.0, 55.0, 60.0, 65.0, 70.0, 75.0,
        80.0, 90.0, 95.0, 100.0, 120.0, 130.0, 200.0, 250.0, 300.0, 350.0,
    ]
)  # fmt: skip
MASS_GRID.flags.writeable = False

# Column positions in the track files
MASS_INDEX = 1
AGE_INDEX = 2
LOG_L_INDEX = 3
LOG_TE_INDEX = 4
LOG_R_INDEX = 5
COLUMNS = ["mass", "age", "log_l", "log_te", "log_r"]

# PARSEC writes log10 of the radius in cm
RADIUS_UNIT = u.cm


def closest_mass_index(mass):
    """
    Index of the grid mass nearest to the given mass
    Args:
        mass (float or astropy Quantity):
            Mass, in solar masses when unitless
    Returns:
        int:
            Index into MASS_GRID
    """
    if isinstance(mass, u.Quantity):
        mass = mass.to_value(u.M_sun)
    min_index = 0
    max_index = len(MASS_GRID) - 1
    while max_index - min_index > 1:
        mid_index = (max_index + min_index) // 2
        if mass > MASS_GRID[mid_index]:
            min_index = mid_index
        else:
            max_index = mid_index
    if abs(mass - MASS_GRID[min_index]) < abs(mass - MASS_GRID[max_index]):
        return min_index
    return max_index


@dataclass(frozen=True)
class Snapshot:
    """One row of a track: a star of one initial mass at one age."""

    mass: float  # current mass [M_sun]
    age: float  # [yr]
    log_l: float  # log10(L / L_sun)
    log_te: float  # log10(T_eff / K)
    log_r: float  # log10(R / RADIUS_UNIT)

    @property
    def mass_quantity(self):
        return self.mass * u.M_sun

    @property
    def age_quantity(self):
        return self.age * u.yr

    @property
    def luminosity(self):
        return 10**self.log_l * u.L_sun

    @property
    def temperature(self):
        return 10**self.log_te * u.K

    @property
    def radius(self):
        return (10**self.log_r * RADIUS_UNIT).to(u.R_sun)

    def apparent_magnitude(self, distance):
        return misc.absolute_to_apparent_magnitude(
            misc.luminosity_to_absolute_magnitude(self.luminosity), distance
        )

    def illuminance(self, distance):
        return misc.luminosity_to_illuminance(self.luminosity, distance)

    def to_star(
        self, distance=0 * u.lyr, direction=Z_DIRECTION, evolution=None
    ) -> Star:
        return Star(
            mass=self.mass_quantity,
            age=self.age_quantity,
            luminosity=self.luminosity,
            temperature=self.temperature,
            radius=self.radius,
            distance=distance,
            direction=direction,
            evolution=StarDataEvolution.NONE if evolution is None else evolution,
        )


class Trajectory:
    """
    Snapshots of one grid mass in file order (ascending age as written by
    PARSEC, not enforced). May be empty when no track file maps to the mass.
    """

    def __init__(self, table=None):
        if table is None:
            table = pd.DataFrame({column: [] for column in COLUMNS}, dtype=float)
        self.table = table[COLUMNS].astype(float).reset_index(drop=True)
        self._values = self.table.to_numpy(copy=True)
        self._values.flags.writeable = False

        # Stable ordering by age for vectorised nearest-age lookups
        self._order = np.argsort(self.ages, kind="stable")
        self._sorted_ages = self.ages[self._order]

    def __repr__(self):
        if self.is_empty:
            return f"{type(self).__name__}(empty)"
        return (
            f"{type(self).__name__}(initial mass {self.initial_mass} M_sun, "
            f"{len(self)} snapshots up to {self.ages[-1]:.3g} yr)"
        )

    def __len__(self):
        return len(self._values)

    def __getitem__(self, index) -> Snapshot:
        return Snapshot(*self._values[index])

    def __iter__(self):
        for row in self._values:
            yield Snapshot(*row)

    @property
    def is_empty(self):
        return len(self._values) == 0

    @property
    def ages(self):
        return self._values[:, 1]

    @property
    def log_luminosities(self):
        return self._values[:, 2]

    @property
    def initial_mass(self):
        return self._values[0, 0]


def closest_snapshot(trajectory, target_age) -> Snapshot:
    """
    Snapshot whose age is nearest to target_age, the earliest one in file
    order on ties
    """
    return trajectory[closest_age_index(trajectory, target_age)]


def closest_age_index(trajectory, target_age):
    if trajectory.is_empty:
        raise ValueError("Cannot look up an age in an empty trajectory")
    return int(np.argmin(np.abs(trajectory.ages - target_age)))


def closest_age_indices(trajectory, ages):
    """
    Vectorised closest_age_index with the same tie-breaking
    Args:
        trajectory (Trajectory):
            Non-empty trajectory
        ages (np.array):
            Target ages in years
    Returns:
        np.array:
            Snapshot indices, same shape as ages
    """
    if trajectory.is_empty:
        raise ValueError("Cannot look up an age in an empty trajectory")
    ages = np.asarray(ages, dtype=float)
    sorted_ages = trajectory._sorted_ages
    order = trajectory._order
    last = len(sorted_ages) - 1

    position = np.searchsorted(sorted_ages, ages)
    right = np.clip(position, 0, last)
    left = np.clip(position - 1, 0, last)
    # First of any run of equal ages, which is the earliest in file order
    left = np.searchsorted(sorted_ages, sorted_ages[left])

    left_distance = np.abs(ages - sorted_ages[left])
    right_distance = np.abs(sorted_ages[right] - ages)
    choose_left = (left_distance < right_distance) | (
        (left_distance == right_distance) & (order[left] <= order[right])
    )
    return np.where(choose_left, order[left], order[right])


def life_expectancy_years(trajectory):
    """Age of the last snapshot, the track's estimate of the star's lifetime."""
    if trajectory.is_empty:
        raise ValueError("An empty trajectory has no life expectancy")
    return float(trajectory.ages[-1])


def read_file(file_path):
    """
    Parse one track file
    Args:
        file_path (Path):
            Whitespace separated track file
    Returns:
        mass_position (int or None):
            Grid slot of the file, None when no row carries a readable mass
        table (pandas.DataFrame):
            Rows with all five fields readable
    """
    mass_position = None
    rows = []
    with open(file_path) as f:
        for line_number, line in enumerate(f, 1):
            entries = line.split()
            if not entries:
                continue
            if len(entries) <= MASS_INDEX:
                raise DataUnavailable(f"{file_path}:{line_number} has no mass column")
            if mass_position is None:
                try:
                    mass_value = float(entries[MASS_INDEX])
                except ValueError:
                    continue
                if not np.isfinite(mass_value):
                    continue
                mass_position = closest_mass_index(mass_value)
            if len(entries) <= LOG_R_INDEX:
                raise DataUnavailable(
                    f"{file_path}:{line_number} has {len(entries)} columns, "
                    f"expected at least {LOG_R_INDEX + 1}"
                )
            rows.append(entries[MASS_INDEX : LOG_R_INDEX + 1])

    if mass_position is None:
        return None, None
    table = pd.DataFrame(rows, columns=COLUMNS)
    table = table.apply(pd.to_numeric, errors="coerce").dropna()
    return mass_position, table


class TrajectoryCatalog:
    """
    One trajectory per grid mass. Read-only once built.
    """

    def __init__(self, trajectories, metallicity=METALLICITY):
        trajectories = tuple(trajectories)
        if len(trajectories) != len(MASS_GRID):
            raise ValueError(
                f"Expected {len(MASS_GRID)} trajectories, got {len(trajectories)}"
            )
        self._trajectories = trajectories
        self.metallicity = metallicity

    def __repr__(self):
        filled = sum(not trajectory.is_empty for trajectory in self._trajectories)
        return (
            f"{type(self).__name__} {self.metallicity}\n"
            f"{filled} of {len(self)} mass slots filled"
        )

    def __len__(self):
        return len(self._trajectories)

    @classmethod
    def build(cls, data_path=None, metallicity=METALLICITY, download=True, cache=False):
        """
        Load the tracks of one metallicity, fetching them first if allowed
        Args:
            data_path (str or Path):
                Directory holding the track folders, see get_data_path
            metallicity (str):
                Name of the track folder, e.g. "Z0.01"
            download (bool):
                Fetch the tracks when the folder is missing
            cache (bool):
                Reuse (or write) a dill pickle of the parsed catalog
        Returns:
            TrajectoryCatalog
        """
        data_path = get_data_path(data_path)
        folder = Path(data_path, metallicity)
        if download:
            folder = ensure_files(data_path, metallicity)

        if cache:
            cache_file = Path(data_path, ".cache", f"{metallicity}.p")
            if cache_file.exists():
                with open(cache_file, "rb") as f:
                    return dill.load(f)
            catalog = cls.from_folder(folder, metallicity)
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(cache_file, "wb") as f:
                dill.dump(catalog, f)
            return catalog
        return cls.from_folder(folder, metallicity)

    @classmethod
    def from_folder(cls, folder, metallicity=METALLICITY):
        folder = Path(folder)
        try:
            track_files = sorted(path for path in folder.iterdir() if path.is_file())
        except FileNotFoundError as err:
            raise DataUnavailable(f"Track folder {folder} does not exist") from err
        except NotADirectoryError as err:
            raise DataUnavailable(f"Track folder {folder} is not a directory") from err
        except PermissionError as err:
            raise DataUnavailable(f"Track folder {folder} is not readable") from err
        except OSError as err:
            raise IoFailure(f"Could not list {folder}: {err}") from err

        slot_tables = [[] for _ in MASS_GRID]
        for track_file in tqdm(
            track_files, desc="Loading tracks", position=0, leave=False
        ):
            try:
                mass_position, table = read_file(track_file)
            except UnicodeDecodeError as err:
                raise DataUnavailable(f"{track_file} is not a text file") from err
            except OSError as err:
                raise IoFailure(f"Could not read {track_file}: {err}") from err
            if mass_position is not None:
                slot_tables[mass_position].append(table)

        trajectories = [
            Trajectory(pd.concat(tables, ignore_index=True)) if tables else Trajectory()
            for tables in slot_tables
        ]
        catalog = cls(trajectories, metallicity)
        logger.info(
            "Loaded %d track files from %s into %d mass slots",
            len(track_files),
            folder,
            sum(not trajectory.is_empty for trajectory in trajectories),
        )
        return catalog

    def trajectory(self, index) -> Trajectory:
        if not 0 <= index < len(self._trajectories):
            raise IndexError(f"Mass index {index} outside of the mass grid")
        return self._trajectories[index]

    def closest_trajectory(self, mass) -> Trajectory:
        return self.trajectory(closest_mass_index(mass))

    def _locate(self, mass, age):
        if isinstance(mass, u.Quantity):
            mass = mass.to_value(u.M_sun)
        if isinstance(age, u.Quantity):
            age = age.to_value(u.yr)
        mass_index = closest_mass_index(mass)
        trajectory = self.trajectory(mass_index)
        snapshot = closest_snapshot(trajectory, age)
        while snapshot.mass < mass and mass_index < len(MASS_GRID) - 1:
            mass_index += 1
            if not self._trajectories[mass_index].is_empty:
                trajectory = self._trajectories[mass_index]
                snapshot = closest_snapshot(trajectory, age)
        return trajectory, snapshot

    def snapshot_for(self, mass, age) -> Snapshot:
        """
        Snapshot for a star of the given current mass and age. Tracks lose
        mass, so the grid is walked upwards while the snapshot is lighter than
        the requested mass.
        """
        return self._locate(mass, age)[1]

    def evolution_for(self, trajectory, age) -> StarDataEvolution:
        """
        Evolution of a star on the given trajectory at the given age, with
        rates from the nearest snapshot and its neighbour
        """
        if isinstance(age, u.Quantity):
            age = age.to_value(u.yr)
        index = closest_age_index(trajectory, age)
        now = trajectory[index]
        lifestage_evolution = None
        if len(trajectory) > 1:
            if index > 0:
                later, earlier = now, trajectory[index - 1]
            else:
                later, earlier = trajectory[index + 1], now
            if later.age != earlier.age:
                lifestage_evolution = StarDataLifestageEvolution.from_snapshots(
                    later, earlier
                )
        return StarDataEvolution(
            lifestage_evolution=lifestage_evolution,
            age=now.age_quantity,
            lifetime=life_expectancy_years(trajectory) * u.yr,
            fate=StarFate.from_mass(trajectory.initial_mass * u.M_sun),
        )

    def star_for(self, mass, age, distance=0 * u.lyr, direction=Z_DIRECTION) -> Star:
        """Star of the given mass and age with its evolution attached."""
        trajectory, snapshot = self._locate(mass, age)
        return snapshot.to_star(
            distance=distance,
            direction=direction,
            evolution=self.evolution_for(trajectory, snapshot.age),
        )
