import threading
import time

import astropy.units as u
import numpy as np
import pandas as pd
import pytest
from conftest import write_track

from starverses.errors import ConcurrencyPoisoned, DataUnavailable
from starverses.evolution import StarFate
from starverses.parsec import catalog as shared
from starverses.parsec.data import (
    COLUMNS,
    MASS_GRID,
    Trajectory,
    TrajectoryCatalog,
    closest_age_indices,
    closest_mass_index,
    closest_snapshot,
    life_expectancy_years,
)

SMALL_OFFSET = 1e-4


def trajectory_from_ages(ages):
    table = pd.DataFrame(
        {
            "mass": np.ones(len(ages)),
            "age": ages,
            "log_l": np.arange(len(ages), dtype=float),
            "log_te": np.full(len(ages), 3.76),
            "log_r": np.full(len(ages), 10.84),
        }
    )
    return Trajectory(table[COLUMNS])


def test_mass_grid_is_strictly_increasing_and_frozen():
    assert len(MASS_GRID) == 100
    assert np.all(np.diff(MASS_GRID) > 0)
    with pytest.raises(ValueError):
        MASS_GRID[0] = 1.0


def test_masses_are_mapped_to_themselves():
    for index, mass in enumerate(MASS_GRID):
        assert closest_mass_index(mass) == index
        assert closest_mass_index(mass + SMALL_OFFSET) == index
        assert closest_mass_index(mass - SMALL_OFFSET) == index


def test_equidistant_mass_goes_to_upper_neighbour():
    eight = int(np.flatnonzero(MASS_GRID == 8.0)[0])
    assert closest_mass_index(8.5) == eight + 1
    twelve = int(np.flatnonzero(MASS_GRID == 12.0)[0])
    assert closest_mass_index(13.0) == twelve + 1


def test_masses_outside_the_grid_clamp_to_the_ends():
    assert closest_mass_index(0.01) == 0
    assert closest_mass_index(1000.0) == len(MASS_GRID) - 1


def test_closest_mass_index_accepts_quantities():
    solar = int(np.flatnonzero(MASS_GRID == 1.0)[0])
    assert closest_mass_index(1 * u.M_sun) == solar
    assert closest_mass_index(1.98840987e30 * u.kg) == solar


def test_files_are_filed_under_their_first_mass(tmp_path):
    folder = tmp_path / "Z0.01"
    rows = [
        (1.02, 0.0, 0.0, 3.76, 10.84),
        (1.01, 1e9, 0.1, 3.76, 10.85),
        (0.99, 2e9, 0.2, 3.75, 10.86),
    ]
    write_track(folder, "track_M1.02.DAT", rows)
    catalog = TrajectoryCatalog.from_folder(folder)

    solar = closest_mass_index(1.0)
    trajectory = catalog.trajectory(solar)
    assert len(trajectory) == 3
    assert trajectory[2].mass == pytest.approx(0.99)
    assert sum(not catalog.trajectory(i).is_empty for i in range(len(catalog))) == 1


def test_rows_with_unparsable_numbers_are_skipped(tmp_path):
    folder = tmp_path / "Z0.01"
    rows = [
        (2.0, 0.0, 1.0, 3.95, 11.0),
        "1 2.00000 not-an-age 1.1 3.95 11.0 0.0",
        "# comment 1.0 2.0 3.0 4.0",
        (2.0, 2e8, 1.2, 3.94, 11.1),
    ]
    write_track(folder, "track_M2.00.DAT", rows)
    trajectory = TrajectoryCatalog.from_folder(folder).closest_trajectory(2.0)
    assert list(trajectory.ages) == [0.0, 2e8]


def test_rows_missing_columns_are_an_error(tmp_path):
    folder = tmp_path / "Z0.01"
    rows = [(2.0, 0.0, 1.0, 3.95, 11.0), "2 2.0 1e8 1.1"]
    write_track(folder, "track_M2.00.DAT", rows)
    with pytest.raises(DataUnavailable):
        TrajectoryCatalog.from_folder(folder)


def test_rows_without_mass_column_are_an_error(tmp_path):
    folder = tmp_path / "Z0.01"
    write_track(folder, "broken.DAT", ["lonely"], header=None)
    with pytest.raises(DataUnavailable):
        TrajectoryCatalog.from_folder(folder)


def test_missing_folder_is_data_unavailable(tmp_path):
    with pytest.raises(DataUnavailable):
        TrajectoryCatalog.from_folder(tmp_path / "Z0.01")
    with pytest.raises(DataUnavailable):
        TrajectoryCatalog.build(tmp_path, download=False)


def test_file_in_place_of_folder_is_data_unavailable(tmp_path):
    (tmp_path / "Z0.01").write_text("not a folder\n")
    with pytest.raises(DataUnavailable):
        TrajectoryCatalog.from_folder(tmp_path / "Z0.01")
    with pytest.raises(DataUnavailable):
        TrajectoryCatalog.build(tmp_path, download=False)


def test_trajectory_index_out_of_range(catalog):
    with pytest.raises(IndexError):
        catalog.trajectory(len(MASS_GRID))
    with pytest.raises(IndexError):
        catalog.trajectory(-1)


def test_every_grid_mass_has_a_trajectory(catalog):
    for index, mass in enumerate(MASS_GRID):
        trajectory = catalog.trajectory(index)
        assert not trajectory.is_empty
        assert trajectory.initial_mass == pytest.approx(mass)


def test_closest_snapshot_prefers_the_first_on_ties():
    trajectory = trajectory_from_ages([0.0, 10.0, 20.0])
    assert closest_snapshot(trajectory, 5.0).age == 0.0
    assert closest_snapshot(trajectory, 15.0).age == 10.0
    assert closest_snapshot(trajectory, 16.0).age == 20.0
    assert closest_snapshot(trajectory, 1e12).age == 20.0


def test_closest_snapshot_on_empty_trajectory_raises():
    with pytest.raises(ValueError):
        closest_snapshot(Trajectory(), 1.0)


def test_vectorised_lookup_matches_linear_scan():
    trajectory = trajectory_from_ages([30.0, 10.0, 20.0, 10.0, 0.0])
    targets = np.array([-1.0, 0.0, 5.0, 10.0, 12.0, 15.0, 25.0, 30.0, 100.0])
    expected = [int(np.argmin(np.abs(trajectory.ages - age))) for age in targets]
    assert list(closest_age_indices(trajectory, targets)) == expected


def test_life_expectancy_is_age_of_last_snapshot():
    trajectory = trajectory_from_ages([0.0, 1e9, 9.5e9])
    assert life_expectancy_years(trajectory) == 9.5e9


def test_snapshot_properties_carry_units():
    snapshot = trajectory_from_ages([0.0])[0]
    assert snapshot.luminosity.unit == u.L_sun
    assert snapshot.temperature.to_value(u.K) == pytest.approx(10**3.76)
    assert snapshot.radius.to_value(u.R_sun) == pytest.approx(1.0, rel=0.01)


def test_snapshot_for_walks_up_when_tracks_lost_mass(tmp_path):
    folder = tmp_path / "Z0.01"
    write_track(folder, "a.DAT", [(1.0, 0.0, 0.0, 3.76, 10.84), (0.9, 1e10, 0.5, 3.7, 11.0)])
    write_track(folder, "b.DAT", [(1.05, 0.0, 0.1, 3.77, 10.85), (1.04, 1e10, 0.2, 3.77, 10.9)])
    catalog = TrajectoryCatalog.from_folder(folder)

    snapshot = catalog.snapshot_for(1.0 * u.M_sun, 1e10 * u.yr)
    assert snapshot.mass == pytest.approx(1.04)


def test_evolution_for_uses_neighbouring_snapshots(catalog):
    trajectory = catalog.closest_trajectory(10.0)
    snapshot = trajectory[5]
    evolution = catalog.evolution_for(trajectory, snapshot.age)

    previous = trajectory[4]
    years = snapshot.age - previous.age
    expected_rate = (snapshot.luminosity - previous.luminosity) / (years * u.yr)
    rate = evolution.lifestage_luminous_intensity_per_year
    assert rate.to_value(u.L_sun / u.yr) == pytest.approx(
        expected_rate.to_value(u.L_sun / u.yr)
    )
    assert rate > 0 * u.L_sun / u.yr
    assert evolution.lifetime.to_value(u.yr) == life_expectancy_years(trajectory)
    assert evolution.age.to_value(u.yr) == snapshot.age
    assert evolution.fate is StarFate.TYPE_II_SUPERNOVA


def test_star_for_attaches_evolution(catalog):
    star = catalog.star_for(1.0 * u.M_sun, 1e9 * u.yr)
    assert star.distance == 0 * u.lyr
    assert star.evolution.fate is StarFate.WHITE_DWARF
    assert star.evolution.lifestage_evolution is not None


def test_cached_catalog_is_reused(tmp_path, full_track_folder):
    data_path = full_track_folder.parent
    built = TrajectoryCatalog.build(data_path, download=False, cache=True)
    assert (data_path / ".cache" / "Z0.01.p").exists()

    loaded = TrajectoryCatalog.build(data_path, download=False, cache=True)
    assert len(loaded) == len(built)
    assert list(loaded.trajectory(21).ages) == list(built.trajectory(21).ages)


def test_shared_catalog_is_built_once(full_track_folder):
    first = shared.load_catalog(full_track_folder.parent, download=False)
    second = shared.load_catalog()
    assert first is second


def test_concurrent_callers_share_one_build(monkeypatch, catalog):
    builds = []

    def slow_build(*args, **kwargs):
        builds.append(args)
        time.sleep(0.2)
        return catalog

    monkeypatch.setattr(TrajectoryCatalog, "build", slow_build)
    start = threading.Barrier(8)
    results = []

    def worker():
        start.wait()
        results.append(shared.load_catalog())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(builds) == 1
    assert len(results) == 8
    assert all(result is catalog for result in results)


def test_shared_catalog_remembers_failures(tmp_path, full_track_folder):
    with pytest.raises(DataUnavailable) as first:
        shared.load_catalog(tmp_path, download=False)
    with pytest.raises(DataUnavailable) as second:
        shared.load_catalog(full_track_folder.parent, download=False)
    assert first.value is second.value

    shared.reset_catalog()
    assert shared.load_catalog(full_track_folder.parent, download=False) is not None


def test_interrupted_build_poisons_the_shared_catalog(monkeypatch, tmp_path):
    def interrupted_build(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(TrajectoryCatalog, "build", interrupted_build)
    with pytest.raises(KeyboardInterrupt):
        shared.load_catalog(tmp_path)
    with pytest.raises(ConcurrencyPoisoned):
        shared.load_catalog(tmp_path)
