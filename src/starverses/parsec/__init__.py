__all__ = [
    "MASS_GRID",
    "Snapshot",
    "Trajectory",
    "TrajectoryCatalog",
    "closest_mass_index",
    "closest_snapshot",
    "closest_age_indices",
    "life_expectancy_years",
    "load_catalog",
    "reset_catalog",
    "ensure_files",
    "get_data_path",
]

from .catalog import load_catalog, reset_catalog
from .data import (
    MASS_GRID,
    Snapshot,
    Trajectory,
    TrajectoryCatalog,
    closest_age_indices,
    closest_mass_index,
    closest_snapshot,
    life_expectancy_years,
)
from .download import ensure_files, get_data_path
