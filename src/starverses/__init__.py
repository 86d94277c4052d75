__all__ = [
    "ConcurrencyPoisoned",
    "DataUnavailable",
    "IoFailure",
    "RandomUniverse",
    "Star",
    "StarDataEvolution",
    "StarDataLifestageEvolution",
    "StarFate",
    "StarversesError",
    "TrajectoryCatalog",
    "create_universe",
    "generate_random_star",
    "generate_random_stars",
    "load_catalog",
    "reset_catalog",
]

from .base import Star
from .errors import ConcurrencyPoisoned, DataUnavailable, IoFailure, StarversesError
from .evolution import StarDataEvolution, StarDataLifestageEvolution, StarFate
from .parsec import TrajectoryCatalog, load_catalog, reset_catalog
from .random import (
    RandomUniverse,
    create_universe,
    generate_random_star,
    generate_random_stars,
)
