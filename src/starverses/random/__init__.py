__all__ = [
    "DIMMEST_ILLUMINANCE",
    "RandomUniverse",
    "create_universe",
    "generate_random_star",
    "generate_random_stars",
]

from .random_stars import (
    DIMMEST_ILLUMINANCE,
    generate_random_star,
    generate_random_stars,
)
from .universe import RandomUniverse, create_universe
