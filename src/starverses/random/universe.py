import logging
from pathlib import Path

import astropy.units as u
import dill

from starverses.base.universe import Universe
from starverses.parsec.data import TrajectoryCatalog
from starverses.random.random_stars import generate_random_stars

logger = logging.getLogger(__name__)


def create_universe(universe_params, workers=None, catalog=None):
    """
    Generate a random universe from a parameter mapping
    Args:
        universe_params (dict):
            "max_distance" (light years or astropy Quantity) is required.
            Optional: "data_path", "metallicity", "download" and
            "cache_catalog" for the track data, "seed" for the draws and
            "cache" to reuse a previously generated population.
        workers (int):
            Worker threads for the generation
        catalog (TrajectoryCatalog):
            Track data, built from the parameters when None
    Returns:
        RandomUniverse
    """
    if "max_distance" not in universe_params:
        raise KeyError("universe_params must provide max_distance")
    max_distance = u.Quantity(universe_params["max_distance"], u.lyr)
    if catalog is None:
        build_kwargs = {
            key: universe_params[key]
            for key in ("metallicity", "download")
            if key in universe_params
        }
        catalog = TrajectoryCatalog.build(
            universe_params.get("data_path"),
            cache=universe_params.get("cache_catalog", False),
            **build_kwargs,
        )

    return RandomUniverse(
        max_distance,
        catalog,
        seed=universe_params.get("seed"),
        workers=workers,
        cache=universe_params.get("cache", False),
    )


class RandomUniverse(Universe):
    """
    Class for a Monte Carlo universe of naked-eye stars
    """

    def __init__(self, max_distance, catalog, seed=None, workers=None, cache=False):
        """
        Args:
            max_distance (astropy Quantity):
                Radius of the sampled sphere around the observer
            catalog (TrajectoryCatalog):
                Track data the stars are drawn from
            seed (int):
                Seed for the draws. Only seeded universes are cached.
            workers (int):
                Worker threads for the generation
            cache (bool):
                Store the generated stars under .cache/starverses and reuse
                them on the next run with the same parameters
        """
        self.type = "Random"
        self.max_distance = max_distance
        self.seed = seed
        self.metallicity = catalog.metallicity

        cache_file = None
        if cache and seed is not None:
            cache_file = Path(
                ".cache",
                "starverses",
                f"{catalog.metallicity}_{max_distance.to_value(u.lyr):g}ly"
                f"_seed{seed}.p",
            )
        if cache_file is not None and cache_file.exists():
            logger.info("Loading cached universe from %s", cache_file)
            with open(cache_file, "rb") as f:
                self.stars = dill.load(f)
        else:
            self.stars = generate_random_stars(
                max_distance, catalog=catalog, workers=workers, seed=seed
            )
            if cache_file is not None:
                cache_file.parent.mkdir(parents=True, exist_ok=True)
                with open(cache_file, "wb") as f:
                    dill.dump(self.stars, f)

        super().__init__()
