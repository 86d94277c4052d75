import logging
import os
import warnings
from dataclasses import dataclass
from multiprocessing.pool import ThreadPool

import astropy.units as u
import numpy as np
from tqdm import tqdm

import starverses.util.misc as misc
from starverses.errors import DataUnavailable
from starverses.parsec.catalog import load_catalog
from starverses.parsec.data import MASS_GRID, closest_age_indices

logger = logging.getLogger(__name__)

# https://en.wikipedia.org/wiki/Stellar_density, adjusted a little bit
STARS_PER_LY_CUBED = 2.9e-3 / u.lyr**3
# Naked eye limit, apparent magnitude 6.5
DIMMEST_ILLUMINANCE = 6.5309e-9 * u.lx
AGE_OF_MILKY_WAY_THIN_DISK = 8.8e9 * u.yr

# Draws held in memory at once
MAX_CHUNKSIZE = 10_000_000
# Draws per task handed to a worker thread
BATCH_SIZE = 100_000
# Draws per attempt when looking for a single visible star
SINGLE_STAR_BATCH = 256


@dataclass(frozen=True)
class SamplingDistributions:
    """Mass index weights and age range, built once per generation call."""

    mass_weights: np.ndarray
    max_age_years: float

    def sample(self, rng, size):
        mass_indices = rng.choice(
            len(self.mass_weights), size=size, p=self.mass_weights
        )
        ages = rng.uniform(0.0, self.max_age_years, size=size)
        return mass_indices, ages


def number_of_stars_in_sphere(max_distance):
    volume = 4.0 / 3.0 * np.pi * u.Quantity(max_distance, u.lyr) ** 3
    return int((STARS_PER_LY_CUBED * volume).to_value(u.dimensionless_unscaled))


def kroupa_mass_distribution(m_in_solar_masses):
    """
    Broken power law initial mass function (Kroupa 2001), unnormalised
    """
    if m_in_solar_masses <= 0.08:
        alpha = 0.3
    elif m_in_solar_masses <= 0.5:
        alpha = 1.3
    elif m_in_solar_masses <= 1.0:
        alpha = 2.3
    else:
        alpha = 2.7
    return m_in_solar_masses**-alpha


def get_mass_distribution(catalog=None):
    """
    Normalised probabilities of drawing each grid mass index. Slots without
    track data are never drawn.
    """
    if catalog is None:
        catalog = load_catalog()
    weights = np.array([kroupa_mass_distribution(m) for m in MASS_GRID])
    empty = [i for i in range(len(MASS_GRID)) if catalog.trajectory(i).is_empty]
    if len(empty) == len(MASS_GRID):
        raise DataUnavailable("The track catalog holds no trajectories")
    if empty:
        warnings.warn(
            f"No track data for {len(empty)} grid masses, "
            f"e.g. {MASS_GRID[empty[0]]} M_sun; they are never drawn"
        )
        weights[empty] = 0.0
    return weights / weights.sum()


def get_distributions(catalog):
    return SamplingDistributions(
        mass_weights=get_mass_distribution(catalog),
        max_age_years=AGE_OF_MILKY_WAY_THIN_DISK.to_value(u.yr),
    )


def generate_visible_random_stars(catalog, distributions, max_distance, number, seed):
    """
    Draw number stars and keep the ones brighter than DIMMEST_ILLUMINANCE
    Args:
        catalog (TrajectoryCatalog):
            Track data
        distributions (SamplingDistributions):
            Mass and age distributions
        max_distance (astropy Quantity):
            Radius of the sampled sphere
        number (int):
            Number of draws
        seed (np.random.SeedSequence or int):
            Seed of this batch's own random generator
    Returns:
        stars (list of Star):
            Visible stars, in draw order
    """
    rng = np.random.default_rng(seed)
    mass_indices, ages = distributions.sample(rng, number)
    distances = misc.random_distance(rng, max_distance, size=number).to(u.lyr)

    snapshot_indices = np.empty(number, dtype=int)
    log_l = np.empty(number)
    for mass_index in np.unique(mass_indices):
        selected = mass_indices == mass_index
        trajectory = catalog.trajectory(mass_index)
        indices = closest_age_indices(trajectory, ages[selected])
        snapshot_indices[selected] = indices
        log_l[selected] = trajectory.log_luminosities[indices]

    illuminance = misc.luminosity_to_illuminance(10**log_l * u.L_sun, distances)
    visible = np.flatnonzero(illuminance >= DIMMEST_ILLUMINANCE)
    directions = misc.random_directions(rng, len(visible))

    stars = []
    evolutions = {}
    for draw, direction in zip(visible, directions):
        key = (mass_indices[draw], snapshot_indices[draw])
        trajectory = catalog.trajectory(key[0])
        snapshot = trajectory[key[1]]
        if key not in evolutions:
            evolutions[key] = catalog.evolution_for(trajectory, snapshot.age)
        stars.append(
            snapshot.to_star(
                distance=distances[draw],
                direction=direction,
                evolution=evolutions[key],
            )
        )
    return stars


def generate_certain_number_of_random_stars(
    number, catalog, distributions, max_distance, seed_sequence, workers, batch_size
):
    n_batches, remainder = divmod(number, batch_size)
    batch_sizes = [batch_size] * n_batches
    if remainder:
        batch_sizes.append(remainder)
    seeds = seed_sequence.spawn(len(batch_sizes))
    inputs = [
        [catalog, distributions, max_distance, size, seed]
        for size, seed in zip(batch_sizes, seeds)
    ]

    cores = min(workers, len(inputs))
    if cores <= 1:
        batches = [generate_visible_random_stars(*args) for args in inputs]
    else:
        with ThreadPool(cores) as pool:
            batches = pool.starmap(generate_visible_random_stars, inputs)
    return [star for batch in batches for star in batch]


def generate_random_stars(
    max_distance,
    catalog=None,
    workers=None,
    seed=None,
    max_chunksize=MAX_CHUNKSIZE,
    batch_size=BATCH_SIZE,
):
    """
    Monte Carlo population of naked-eye stars within a sphere around the
    observer. Order of the returned stars is not meaningful.
    Args:
        max_distance (astropy Quantity or float):
            Radius of the sphere, light years when unitless
        catalog (TrajectoryCatalog):
            Track data, the shared catalog when None
        workers (int):
            Worker threads, defaults to the CPU count
        seed (int):
            Seed for reproducible populations
        max_chunksize (int):
            Draws held in memory at once
        batch_size (int):
            Draws per worker task
    Returns:
        stars (list of Star)
    """
    max_distance = u.Quantity(max_distance, u.lyr)
    if catalog is None:
        catalog = load_catalog()
    distributions = get_distributions(catalog)
    number_of_stars = number_of_stars_in_sphere(max_distance)
    cpu_count = os.cpu_count() or 1
    workers = min(workers or cpu_count, cpu_count)
    seed_sequence = np.random.SeedSequence(seed)
    logger.info(
        "Drawing %d stars within %s using %d workers",
        number_of_stars,
        max_distance,
        workers,
    )

    stars = []
    finished = 0
    with tqdm(
        total=number_of_stars, desc="Generating stars", position=0, leave=False
    ) as progress:
        while finished < number_of_stars:
            chunk = min(max_chunksize, number_of_stars - finished)
            stars.extend(
                generate_certain_number_of_random_stars(
                    chunk,
                    catalog,
                    distributions,
                    max_distance,
                    seed_sequence.spawn(1)[0],
                    workers,
                    batch_size,
                )
            )
            finished += chunk
            progress.update(chunk)
            logger.info(
                "Generated %.2e of %.2e stars (%.0f%%) and kept %.2e",
                finished,
                number_of_stars,
                100 * finished / number_of_stars,
                len(stars),
            )
    return stars


def generate_random_star(max_distance=None, catalog=None, seed=None):
    """
    A single visible star. Draws are repeated until one is visible; there is
    no cap on the number of attempts.
    Args:
        max_distance (astropy Quantity or float):
            Radius of the sphere, light years when unitless. When None the
            star is drawn 1 m away and placed at distance zero.
        catalog (TrajectoryCatalog):
            Track data, the shared catalog when None
        seed (int):
            Seed for a reproducible star
    Returns:
        star (Star)
    """
    if catalog is None:
        catalog = load_catalog()
    distributions = get_distributions(catalog)
    seed_sequence = np.random.SeedSequence(seed)
    if max_distance is None:
        sample_distance = 1 * u.m
    else:
        sample_distance = u.Quantity(max_distance, u.lyr)

    stars = []
    while not stars:
        stars = generate_visible_random_stars(
            catalog,
            distributions,
            sample_distance,
            SINGLE_STAR_BATCH,
            seed_sequence.spawn(1)[0],
        )
    star = stars[0]
    if max_distance is None:
        star.distance = 0 * u.lyr
    return star
