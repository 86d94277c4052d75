import astropy.units as u
import numpy as np

"""
Photometry, colour and random geometry helpers shared by the catalog and the
population generator
"""

# Absolute visual magnitude of the Sun
SUN_ABSOLUTE_MAGNITUDE = 4.83

# Illuminance of a zero magnitude source
ZERO_MAGNITUDE_ILLUMINANCE = 2.6e-6 * u.lx

# Representative colours per spectral class, hottest first
SPECTRAL_CLASS_COLORS = [
    (30_000, "O", "#9bb0ff"),
    (10_000, "B", "#aabfff"),
    (7_500, "A", "#cad7ff"),
    (6_000, "F", "#f8f7ff"),
    (5_200, "G", "#fff4ea"),
    (3_700, "K", "#ffd2a1"),
    (0, "M", "#ffcc6f"),
]
DEFAULT_COLOR = "#ffffff"


def luminosity_to_absolute_magnitude(luminosity):
    """
    Absolute magnitude of a source with the given luminosity
    Args:
        luminosity (astropy Quantity):
            Luminosity, scalar or array
    Returns:
        float or np.array:
            Absolute magnitude
    """
    with np.errstate(divide="ignore"):
        return SUN_ABSOLUTE_MAGNITUDE - 2.5 * np.log10(luminosity.to_value(u.L_sun))


def absolute_to_apparent_magnitude(magnitude, distance):
    """
    Distance modulus. A source at zero distance is infinitely bright.
    Args:
        magnitude (float or np.array):
            Absolute magnitude
        distance (astropy Quantity):
            Distance to the observer
    Returns:
        float or np.array:
            Apparent magnitude
    """
    with np.errstate(divide="ignore"):
        return magnitude + 5 * np.log10(distance.to_value(u.pc) / 10)


def apparent_magnitude_to_illuminance(magnitude):
    return ZERO_MAGNITUDE_ILLUMINANCE * 10 ** (-0.4 * np.asarray(magnitude))


def illuminance_to_apparent_magnitude(illuminance):
    with np.errstate(divide="ignore"):
        return -2.5 * np.log10(
            (illuminance / ZERO_MAGNITUDE_ILLUMINANCE).to_value(u.dimensionless_unscaled)
        )


def luminosity_to_illuminance(luminosity, distance):
    """
    Illuminance at an observer the given distance away from a source
    Args:
        luminosity (astropy Quantity):
            Luminosity of the source
        distance (astropy Quantity):
            Distance between source and observer
    Returns:
        illuminance (astropy Quantity):
            Illuminance in lux
    """
    magnitude = absolute_to_apparent_magnitude(
        luminosity_to_absolute_magnitude(luminosity), distance
    )
    return apparent_magnitude_to_illuminance(magnitude).to(u.lx)


def color_from_temperature(temperature):
    """
    Display colour (hex string) of the spectral class matching a temperature
    """
    if temperature is None:
        return DEFAULT_COLOR
    kelvin = temperature.to_value(u.K, equivalencies=u.temperature())
    for minimum, _, color in SPECTRAL_CLASS_COLORS:
        if kelvin >= minimum:
            return color
    return DEFAULT_COLOR


def random_point_in_unit_ball(rng):
    """
    Uniform point inside the unit ball, by rejection from the enclosing cube
    """
    point = rng.uniform(-1.0, 1.0, size=3)
    while point @ point > 1.0:
        point = rng.uniform(-1.0, 1.0, size=3)
    return point


def random_direction(rng):
    """
    Uniformly distributed unit vector from a normalised point in the unit ball
    Args:
        rng (np.random.Generator):
            Random source
    Returns:
        np.array:
            Unit vector of shape (3,)
    """
    point = random_point_in_unit_ball(rng)
    norm = np.linalg.norm(point)
    while norm == 0.0:
        point = random_point_in_unit_ball(rng)
        norm = np.linalg.norm(point)
    return point / norm


def random_directions(rng, size):
    """
    size draws of random_direction as an array of shape (size, 3)
    """
    directions = np.empty((size, 3))
    for i in range(size):
        directions[i] = random_direction(rng)
    return directions


def random_distance(rng, max_distance, size=None):
    """
    Distance from the centre of a sphere of radius max_distance for points
    uniform in volume
    Args:
        rng (np.random.Generator):
            Random source
        max_distance (astropy Quantity):
            Radius of the sphere
        size (int):
            Number of samples, None for a scalar
    Returns:
        astropy Quantity:
            Distances in the unit of max_distance
    """
    cubed = rng.uniform(0.0, 1.0, size=size)
    return max_distance * np.cbrt(cubed)
