__all__ = [
    "luminosity_to_absolute_magnitude",
    "absolute_to_apparent_magnitude",
    "apparent_magnitude_to_illuminance",
    "illuminance_to_apparent_magnitude",
    "luminosity_to_illuminance",
    "color_from_temperature",
    "random_direction",
    "random_directions",
    "random_distance",
]

from .misc import (
    luminosity_to_absolute_magnitude,
    absolute_to_apparent_magnitude,
    apparent_magnitude_to_illuminance,
    illuminance_to_apparent_magnitude,
    luminosity_to_illuminance,
    color_from_temperature,
    random_direction,
    random_directions,
    random_distance,
)
