import copy

import astropy.units as u
import numpy as np

import starverses.util.misc as misc
from starverses.evolution import StarDataEvolution

# Direction of a star placed at the origin
Z_DIRECTION = np.array([0.0, 0.0, 1.0])


class Star:
    """
    A single star as seen from the observer at the origin.
    Position fields (distance, direction) may be updated in place.
    """

    def __init__(
        self,
        mass,
        luminosity,
        temperature,
        age=None,
        radius=None,
        distance=0 * u.lyr,
        direction=Z_DIRECTION,
        name="",
        color=None,
        evolution=StarDataEvolution.NONE,
    ):
        self.name = name
        self.mass = mass
        self.age = age
        self.luminosity = luminosity
        self.temperature = temperature
        self.radius = radius
        self.distance = distance
        self.direction = np.array(direction, dtype=float)
        if color is None:
            color = misc.color_from_temperature(temperature)
        self.color = color
        self.evolution = evolution

    def __repr__(self):
        return (
            f"{type(self).__name__} object\n{self.name}\t"
            f"mass:{self.mass:.3f}\tlum:{self.luminosity:.3g}\t"
            f"temp:{self.temperature:.0f}\tdist:{self.distance:.2f}"
        )

    @property
    def illuminance(self):
        return misc.luminosity_to_illuminance(self.luminosity, self.distance)

    @property
    def apparent_magnitude(self):
        return misc.absolute_to_apparent_magnitude(
            misc.luminosity_to_absolute_magnitude(self.luminosity), self.distance
        )

    @property
    def absolute_magnitude(self):
        return misc.luminosity_to_absolute_magnitude(self.luminosity)

    def evolved(self, time_since_epoch):
        """
        Copy of the star with its physical properties evolved
        Args:
            time_since_epoch (astropy Quantity):
                Simulation time elapsed since the star's reference values
        Returns:
            star (Star):
                New star, position unchanged
        """
        star = copy.copy(self)
        star.direction = self.direction.copy()
        star.mass = self.evolution.apply_to_mass(self.mass, time_since_epoch)
        star.luminosity = self.evolution.apply_to_luminous_intensity(
            self.luminosity, time_since_epoch
        )
        star.temperature = self.evolution.apply_to_temperature(
            self.temperature, time_since_epoch
        )
        if self.radius is not None:
            star.radius = self.evolution.apply_to_radius(self.radius, time_since_epoch)
        if self.age is not None:
            star.age = self.age + time_since_epoch
        star.color = misc.color_from_temperature(star.temperature)
        return star

    def has_changed(self, then, now):
        return self.evolution.has_changed(then, now)

    def to_dict(self):
        return {
            "name": self.name,
            "mass": self.mass.to_value(u.M_sun),
            "age": np.nan if self.age is None else self.age.to_value(u.yr),
            "luminosity": self.luminosity.to_value(u.L_sun),
            "temperature": self.temperature.to_value(u.K),
            "radius": np.nan if self.radius is None else self.radius.to_value(u.R_sun),
            "distance": self.distance.to_value(u.lyr),
            "x": self.direction[0],
            "y": self.direction[1],
            "z": self.direction[2],
            "color": self.color,
        }
