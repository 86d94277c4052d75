from enum import Enum

import astropy.constants as const
import astropy.units as u
import numpy as np

# Stars above this initial mass end in a core collapse
SUPERNOVA_MASS_LIMIT = 8 * u.M_sun

WHITE_DWARF_MASS = 0.6 * u.M_sun
WHITE_DWARF_RADIUS = 0.0126 * u.R_sun
WHITE_DWARF_INITIAL_TEMPERATURE = 1e5 * u.K
WHITE_DWARF_COOLING_TIMESCALE = 1e5 * u.yr

NEUTRON_STAR_MASS = 1.4 * u.M_sun
NEUTRON_STAR_RADIUS = 10 * u.km
NEUTRON_STAR_INITIAL_TEMPERATURE = 1e6 * u.K
NEUTRON_STAR_COOLING_TIMESCALE = 1e4 * u.yr

SUPERNOVA_PEAK_LUMINOSITY = 1e9 * u.L_sun
# Mean life of the Co-56 decay powering the light curve tail
SUPERNOVA_DECAY_TIMESCALE = 111.3 * u.day


def _blackbody_luminosity(radius, temperature):
    return (4 * np.pi * radius**2 * const.sigma_sb * temperature**4).to(u.L_sun)


class StarFate(Enum):
    """
    Terminal outcome of a star. Each fate maps a physical quantity and the
    time elapsed since death to the remnant's value of that quantity.
    """

    WHITE_DWARF = "white_dwarf"
    TYPE_II_SUPERNOVA = "type_ii_supernova"

    @classmethod
    def from_mass(cls, initial_mass):
        if initial_mass > SUPERNOVA_MASS_LIMIT:
            return cls.TYPE_II_SUPERNOVA
        return cls.WHITE_DWARF

    def apply_to_mass(self, mass, time_since_death):
        if self is StarFate.WHITE_DWARF:
            return WHITE_DWARF_MASS.to(mass.unit)
        return NEUTRON_STAR_MASS.to(mass.unit)

    def apply_to_radius(self, radius, time_since_death):
        if self is StarFate.WHITE_DWARF:
            return WHITE_DWARF_RADIUS.to(radius.unit)
        return NEUTRON_STAR_RADIUS.to(radius.unit)

    def apply_to_temperature(self, temperature, time_since_death):
        # Mestel cooling, L ~ t^(-7/5) at constant radius
        if self is StarFate.WHITE_DWARF:
            cooled = WHITE_DWARF_INITIAL_TEMPERATURE * _cooling_factor(
                time_since_death, WHITE_DWARF_COOLING_TIMESCALE, 7 / 20
            )
        else:
            cooled = NEUTRON_STAR_INITIAL_TEMPERATURE * _cooling_factor(
                time_since_death, NEUTRON_STAR_COOLING_TIMESCALE, 1 / 4
            )
        return cooled.to(temperature.unit, equivalencies=u.temperature())

    def apply_to_luminous_intensity(self, luminous_intensity, time_since_death):
        temperature = self.apply_to_temperature(1 * u.K, time_since_death)
        if self is StarFate.WHITE_DWARF:
            remnant = _blackbody_luminosity(WHITE_DWARF_RADIUS, temperature)
            return remnant.to(luminous_intensity.unit)
        remnant = _blackbody_luminosity(NEUTRON_STAR_RADIUS, temperature)
        flare = SUPERNOVA_PEAK_LUMINOSITY * np.exp(
            -(time_since_death / SUPERNOVA_DECAY_TIMESCALE).to_value(
                u.dimensionless_unscaled
            )
        )
        return (remnant + flare).to(luminous_intensity.unit)


def _cooling_factor(time_since_death, timescale, exponent):
    elapsed = (time_since_death / timescale).to_value(u.dimensionless_unscaled)
    return (1 + max(elapsed, 0.0)) ** -exponent
