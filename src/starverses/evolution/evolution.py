"""Time evolution of a star's physical properties.

A star is either interpolating (alive, drifting linearly from its reference
values) or post-death, where its fate decides every property. Which branch
applies is re-evaluated on every query from the sign of the time until
death; nothing about the transition is stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import astropy.units as u

from starverses.evolution.fate import StarFate

# Coarse graining for slowly drifting stars
EVOLUTION_TIMESCALE = 1_000 * u.yr
# Window around death in which a star always counts as changed
DEATH_TIMESCALE = 1 * u.yr

MASS_ZERO = 0 * u.M_sun / u.yr
RADIUS_ZERO = 0 * u.R_sun / u.yr
LUMINOSITY_ZERO = 0 * u.L_sun / u.yr
TEMPERATURE_ZERO = 0 * u.K / u.yr


def _rate(now_value, then_value, years, zero):
    if now_value is None or then_value is None:
        return zero
    return ((now_value - then_value) / years).to(zero.unit)


@dataclass(frozen=True)
class StarDataLifestageEvolution:
    """Linear per-year drift of mass, radius, luminosity and temperature."""

    mass_per_year: u.Quantity = field(default_factory=lambda: MASS_ZERO)
    radius_per_year: u.Quantity = field(default_factory=lambda: RADIUS_ZERO)
    luminous_intensity_per_year: u.Quantity = field(
        default_factory=lambda: LUMINOSITY_ZERO
    )
    temperature_per_year: u.Quantity = field(
        default_factory=lambda: TEMPERATURE_ZERO
    )

    @classmethod
    def new(cls, now, then, years) -> StarDataLifestageEvolution:
        """Finite-difference rates between two samples of the same star.

        Args:
            now:
                Later sample, any object with ``mass``, ``radius``,
                ``luminosity`` and ``temperature`` attributes (each may be
                None).
            then:
                Earlier sample with the same attributes.
            years (float or astropy Quantity):
                Time between the samples, in years when unitless.

        Returns:
            StarDataLifestageEvolution: rates, zero for every channel missing
            on either side.
        """
        years = u.Quantity(years, u.yr)
        return cls(
            mass_per_year=_rate(now.mass, then.mass, years, MASS_ZERO),
            radius_per_year=_rate(now.radius, then.radius, years, RADIUS_ZERO),
            luminous_intensity_per_year=_rate(
                now.luminosity, then.luminosity, years, LUMINOSITY_ZERO
            ),
            temperature_per_year=_rate(
                now.temperature, then.temperature, years, TEMPERATURE_ZERO
            ),
        )

    @classmethod
    def from_snapshots(cls, now, then) -> StarDataLifestageEvolution:
        """Rates between two track snapshots of distinct age."""
        years = now.age - then.age
        if years == 0:
            raise ValueError("Snapshots must have distinct ages")
        return cls.new(now.to_star(), then.to_star(), years)


@dataclass(frozen=True)
class StarDataEvolution:
    lifestage_evolution: Optional[StarDataLifestageEvolution]
    age: Optional[u.Quantity]
    lifetime: u.Quantity
    fate: StarFate

    def time_until_death(self, time_since_epoch) -> Optional[u.Quantity]:
        if self.age is None:
            return None
        return self.lifetime - self.age - time_since_epoch

    def is_dead(self, time_since_epoch) -> bool:
        time_until_death = self.time_until_death(time_since_epoch)
        return time_until_death is not None and time_until_death < 0 * u.yr

    def has_changed(self, then, now) -> bool:
        """Whether a cached appearance computed at ``then`` is stale at ``now``."""
        time_until_death = self.time_until_death(now)
        if time_until_death is not None and abs(time_until_death) < DEATH_TIMESCALE:
            return True
        if self.lifestage_evolution is not None:
            return abs(then - now) > EVOLUTION_TIMESCALE
        return False

    def _apply(self, value, time_since_epoch, post_death, rate):
        if self.is_dead(time_since_epoch):
            return post_death(value, -self.time_until_death(time_since_epoch))
        if self.lifestage_evolution is None:
            return value
        return (value + rate * time_since_epoch).to(value.unit)

    def apply_to_mass(self, mass, time_since_epoch):
        return self._apply(
            mass,
            time_since_epoch,
            self.fate.apply_to_mass,
            self.lifestage_mass_per_year,
        )

    def apply_to_radius(self, radius, time_since_epoch):
        return self._apply(
            radius,
            time_since_epoch,
            self.fate.apply_to_radius,
            self.lifestage_radius_per_year,
        )

    def apply_to_luminous_intensity(self, luminous_intensity, time_since_epoch):
        return self._apply(
            luminous_intensity,
            time_since_epoch,
            self.fate.apply_to_luminous_intensity,
            self.lifestage_luminous_intensity_per_year,
        )

    def apply_to_temperature(self, temperature, time_since_epoch):
        return self._apply(
            temperature,
            time_since_epoch,
            self.fate.apply_to_temperature,
            self.lifestage_temperature_per_year,
        )

    @property
    def lifestage_mass_per_year(self):
        if self.lifestage_evolution is None:
            return MASS_ZERO
        return self.lifestage_evolution.mass_per_year

    @property
    def lifestage_radius_per_year(self):
        if self.lifestage_evolution is None:
            return RADIUS_ZERO
        return self.lifestage_evolution.radius_per_year

    @property
    def lifestage_luminous_intensity_per_year(self):
        if self.lifestage_evolution is None:
            return LUMINOSITY_ZERO
        return self.lifestage_evolution.luminous_intensity_per_year

    @property
    def lifestage_temperature_per_year(self):
        if self.lifestage_evolution is None:
            return TEMPERATURE_ZERO
        return self.lifestage_evolution.temperature_per_year


StarDataEvolution.NONE = StarDataEvolution(
    lifestage_evolution=None,
    age=None,
    lifetime=0 * u.yr,
    fate=StarFate.WHITE_DWARF,
)
