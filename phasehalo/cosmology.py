"""Expansion history and spherical-overdensity mass thresholds."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Sequence, Tuple

_LEADING_FLOAT = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _atof(text: str) -> float:
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else 0.0


@dataclass(frozen=True)
class Cosmology:
    """Background cosmology with a CPL dark-energy equation of state.

    ``critical_density`` is in (Msun/h) / (Mpc/h)^3 and
    ``grav_constant`` in (km/s)^2 Mpc / Msun.
    """

    omega_m: float = 0.3
    omega_l: float = 0.7
    h0: float = 0.7
    w0: float = -1.0
    wa: float = 0.0
    critical_density: float = 2.77519737e11
    grav_constant: float = 4.30117902e-9

    def weff(self, a: float) -> float:
        """Effective constant equation of state between ``a`` and today."""
        if a != 1.0:
            return self.w0 + self.wa - self.wa * (a - 1.0) / math.log(a)
        return self.w0

    def hubble_scaling(self, z: float) -> float:
        """H(z) / H0."""
        z1 = 1.0 + z
        a = 1.0 / z1
        return math.sqrt(
            self.omega_m * z1**3 + self.omega_l * a ** (-3.0 * (1.0 + self.weff(a)))
        )

    def vir_density(self, a: float) -> float:
        """Virial overdensity relative to critical (Bryan & Norman fit)."""
        x = (self.omega_m / a**3) / self.hubble_scaling(1.0 / a - 1.0) ** 2 - 1.0
        return (18 * math.pi**2 + 82.0 * x - 39 * x * x) / (1.0 + x)

    def mass_threshold(
        self, definition: str, scale: float, particle_mass: float
    ) -> Tuple[float, str]:
        """Threshold density in particles per (Mpc/h)^3 for a mass definition.

        ``"<N>b"`` is relative to the background density, ``"<N>c"`` to the
        critical density; a leading ``m`` is ignored. Anything else means
        the virial definition. Returns the threshold and the definition
        name, which is ``"vir"`` for virial definitions.
        """
        if particle_mass <= 0:
            raise ValueError("particle_mass must be positive")
        last_char = definition[-1:].lower()
        matter_fraction = (self.omega_m / scale**3) / self.hubble_scaling(
            1.0 / scale - 1.0
        ) ** 2
        cons = self.omega_m * self.critical_density / particle_mass
        number = definition[1:] if definition[:1] in ("m", "M") else definition
        if last_char == "b":
            return _atof(number) * cons, definition
        if last_char == "c":
            return _atof(number) * cons / matter_fraction, definition
        return self.vir_density(scale) * cons, "vir"


@dataclass(frozen=True)
class MassDefinitions:
    """Threshold densities for a set of mass definitions at one epoch."""

    definitions: Tuple[str, ...]
    thresholds: Tuple[float, ...]
    rvir_dens: float
    rvir_dens_z0: float
    dynamical_time: float
    min_dens_index: int


def calc_mass_definitions(
    cosmology: Cosmology,
    definitions: Sequence[str],
    scale: float,
    particle_mass: float,
) -> MassDefinitions:
    """Evaluate every mass definition, plus the virial one, at ``scale``."""
    if not definitions:
        raise ValueError("at least one mass definition is required")
    results = [cosmology.mass_threshold(d, scale, particle_mass) for d in definitions]
    thresholds = tuple(t for t, _ in results)
    names = tuple(n for _, n in results)
    rvir_dens, _ = cosmology.mass_threshold("vir", scale, particle_mass)
    cons = cosmology.omega_m * cosmology.critical_density / particle_mass
    rvir_dens_z0 = cosmology.vir_density(1.0) * cons
    dynamical_time = 1.0 / math.sqrt(
        (4.0 * math.pi * cosmology.grav_constant / 3.0) * rvir_dens * particle_mass
    )
    min_index = 0
    for i, t in enumerate(thresholds):
        if t < thresholds[min_index]:
            min_index = i
    return MassDefinitions(
        definitions=names,
        thresholds=thresholds,
        rvir_dens=rvir_dens,
        rvir_dens_z0=rvir_dens_z0,
        dynamical_time=dynamical_time,
        min_dens_index=min_index,
    )