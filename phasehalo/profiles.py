"""Radial density and enclosed-mass profiles around a centre.

Positions are in Mpc; bin edges ``radii`` are in kpc and ascending.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def _radii_kpc(positions, center) -> np.ndarray:
    pos = np.asarray(positions, dtype=float)
    pos = pos.reshape(len(pos), -1)[:, :3]
    c = np.asarray(center, dtype=float)[:3]
    return 1000.0 * np.sqrt(((pos - c) ** 2).sum(axis=1))


def _edges(radii: Sequence[float]) -> np.ndarray:
    edges = np.asarray(radii, dtype=float)
    if edges.ndim != 1 or len(edges) < 2:
        raise ValueError("radii must hold at least two bin edges")
    return edges


def _bin_indices(r: np.ndarray, edges: np.ndarray) -> np.ndarray:
    """Bin of each radius; a radius past the last edge gets ``len(edges) - 1``."""
    return np.searchsorted(edges[1:], r, side="left")


def density_profile(positions, types, pe, ke, center, radii, type_masses) -> np.ndarray:
    """Mass density in each radial shell, counting only bound particles.

    Every particle carries the mass of the first particle's type. Particles
    with ``pe < ke`` are skipped; those inside the first edge fall in bin 0.
    """
    edges = _edges(radii)
    nbins = len(edges) - 1
    if len(positions) == 0:
        return np.zeros(nbins)
    masses = np.asarray(type_masses, dtype=float)
    mass = masses[int(np.asarray(types)[0])]
    shell_volumes = 4.0 / 3.0 * np.pi * (edges[1:] ** 3 - edges[:-1] ** 3)
    bound = ~(np.asarray(pe, dtype=float) < np.asarray(ke, dtype=float))
    ibin = _bin_indices(_radii_kpc(positions, center)[bound], edges)
    counts = np.bincount(ibin[ibin < nbins], minlength=nbins)
    return counts * (mass / shell_volumes)


def mass_profile(positions, types, center, radii, type_masses) -> np.ndarray:
    """Mass enclosed within each outer bin edge, by particle type mass."""
    edges = _edges(radii)
    nbins = len(edges) - 1
    if len(positions) == 0:
        return np.zeros(nbins)
    masses = np.asarray(type_masses, dtype=float)[np.asarray(types, dtype=int)]
    ibin = _bin_indices(_radii_kpc(positions, center), edges)
    inside = ibin < nbins
    per_bin = np.bincount(ibin[inside], weights=masses[inside], minlength=nbins)
    return np.cumsum(per_bin)