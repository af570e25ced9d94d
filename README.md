# phasehalo

Building blocks for finding dark-matter halos in six-dimensional phase space
in N-body simulation snapshots.

## Installation

```
pip install .
pip install ".[test]"   # with the test tools
```

## What is inside

- `phasehalo.inthash`: `IntHash` and `NestedIntHash`, open-addressing hash
  tables keyed by signed 64-bit integers (`get`, `set`, `delete`, `keys`,
  `prealloc`, `len()` and `in`).
- `phasehalo.fof`: `FofLinker`, which joins linked particles into groups
  with union-find and builds `Fof` runs from them, and
  `partition_sort_particles`, which sorts particles by group assignment.
- `phasehalo.cosmology`: `Cosmology` (effective dark-energy equation of
  state, `hubble_scaling`, `vir_density`, `mass_threshold`) and
  `calc_mass_definitions`, which returns a `MassDefinitions` record of
  threshold densities and the dynamical time.
- `phasehalo.phasespace`: `find_median_r` (quickselect of a radius at a given
  fraction), `could_be_poisson_or_force_res` on `HaloSummary` records, and
  `reassign_halo_particles`.
- `phasehalo.center`: `getcenter` (shrinking-sphere centre and core velocity
  and density) and `getrho` (mean central density).
- `phasehalo.profiles`: `density_profile` (bound particles only) and
  `mass_profile` (enclosed mass) in radial bins given in kpc.
- `phasehalo.ascii_io`: `load_particles` reads `x y z vx vy vz id` text files
  into an `AsciiSnapshot`; `gzip_file` compresses a file in place.
- `phasehalo.art_io`: `load_particles_art` reads ART particle files of either
  byte order and either header layout into an `ArtSnapshot` with its
  `ArtHeader`.
- `phasehalo.netsocket`: TCP helpers: `connect_to_addr` with retries,
  `listen_at_addr`, `accept_connection`, `send_all`, `recv_exact`, and
  length-prefixed `send_msg` / `recv_msg`. Failures raise `NetworkError`.
- `phasehalo.address`: `get_interface_address` returns the numeric address of
  a network interface, or `None`.
- `phasehalo.bgroups`: `BoundaryGroups` chains groups from different chunks
  whose boundary particles lie within a linking length, plus the set-list
  helpers `prune_setlist`, `calc_next_bgroup_chunk` and
  `check_bgroup_sanity`.

## Example

```python
from phasehalo.cosmology import Cosmology, calc_mass_definitions
from phasehalo.fof import FofLinker

cosmo = Cosmology()
print(cosmo.hubble_scaling(0.0))        # 1.0 for a flat cosmology
defs = calc_mass_definitions(cosmo, ["vir", "200c"], 1.0, 1e9)
print(defs.definitions, defs.thresholds)

linker = FofLinker(5, min_halo_particles=2)
linker.link_particle_to_fof(0, [0, 1, 2])
particles = ["a", "b", "c", "d", "e"]
fofs = linker.build(particles)          # reorders particles in place
print(fofs[0].num_p)                    # 3
```

## What it does not do

The package has no command-line program and no complete halo-finding
pipeline that drives these pieces over a snapshot. It does not compute
velocity dispersions or radial velocity profiles, and it has no adaptive
quadrature routine. Its networking is plain TCP with length-prefixed
messages: connections are not re-established on their own and packets are
neither sequenced nor confirmed.

## Running the tests

```
pytest
```