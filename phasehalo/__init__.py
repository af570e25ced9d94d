"""Phase-space halo finding: FOF linking, cosmology, centres and profiles, snapshot readers, boundary groups and TCP messaging."""

__version__ = "0.1.0"