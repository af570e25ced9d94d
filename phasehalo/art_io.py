"""Reading ART particle snapshots in either byte order and either layout."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

import numpy as np

from phasehalo.cosmology import Cosmology

ART_TEXT_SIZE = 45

_HEADER1 = "2f5i4f"
_HEADER1A = "2f5i5f"
_HEADER2 = "4if"
_HEADER2A = "4ifi"
_HEADER3 = "6f"
_FLATNESS_TOLERANCE = 1e-4


@dataclass(frozen=True)
class ArtHeader:
    """Run parameters stored at the start of an ART particle file."""

    title: str
    aexpn: float
    astep: float
    istep: int
    nrowc: int
    ngridc: int
    nspecies: int
    nseed: int
    om0: float
    oml0: float
    hubble: float
    box: float
    bounds: Tuple[float, ...]
    mass_one: Optional[float] = None
    d_buffer: Optional[float] = None


@dataclass
class ArtSnapshot:
    """Particles and run parameters read from an ART file."""

    header: ArtHeader
    positions: np.ndarray
    ids: np.ndarray
    particle_mass: float
    avg_particle_spacing: float
    variant: int
    swapped: bool
    trim_overlap: Optional[float] = None
    round_after_trim: Optional[float] = None

    @property
    def scale(self) -> float:
        return self.header.aexpn

    @property
    def box_size(self) -> float:
        return self.header.box

    @property
    def omega_m(self) -> float:
        return self.header.om0

    @property
    def omega_l(self) -> float:
        return self.header.oml0

    @property
    def h0(self) -> float:
        return self.header.hubble

    def __len__(self) -> int:
        return len(self.ids)


def _read_exact(fh: BinaryIO, n: int) -> bytes:
    data = fh.read(n)
    if len(data) < n:
        raise ValueError("ART file is truncated")
    return data


def _read_int32(fh: BinaryIO, endian: str) -> int:
    return struct.unpack(endian + "i", _read_exact(fh, 4))[0]


def _peek_int32(fh: BinaryIO, endian: str) -> int:
    value = _read_int32(fh, endian)
    fh.seek(-4, 1)
    return value


def _record(fh: BinaryIO, endian: str, expected: Optional[int] = None) -> bytes:
    """One Fortran record: length marker, payload, repeated length marker."""
    length = _read_int32(fh, endian)
    if length < 0 or (expected is not None and length != expected):
        raise ValueError(
            f"unexpected ART record length {length}"
            + (f" (expected {expected})" if expected is not None else "")
        )
    payload = _read_exact(fh, length)
    if _read_int32(fh, endian) != length:
        raise ValueError("mismatched ART record markers")
    return payload


def _unpack_record(fh: BinaryIO, endian: str, fmt: str) -> tuple:
    fmt = endian + fmt
    return struct.unpack(fmt, _record(fh, endian, struct.calcsize(fmt)))


def _detect_endianness(fh: BinaryIO, path: Path) -> str:
    raw = fh.read(4)
    fh.seek(-len(raw), 1)
    if len(raw) < 4:
        raise ValueError(f"Unrecognized ART file type in {path}!")
    little = struct.unpack("<i", raw)[0]
    if little == ART_TEXT_SIZE:
        return "<"
    big = struct.unpack(">i", raw)[0]
    if big == ART_TEXT_SIZE:
        return ">"
    raise ValueError(
        f"Unrecognized ART file type in {path}! Expected title size of "
        f"{ART_TEXT_SIZE}; got {little} (or {big} if byte-swapped)."
    )


def _detect_variant(fh: BinaryIO, endian: str, path: Path) -> int:
    size = _peek_int32(fh, endian)
    sizes = (struct.calcsize("<" + _HEADER1), struct.calcsize("<" + _HEADER1A))
    if size == sizes[0]:
        return 0
    if size == sizes[1]:
        return 1
    raise ValueError(
        f"Unrecognized ART format in {path}! Expected first header to be "
        f"{sizes[0]} or {sizes[1]} bytes; got {size}."
    )


def _read_v0_particles(fh: BinaryIO, endian: str, count: int, header: ArtHeader):
    dtype = np.dtype([("pos", endian + "f4", (6,)), ("id", endian + "u8")])
    chunks = []
    total = 0
    while total < count:
        (n,) = _unpack_record(fh, endian, "I")
        if total + n > count:
            raise ValueError("ART file holds more particles than its header states")
        _read_exact(fh, 4)
        chunks.append(np.frombuffer(_read_exact(fh, n * dtype.itemsize), dtype=dtype))
        _read_exact(fh, 4)
        total += n
    data = np.concatenate(chunks) if chunks else np.zeros(0, dtype=dtype)
    pos = data["pos"].astype(np.float64)
    xscale = header.box / header.ngridc
    vscale = header.box * 100.0 / (header.ngridc * header.aexpn)
    pos[:, :3] = (pos[:, :3] - 1.0) * xscale
    pos[:, 3:] *= vscale
    return pos.astype(np.float32), data["id"].astype(np.int64)


def _read_v1_particles(fh: BinaryIO, endian: str, count: int):
    positions = []
    ids = []
    total = 0
    while total < count:
        (n,) = _unpack_record(fh, endian, "I")
        if n <= 0 or total + n > count:
            raise ValueError("invalid ART particle record size")
        first = _record(fh, endian, 12 * n)
        second = _record(fh, endian, 12 * n)
        block = np.frombuffer(first + second, dtype=endian + "f4").reshape(6, n)
        positions.append(block.T.astype(np.float32))
        masses_and_ids = _record(fh, endian, 12 * n)
        ids.append(np.frombuffer(masses_and_ids[4 * n:], dtype=endian + "i8").astype(np.int64))
        total += n
    if not positions:
        return np.zeros((0, 6), dtype=np.float32), np.zeros(0, dtype=np.int64)
    return np.concatenate(positions), np.concatenate(ids)


def load_particles_art(path: Union[str, Path], particle_mass: float) -> ArtSnapshot:
    """Read an ART particle file.

    ``particle_mass`` is used for files whose header does not carry one.
    Positions of the classic layout are converted to Mpc/h and km/s;
    the layout carrying its own particle mass is returned as stored.
    """
    path = Path(path)
    with open(path, "rb") as fh:
        endian = _detect_endianness(fh, path)
        title_bytes = _record(fh, endian, ART_TEXT_SIZE)
        title = title_bytes.decode("latin-1").rstrip("\x00 ")
        variant = _detect_variant(fh, endian, path)

        trim_overlap = round_after_trim = None
        if variant == 1:
            h1 = _unpack_record(fh, endian, _HEADER1A)
            h2 = _unpack_record(fh, endian, _HEADER2A)
            h3 = _unpack_record(fh, endian, _HEADER3)
            mass_one, d_buffer = h1[11], h2[4]
            particle_mass = mass_one
            trim_overlap = d_buffer
            round_after_trim = 1.0 / 16.0
        else:
            h1 = _unpack_record(fh, endian, _HEADER1)
            _unpack_record(fh, endian, _HEADER2)
            h3 = _unpack_record(fh, endian, _HEADER3)
            mass_one = d_buffer = None

        header = ArtHeader(
            title=title,
            aexpn=h1[0],
            astep=h1[1],
            istep=h1[2],
            nrowc=h1[3],
            ngridc=h1[4],
            nspecies=h1[5],
            nseed=h1[6],
            om0=h1[7],
            oml0=h1[8],
            hubble=h1[9],
            box=h1[10],
            bounds=tuple(h3),
            mass_one=mass_one,
            d_buffer=d_buffer,
        )
        spacing = math.cbrt(particle_mass / (header.om0 * Cosmology.critical_density)) \
            if hasattr(math, "cbrt") else (particle_mass / (header.om0 * Cosmology.critical_density)) ** (1.0 / 3.0)
        if abs(1.0 - (header.om0 + header.oml0)) > _FLATNESS_TOLERANCE:
            raise ValueError(
                "Either cosmology is not flat or ART header structure has changed."
            )

        (count,) = _unpack_record(fh, endian, "I")
        if variant == 1:
            positions, ids = _read_v1_particles(fh, endian, count)
        else:
            positions, ids = _read_v0_particles(fh, endian, count, header)

    return ArtSnapshot(
        header=header,
        positions=positions,
        ids=ids,
        particle_mass=particle_mass,
        avg_particle_spacing=spacing,
        variant=variant,
        swapped=endian == ">",
        trim_overlap=trim_overlap,
        round_after_trim=round_after_trim,
    )