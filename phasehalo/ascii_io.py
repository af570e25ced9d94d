"""Reading plain-text particle files."""

from __future__ import annotations

import gzip
import re
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

_NUM_INPUTS = 7
_SCALE_PREFIX = "#a = "
_LEADING_FLOAT = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass
class AsciiSnapshot:
    """Particles read from a text file: phase-space coordinates and ids."""

    positions: np.ndarray
    ids: np.ndarray
    scale: Optional[float] = None

    def __len__(self) -> int:
        return len(self.ids)


def _atof(text: str) -> float:
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else 0.0


def _parse_line(line: str) -> Optional[Tuple[List[float], int]]:
    tokens = line.split()
    if len(tokens) < _NUM_INPUTS:
        return None
    try:
        coords = [float(t) for t in tokens[:6]]
        pid = int(tokens[6])
    except ValueError:
        return None
    return coords, pid


def load_particles(path: Union[str, Path]) -> AsciiSnapshot:
    """Read ``x y z vx vy vz id`` lines; ``#a = <scale>`` sets the scale factor.

    Other comment lines and lines with fewer than seven values are skipped.
    """
    coords: List[List[float]] = []
    ids: List[int] = []
    scale: Optional[float] = None
    with open(path, encoding="utf-8", errors="replace") as fh:
        for line in fh:
            if line.startswith("#"):
                if line.startswith(_SCALE_PREFIX):
                    scale = _atof(line[len(_SCALE_PREFIX):])
                continue
            parsed = _parse_line(line)
            if parsed is None:
                continue
            coords.append(parsed[0])
            ids.append(parsed[1])
    positions = np.array(coords, dtype=np.float32).reshape(len(coords), 6)
    return AsciiSnapshot(positions=positions, ids=np.array(ids, dtype=np.int64), scale=scale)


def gzip_file(path: Union[str, Path]) -> bool:
    """Compress ``path`` to ``path.gz`` and remove the original.

    Returns False and prints a warning if compression fails.
    """
    src = Path(path)
    dst = src.with_name(src.name + ".gz")
    try:
        with open(src, "rb") as fin, gzip.open(dst, "wb") as fout:
            shutil.copyfileobj(fin, fout)
        src.unlink()
    except OSError:
        print(f"[Warning] Gzip of file {src} failed.", file=sys.stderr)
        return False
    return True