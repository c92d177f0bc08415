"""Uniform-grid spatial hash for nearest-vertex queries.

Space is split into cubic cells of edge ``cell_size``; each occupied cell
keeps the indices of the points that fall inside it.  A query inspects the
3x3x3 block of cells around the target, then widens the search just enough
to prove the candidate is the true nearest point.  When the whole block is
empty (sparse region) the query falls back to an exhaustive scan, so a
non-empty index always answers.
"""

import logging
import math

import numpy as np
from numpy.typing import NDArray

from fitforge.constants import DEFAULT_CELL_SIZE

logger = logging.getLogger(__name__)

CellKey = tuple[int, int, int]

# Offsets of the 3x3x3 neighbourhood, x-major then y then z.
_NEIGHBOR_OFFSETS: tuple[CellKey, ...] = tuple(
    (dx, dy, dz)
    for dx in (-1, 0, 1)
    for dy in (-1, 0, 1)
    for dz in (-1, 0, 1)
)


def _as_points(points: NDArray) -> NDArray[np.float64]:
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim == 1:
        if len(pts) % 3 != 0:
            raise ValueError(f"Flat point buffer length {len(pts)} is not a multiple of 3")
        pts = pts.reshape(-1, 3)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"Expected (N, 3) points, got shape {pts.shape}")
    return pts


def brute_force_closest(points: NDArray, target) -> int:
    """Index of the point nearest to ``target`` by exhaustive scan.

    Returns -1 for an empty point set.  Ties resolve to the lowest index.
    """
    pts = _as_points(points)
    if len(pts) == 0:
        return -1
    diff = pts - np.asarray(target, dtype=np.float64)
    d2 = np.einsum("ij,ij->i", diff, diff)
    return int(np.argmin(d2))


class SpatialHash:
    """Grid-bucketed point set answering closest-point queries.

    Parameters
    ----------
    points : array_like
        (N, 3) positions, or a flat (3N,) buffer.  Copied at build time;
        later changes to the caller's array do not affect the index.
    cell_size : float
        Edge length of a grid cell in world units.  Must be positive.

    Raises
    ------
    ValueError
        Bad cell size, point shape, or non-finite coordinates.
    """

    def __init__(self, points: NDArray, cell_size: float = DEFAULT_CELL_SIZE):
        cell_size = float(cell_size)
        if not math.isfinite(cell_size) or cell_size <= 0.0:
            raise ValueError(f"cell_size must be a positive finite number, got {cell_size}")

        self.cell_size = cell_size
        self.points = _as_points(points).copy()
        if not np.isfinite(self.points).all():
            raise ValueError("SpatialHash points must be finite (found NaN or inf)")
        self.cells: dict[CellKey, list[int]] = {}
        self.fallback_count = 0

        if len(self.points):
            keys = np.floor(self.points / cell_size).astype(np.int64)
            for i, key in enumerate(map(tuple, keys.tolist())):
                bucket = self.cells.get(key)
                if bucket is None:
                    self.cells[key] = [i]
                else:
                    bucket.append(i)

        logger.debug(
            "SpatialHash built: %d points in %d cells (cell_size=%.4f)",
            len(self.points), len(self.cells), cell_size,
        )

    def __len__(self) -> int:
        return len(self.points)

    @property
    def cell_count(self) -> int:
        return len(self.cells)

    def cell_key(self, point) -> CellKey:
        """Grid cell containing ``point``."""
        s = self.cell_size
        return (
            math.floor(float(point[0]) / s),
            math.floor(float(point[1]) / s),
            math.floor(float(point[2]) / s),
        )

    def find_closest(self, target) -> int:
        """Return the index of the indexed point nearest to ``target``.

        Distances are compared squared.  Returns -1 only when the index
        holds no points; a NaN or inf target raises ValueError.  Equal
        distances keep the first candidate met (cell order, then bucket
        order); callers must not depend on it.
        """
        if len(self.points) == 0:
            return -1

        t = np.asarray(target, dtype=np.float64).reshape(3)
        if not np.isfinite(t).all():
            raise ValueError(f"Query point must be finite, got {t}")
        kx, ky, kz = self.cell_key(t)

        candidates: list[int] = []
        for dx, dy, dz in _NEIGHBOR_OFFSETS:
            bucket = self.cells.get((kx + dx, ky + dy, kz + dz))
            if bucket:
                candidates.extend(bucket)

        if not candidates:
            self.fallback_count += 1
            logger.debug("SpatialHash: empty neighbourhood at %s, brute-force scan", t)
            return brute_force_closest(self.points, t)

        best, best_d2 = self._closest_of(candidates, t)

        # Anything outside the 3x3x3 block is at least `clearance` away.
        # A farther candidate than that may be beaten by a point in an
        # outer cell, so rescan every cell the best-distance sphere touches.
        clearance = self._block_clearance(t, (kx, ky, kz))
        if best_d2 > clearance * clearance:
            best, best_d2 = self._refine(t, best, best_d2)

        return best

    def find_closest_many(self, targets: NDArray) -> NDArray[np.int64]:
        """Vector form of :meth:`find_closest`; one index per target row."""
        pts = _as_points(targets)
        out = np.full(len(pts), -1, dtype=np.int64)
        for i, t in enumerate(pts):
            out[i] = self.find_closest(t)
        return out

    # ── internals ──────────────────────────────────────────────────────

    def _closest_of(self, candidates: list[int], t: NDArray) -> tuple[int, float]:
        idx = np.asarray(candidates, dtype=np.int64)
        diff = self.points[idx] - t
        d2 = np.einsum("ij,ij->i", diff, diff)
        j = int(np.argmin(d2))  # first minimum in candidate order
        return int(idx[j]), float(d2[j])

    def _block_clearance(self, t: NDArray, key: CellKey) -> float:
        s = self.cell_size
        lo = (np.asarray(key, dtype=np.float64) - 1.0) * s
        hi = (np.asarray(key, dtype=np.float64) + 2.0) * s
        return float(min(np.min(t - lo), np.min(hi - t)))

    def _refine(self, t: NDArray, best: int, best_d2: float) -> tuple[int, float]:
        """Scan every cell within ``sqrt(best_d2)`` of ``t``; keep strict improvements."""
        radius = math.sqrt(best_d2)
        lo = self.cell_key(t - radius)
        hi = self.cell_key(t + radius)
        span = (hi[0] - lo[0] + 1) * (hi[1] - lo[1] + 1) * (hi[2] - lo[2] + 1)

        candidates: list[int] = []
        if span <= len(self.cells):
            for x in range(lo[0], hi[0] + 1):
                for y in range(lo[1], hi[1] + 1):
                    for z in range(lo[2], hi[2] + 1):
                        bucket = self.cells.get((x, y, z))
                        if bucket:
                            candidates.extend(bucket)
        else:
            for (x, y, z), bucket in self.cells.items():
                if lo[0] <= x <= hi[0] and lo[1] <= y <= hi[1] and lo[2] <= z <= hi[2]:
                    candidates.extend(bucket)

        if candidates:
            idx, d2 = self._closest_of(candidates, t)
            if d2 < best_d2:
                return idx, d2
        return best, best_d2
