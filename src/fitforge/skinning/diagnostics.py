"""Transfer diagnostics: detect garments that will not follow the skeleton.

A failed transfer does not raise; it shows up as vertices stuck at the bind
pose or collapsed to the origin.  These helpers make that visible
structurally so tests and tools can assert on it:

1. Analyze the synthesized skin buffers (zero-weight vertices, weight sums,
   bone indices outside the skeleton)
2. Pose body and garment together and measure how far garment vertices
   drift from body vertices they coincide with

Usage:
    report = analyze_transfer(garment)
    if report.is_degenerate: ...
    check = check_coincident_deformation(body, garment)
    print(format_report(report, check))
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from fitforge.constants import SKIN_INFLUENCES, TRANSFER_CELL_SIZE, WEIGHT_SUM_TOLERANCE
from fitforge.core.mesh import SkinnedMesh
from fitforge.skinning.skinning import compute_skinned_positions
from fitforge.skinning.spatial_hash import SpatialHash


@dataclass
class TransferReport:
    """Skin buffer statistics for one transferred mesh."""
    mesh_name: str
    vertex_count: int
    zero_weight_count: int
    unnormalized_count: int      # |sum(w) - 1| > tolerance, zero-weight verts excluded
    out_of_range_count: int      # verts referencing a bone the skeleton lacks
    min_weight_sum: float
    max_weight_sum: float
    zero_weight_vertices: np.ndarray = field(
        repr=False, default_factory=lambda: np.array([], dtype=np.int64),
    )

    @property
    def is_degenerate(self) -> bool:
        """True when no vertex has any weight (e.g. empty body source)."""
        return self.vertex_count > 0 and self.zero_weight_count == self.vertex_count

    @property
    def is_clean(self) -> bool:
        return (
            self.zero_weight_count == 0
            and self.unnormalized_count == 0
            and self.out_of_range_count == 0
        )


@dataclass
class CoincidenceCheck:
    """Posed deviation between garment vertices and coincident body vertices."""
    matched_count: int
    max_deviation: float
    mean_deviation: float


def analyze_transfer(
    mesh: SkinnedMesh,
    bone_count: Optional[int] = None,
    tolerance: float = WEIGHT_SUM_TOLERANCE,
) -> TransferReport:
    """Inspect ``mesh``'s skin buffers.

    ``bone_count`` defaults to the size of the bound skeleton; with neither
    available, bone index range is not checked.
    """
    idx = mesh.geometry.skin_index.reshape(-1, SKIN_INFLUENCES)
    w = mesh.geometry.skin_weight.reshape(-1, SKIN_INFLUENCES).astype(np.float64)
    sums = w.sum(axis=1)

    zero = np.flatnonzero(np.all(w == 0.0, axis=1))
    weighted = sums[np.any(w != 0.0, axis=1)]
    unnormalized = int(np.count_nonzero(np.abs(weighted - 1.0) > tolerance))

    if bone_count is None and mesh.skeleton is not None:
        bone_count = len(mesh.skeleton)
    out_of_range = 0
    if bone_count is not None and len(idx):
        # Only influences that carry weight matter
        bad = (idx >= bone_count) & (w != 0.0)
        out_of_range = int(np.count_nonzero(bad.any(axis=1)))

    return TransferReport(
        mesh_name=mesh.name,
        vertex_count=len(w),
        zero_weight_count=len(zero),
        unnormalized_count=unnormalized,
        out_of_range_count=out_of_range,
        min_weight_sum=float(sums.min()) if len(sums) else 0.0,
        max_weight_sum=float(sums.max()) if len(sums) else 0.0,
        zero_weight_vertices=zero,
    )


def check_coincident_deformation(
    body: SkinnedMesh,
    garment: SkinnedMesh,
    match_distance: float = 1e-6,
) -> CoincidenceCheck:
    """Pose both meshes and compare garment vertices lying on body vertices.

    Both meshes are evaluated under the current skeleton pose.  Garment
    vertices farther than ``match_distance`` from every body vertex are
    ignored.  A correct transfer gives ``max_deviation`` ~ 0.
    """
    body_rest = body.geometry.positions_3d
    garment_rest = garment.geometry.positions_3d
    if len(body_rest) == 0 or len(garment_rest) == 0:
        return CoincidenceCheck(matched_count=0, max_deviation=0.0, mean_deviation=0.0)

    index = SpatialHash(body_rest, max(TRANSFER_CELL_SIZE, match_distance))
    nearest = index.find_closest_many(garment_rest)
    rest_gap = np.linalg.norm(
        garment_rest.astype(np.float64) - body_rest[nearest].astype(np.float64), axis=1,
    )
    matched = np.flatnonzero(rest_gap <= match_distance)
    if len(matched) == 0:
        return CoincidenceCheck(matched_count=0, max_deviation=0.0, mean_deviation=0.0)

    body_posed = compute_skinned_positions(body)
    garment_posed = compute_skinned_positions(garment)
    dev = np.linalg.norm(garment_posed[matched] - body_posed[nearest[matched]], axis=1)
    return CoincidenceCheck(
        matched_count=len(matched),
        max_deviation=float(dev.max()),
        mean_deviation=float(dev.mean()),
    )


def format_report(report: TransferReport, check: Optional[CoincidenceCheck] = None) -> str:
    """Human-readable multi-line summary."""
    lines = [
        f"=== Transfer report: {report.mesh_name} ===",
        f"  vertices:            {report.vertex_count}",
        f"  zero-weight:         {report.zero_weight_count}",
        f"  unnormalized:        {report.unnormalized_count}",
        f"  bone out of range:   {report.out_of_range_count}",
        f"  weight sum range:    [{report.min_weight_sum:.4f}, {report.max_weight_sum:.4f}]",
    ]
    if report.is_degenerate:
        lines.append("  DEGENERATE: no vertex carries weight (garment will collapse)")
    if check is not None:
        lines.append(
            f"  coincident verts:    {check.matched_count} "
            f"(max dev {check.max_deviation:.6f}, mean {check.mean_deviation:.6f})"
        )
    return "\n".join(lines)
