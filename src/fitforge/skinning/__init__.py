"""Skinning subsystem -- spatial hashing, weight transfer, LBS evaluation."""

from fitforge.skinning.diagnostics import analyze_transfer, check_coincident_deformation
from fitforge.skinning.index_cache import BodyIndexCache
from fitforge.skinning.skeleton import Skeleton
from fitforge.skinning.skinning import compute_skinned_positions
from fitforge.skinning.spatial_hash import SpatialHash, brute_force_closest
from fitforge.skinning.weight_transfer import (
    InvalidInputError,
    TransferConfig,
    resolve_cell_size,
    transfer_weights,
)

__all__ = [
    "BodyIndexCache",
    "InvalidInputError",
    "Skeleton",
    "SpatialHash",
    "TransferConfig",
    "analyze_transfer",
    "brute_force_closest",
    "check_coincident_deformation",
    "compute_skinned_positions",
    "resolve_cell_size",
    "transfer_weights",
]
