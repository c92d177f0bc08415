"""Shared constants and paths for FitForge."""

from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
ASSETS_DIR = PROJECT_ROOT / "assets"
CONFIG_DIR = ASSETS_DIR / "config"

# Skinning layout
SKIN_INFLUENCES = 4  # bone indices/weights per vertex

# Spatial hash cell sizes (world units, meters for human-scale meshes)
DEFAULT_CELL_SIZE = 0.05   # generic default for an ad hoc SpatialHash
TRANSFER_CELL_SIZE = 0.02  # body->garment transfer uses finer 2 cm cells

# Auto cell sizing: fraction of the body bounding-box diagonal.
# ~1.9 m diagonal * 0.01 ≈ 2 cm, matching the fixed default.
CELL_SIZE_DIAGONAL_FRACTION = 0.01
CELL_SIZE_MODES = ("fixed", "auto")

# Weight-sum tolerance used by transfer diagnostics
WEIGHT_SUM_TOLERANCE = 1e-3
