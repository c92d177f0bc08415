"""Per-body spatial index cache for repeated garment swaps on one avatar."""

import hashlib
import logging
import weakref
from typing import Optional

from fitforge.core.mesh import MeshInstance, SkinnedMesh
from fitforge.skinning.spatial_hash import SpatialHash
from fitforge.skinning.weight_transfer import (
    TransferConfig,
    resolve_cell_size,
    transfer_weights,
    validate_skinned_source,
)

logger = logging.getLogger(__name__)


def _fingerprint(mesh: MeshInstance) -> str:
    return hashlib.blake2b(mesh.geometry.positions.tobytes(), digest_size=16).hexdigest()


class BodyIndexCache:
    """Keeps one SpatialHash per body mesh.

    Entries are keyed by mesh identity (weakly, so dropping a body frees
    its index) and revalidated against a hash of the body's position
    buffer, so editing the body's vertices forces a rebuild.  Not
    thread-safe; one cache per viewer.
    """

    def __init__(self, config: Optional[TransferConfig] = None):
        # Defaults come from assets/config/weight_transfer.json.
        self.config = config or TransferConfig.from_config()
        self._entries: "weakref.WeakKeyDictionary[MeshInstance, tuple[str, SpatialHash]]" = (
            weakref.WeakKeyDictionary()
        )
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, body_mesh: MeshInstance) -> bool:
        return body_mesh in self._entries

    def get(self, body_mesh: MeshInstance) -> SpatialHash:
        """Return the index for ``body_mesh``, building it if stale or absent."""
        fp = _fingerprint(body_mesh)
        entry = self._entries.get(body_mesh)
        if entry is not None and entry[0] == fp:
            self.hits += 1
            logger.debug("Index cache hit for '%s'", body_mesh.name)
            return entry[1]

        self.misses += 1
        positions = body_mesh.geometry.positions_3d
        cell_size = resolve_cell_size(
            positions,
            self.config.cell_size,
            self.config.cell_size_mode,
            self.config.diagonal_fraction,
        )
        index = SpatialHash(positions, cell_size)
        self._entries[body_mesh] = (fp, index)
        logger.debug(
            "Index cache %s for '%s' (cell_size=%.4f)",
            "rebuild" if entry is not None else "miss", body_mesh.name, cell_size,
        )
        return index

    def transfer(self, body_mesh: SkinnedMesh, garment_mesh: MeshInstance) -> SkinnedMesh:
        """:func:`transfer_weights` reusing the cached body index."""
        validate_skinned_source(body_mesh)
        return transfer_weights(body_mesh, garment_mesh, index=self.get(body_mesh))

    def invalidate(self, body_mesh: Optional[MeshInstance] = None) -> None:
        """Drop one body's index, or every index when ``body_mesh`` is None."""
        if body_mesh is None:
            self._entries.clear()
        else:
            self._entries.pop(body_mesh, None)
