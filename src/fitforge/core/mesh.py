"""Mesh data structures for body and garment geometry (no GL dependencies)."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import numpy as np
from numpy.typing import NDArray

from fitforge.constants import SKIN_INFLUENCES
from fitforge.core.material import Material
from fitforge.core.math_utils import Mat4, mat4_identity, mat4_inverse

if TYPE_CHECKING:
    from fitforge.skinning.skeleton import Skeleton


@dataclass
class BufferGeometry:
    """Stores vertex attribute arrays for a mesh.

    All buffers are flat arrays, one fixed-width record per vertex.
    positions: Nx3 float32 (x,y,z per vertex)
    normals: optional Nx3 float32
    indices: triangle index array (uint32), optional for non-indexed geometry
    uvs: optional Nx2 float32 texture coordinates
    skin_index: optional Nx4 uint16 bone indices
    skin_weight: optional Nx4 float32 bone weights
    """
    positions: NDArray[np.float32]
    normals: Optional[NDArray[np.float32]] = None
    indices: Optional[NDArray[np.uint32]] = None
    vertex_count: int = 0
    uvs: Optional[NDArray[np.float32]] = None
    skin_index: Optional[NDArray[np.uint16]] = None
    skin_weight: Optional[NDArray[np.float32]] = None

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float32).reshape(-1)
        if self.vertex_count == 0:
            self.vertex_count = len(self.positions) // 3

    @property
    def positions_3d(self) -> NDArray[np.float32]:
        """(N, 3) view of the position buffer."""
        return self.positions.reshape(-1, 3)

    @property
    def triangle_count(self) -> int:
        if self.indices is not None:
            return len(self.indices) // 3
        return self.vertex_count // 3

    @property
    def has_indices(self) -> bool:
        return self.indices is not None and len(self.indices) > 0

    @property
    def has_skin_attributes(self) -> bool:
        return self.skin_index is not None and self.skin_weight is not None

    def set_skin_attributes(
        self,
        skin_index: NDArray,
        skin_weight: NDArray,
    ) -> None:
        """Attach bone index/weight buffers (SKIN_INFLUENCES per vertex)."""
        expected = SKIN_INFLUENCES * self.vertex_count
        skin_index = np.asarray(skin_index, dtype=np.uint16).reshape(-1)
        skin_weight = np.asarray(skin_weight, dtype=np.float32).reshape(-1)
        if len(skin_index) != expected or len(skin_weight) != expected:
            raise ValueError(
                f"Skin buffers must hold {expected} values "
                f"({SKIN_INFLUENCES} per vertex), got "
                f"{len(skin_index)} indices and {len(skin_weight)} weights"
            )
        self.skin_index = skin_index
        self.skin_weight = skin_weight

    def compute_normals(self) -> None:
        """Compute smooth per-vertex normals from triangle indices."""
        pos = self.positions_3d.astype(np.float64)
        norms = np.zeros_like(pos)

        if self.has_indices:
            tri = self.indices.reshape(-1, 3).astype(np.int64)
        else:
            tri = np.arange(self.vertex_count - self.vertex_count % 3).reshape(-1, 3)

        if len(tri):
            v0, v1, v2 = pos[tri[:, 0]], pos[tri[:, 1]], pos[tri[:, 2]]
            face_n = np.cross(v1 - v0, v2 - v0)
            for k in range(3):
                np.add.at(norms, tri[:, k], face_n)

        lengths = np.linalg.norm(norms, axis=1, keepdims=True)
        lengths = np.maximum(lengths, 1e-10)
        norms /= lengths
        self.normals = norms.ravel().astype(np.float32)

    def clone(self) -> "BufferGeometry":
        """Create a deep copy of every buffer."""
        def _copy(arr):
            return arr.copy() if arr is not None else None

        return BufferGeometry(
            positions=self.positions.copy(),
            normals=_copy(self.normals),
            indices=_copy(self.indices),
            vertex_count=self.vertex_count,
            uvs=_copy(self.uvs),
            skin_index=_copy(self.skin_index),
            skin_weight=_copy(self.skin_weight),
        )


@dataclass(eq=False)
class MeshInstance:
    """A mesh with material, linking geometry to rendering properties.

    Compared and hashed by identity so meshes can key caches.
    """
    name: str
    geometry: BufferGeometry
    material: Material = field(default_factory=Material)
    visible: bool = True

    @property
    def positions(self) -> NDArray[np.float32]:
        return self.geometry.positions

    @property
    def vertex_count(self) -> int:
        return self.geometry.vertex_count


@dataclass(eq=False)
class SkinnedMesh(MeshInstance):
    """A mesh whose vertices follow a skeleton via per-vertex bone weights.

    The geometry must carry ``skin_index`` and ``skin_weight`` buffers of
    ``4 * vertex_count`` values; this is checked at construction.  The
    skeleton is held by reference (several meshes may share one).
    """
    skeleton: Optional["Skeleton"] = None
    bind_matrix: Mat4 = field(default_factory=mat4_identity)
    bind_matrix_inverse: Mat4 = field(default_factory=mat4_identity)

    def __post_init__(self):
        geom = self.geometry
        if not geom.has_skin_attributes:
            raise ValueError(
                f"SkinnedMesh '{self.name}' requires skin_index and skin_weight attributes"
            )
        expected = SKIN_INFLUENCES * geom.vertex_count
        if len(geom.skin_index) != expected or len(geom.skin_weight) != expected:
            raise ValueError(
                f"SkinnedMesh '{self.name}': skin buffers must hold {expected} values, "
                f"got {len(geom.skin_index)} indices and {len(geom.skin_weight)} weights"
            )
        self.bind_matrix = np.asarray(self.bind_matrix, dtype=np.float64)
        self.bind_matrix_inverse = mat4_inverse(self.bind_matrix)

    def bind(self, skeleton: "Skeleton", bind_matrix: Optional[Mat4] = None) -> None:
        """Attach ``skeleton`` (by reference) with the given bind matrix.

        The bind matrix is copied; when omitted the current one is kept.
        """
        self.skeleton = skeleton
        if bind_matrix is not None:
            self.bind_matrix = np.array(bind_matrix, dtype=np.float64)
        self.bind_matrix_inverse = mat4_inverse(self.bind_matrix)
