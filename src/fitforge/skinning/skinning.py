"""Linear blend skinning evaluation for SkinnedMesh instances."""

import numpy as np
from numpy.typing import NDArray

from fitforge.constants import SKIN_INFLUENCES
from fitforge.core.mesh import SkinnedMesh


def compute_skinned_positions(mesh: SkinnedMesh) -> NDArray[np.float64]:
    """Posed (V, 3) vertex positions of ``mesh`` under its skeleton.

    Per vertex, as in Three.js ``SkinnedMesh.applyBoneTransform``::

        bind_inv @ sum_k(w_k * bone_matrices[idx_k]) @ bind @ p

    Weights are used as stored (not renormalized), so a vertex with all
    zero weights collapses to the origin.
    """
    if mesh.skeleton is None:
        raise ValueError(f"SkinnedMesh '{mesh.name}' is not bound to a skeleton")

    geom = mesh.geometry
    pos = geom.positions_3d.astype(np.float64)
    if len(pos) == 0:
        return np.zeros((0, 3), dtype=np.float64)

    bone_matrices = mesh.skeleton.update()                       # (B, 4, 4)
    idx = geom.skin_index.reshape(-1, SKIN_INFLUENCES).astype(np.int64)
    w = geom.skin_weight.reshape(-1, SKIN_INFLUENCES).astype(np.float64)

    if len(bone_matrices) == 0:
        blend = np.zeros((len(pos), 4, 4), dtype=np.float64)
    else:
        if idx.max() >= len(bone_matrices):
            raise IndexError(
                f"SkinnedMesh '{mesh.name}' references bone {int(idx.max())} "
                f"but skeleton has {len(bone_matrices)} bones"
            )
        # (V, K, 4, 4) weighted, summed over influences → (V, 4, 4)
        blend = np.einsum("vk,vkij->vij", w, bone_matrices[idx])

    homo = np.concatenate([pos, np.ones((len(pos), 1))], axis=1)  # (V, 4)
    bind_space = homo @ mesh.bind_matrix.T
    skinned = np.einsum("vij,vj->vi", blend, bind_space)
    return (skinned @ mesh.bind_matrix_inverse.T)[:, :3]
