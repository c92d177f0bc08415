"""Bone list + bind-pose inverse matrices shared by skinned meshes."""

import logging
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from fitforge.core.math_utils import mat4_inverse
from fitforge.core.scene_graph import SceneNode

logger = logging.getLogger(__name__)


class Skeleton:
    """Ordered bones whose current pose drives skinned vertices.

    Mirrors Three.js Skeleton: ``bone_inverses[i]`` is the inverse of bone
    ``i``'s world matrix in the bind pose, and ``bone_matrices[i]`` (from
    :meth:`update`) is ``world[i] @ bone_inverses[i]``, i.e. identity for
    every bone while the skeleton sits in its bind pose.

    Parameters
    ----------
    bones : list of SceneNode
        Bone nodes.  A vertex's skin index refers to a position in this list.
    bone_inverses : (B, 4, 4) array, optional
        Bind-pose inverse matrices.  Computed from the bones' current world
        transforms when omitted.
    """

    def __init__(
        self,
        bones: list[SceneNode],
        bone_inverses: Optional[NDArray[np.float64]] = None,
    ):
        self.bones: list[SceneNode] = list(bones)
        self.bone_matrices: NDArray[np.float64] = np.tile(
            np.eye(4, dtype=np.float64), (len(self.bones), 1, 1),
        )
        # Bind-pose local TRS, restored by pose()
        self._bind_locals = [
            (b.position.copy(), b.quaternion.copy(), b.scale.copy()) for b in self.bones
        ]

        if bone_inverses is None:
            self.calculate_inverses()
        else:
            inv = np.asarray(bone_inverses, dtype=np.float64)
            if inv.shape != (len(self.bones), 4, 4):
                raise ValueError(
                    f"bone_inverses must have shape ({len(self.bones)}, 4, 4), got {inv.shape}"
                )
            self.bone_inverses = inv.copy()

    def __len__(self) -> int:
        return len(self.bones)

    def _update_world(self) -> None:
        roots: list[SceneNode] = []
        for bone in self.bones:
            root = bone.get_root()
            if not any(r is root for r in roots):
                roots.append(root)
        for root in roots:
            root.update_world_matrix()

    def calculate_inverses(self) -> None:
        """Snapshot the current pose as the bind pose."""
        self._update_world()
        if self.bones:
            self.bone_inverses = np.stack([mat4_inverse(b.world_matrix) for b in self.bones])
        else:
            self.bone_inverses = np.zeros((0, 4, 4), dtype=np.float64)
        logger.debug("Bind pose captured for %d bones", len(self.bones))

    def update(self) -> NDArray[np.float64]:
        """Recompute and return per-bone skinning matrices (B, 4, 4)."""
        self._update_world()
        if self.bones:
            world = np.stack([b.world_matrix for b in self.bones])
            self.bone_matrices = world @ self.bone_inverses
        return self.bone_matrices

    def pose(self) -> None:
        """Restore the local transforms the bones had when the skeleton was built."""
        for bone, (pos, quat, scale) in zip(self.bones, self._bind_locals):
            bone.set_position(*pos)
            bone.set_quaternion(quat)
            bone.set_scale(*scale)
        self.update()

    def get_bone_by_name(self, name: str) -> Optional[SceneNode]:
        for bone in self.bones:
            if bone.name == name:
                return bone
        return None
