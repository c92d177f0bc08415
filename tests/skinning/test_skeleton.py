"""Tests for Skeleton bind-pose bookkeeping and linear blend skinning."""

import numpy as np
import pytest

from fitforge.core.math_utils import mat4_translation, quat_from_axis_angle, vec3
from fitforge.core.mesh import BufferGeometry, SkinnedMesh
from fitforge.core.scene_graph import SceneNode
from fitforge.skinning.skeleton import Skeleton
from fitforge.skinning.skinning import compute_skinned_positions


def _chain() -> tuple[SceneNode, SceneNode, SceneNode]:
    root = SceneNode(name="hips")
    spine = SceneNode(name="spine")
    spine.set_position(0, 1, 0)
    neck = SceneNode(name="neck")
    neck.set_position(0, 0.5, 0)
    root.add(spine)
    spine.add(neck)
    return root, spine, neck


def _skinned(positions, idx, w, skeleton, bind_matrix=None) -> SkinnedMesh:
    geom = BufferGeometry(positions=np.asarray(positions, dtype=np.float32))
    geom.set_skin_attributes(idx, w)
    mesh = SkinnedMesh(name="m", geometry=geom)
    mesh.bind(skeleton, bind_matrix)
    return mesh


def test_bind_pose_matrices_are_identity():
    skeleton = Skeleton(list(_chain()))
    mats = skeleton.update()
    assert mats.shape == (3, 4, 4)
    np.testing.assert_array_almost_equal(mats, np.tile(np.eye(4), (3, 1, 1)))


def test_bone_inverses_shape_checked():
    with pytest.raises(ValueError):
        Skeleton(list(_chain()), bone_inverses=np.zeros((2, 4, 4)))


def test_explicit_bone_inverses_used():
    root, spine, neck = _chain()
    inverses = np.tile(np.eye(4), (3, 1, 1))
    skeleton = Skeleton([root, spine, neck], bone_inverses=inverses)
    mats = skeleton.update()
    np.testing.assert_array_almost_equal(mats[1], mat4_translation(0, 1, 0))


def test_get_bone_by_name_and_len():
    root, spine, neck = _chain()
    skeleton = Skeleton([root, spine, neck])
    assert len(skeleton) == 3
    assert skeleton.get_bone_by_name("spine") is spine
    assert skeleton.get_bone_by_name("tail") is None


def test_pose_restores_bind():
    root, spine, neck = _chain()
    skeleton = Skeleton([root, spine, neck])
    spine.set_quaternion(quat_from_axis_angle(vec3(1, 0, 0), 0.8))
    assert not np.allclose(skeleton.update(), np.eye(4))
    skeleton.pose()
    np.testing.assert_array_almost_equal(skeleton.bone_matrices, np.tile(np.eye(4), (3, 1, 1)))


def test_bones_under_unlisted_parent_update():
    # Armature root is not itself a bone
    armature = SceneNode(name="armature")
    root, spine, neck = _chain()
    armature.add(root)
    skeleton = Skeleton([root, spine, neck])
    armature.set_position(0, 0, 2)
    mats = skeleton.update()
    np.testing.assert_array_almost_equal(mats[2], mat4_translation(0, 0, 2))


def test_skinning_identity_in_bind_pose():
    skeleton = Skeleton(list(_chain()))
    pts = np.array([[0, 0.2, 0], [0.1, 1.2, 0], [0, 1.7, 0.1]])
    mesh = _skinned(pts, [[0, 0, 0, 0], [1, 0, 0, 0], [2, 1, 0, 0]],
                    [[1, 0, 0, 0], [1, 0, 0, 0], [0.5, 0.5, 0, 0]], skeleton)
    np.testing.assert_array_almost_equal(compute_skinned_positions(mesh), pts, decimal=6)


def test_skinning_rotates_about_joint():
    root, spine, neck = _chain()
    skeleton = Skeleton([root, spine, neck])
    mesh = _skinned([[0, 2, 0]], [[1, 0, 0, 0]], [[1, 0, 0, 0]], skeleton)
    # 90° about z at the spine joint (0,1,0): (0,2,0) → (-1,1,0)
    spine.set_quaternion(quat_from_axis_angle(vec3(0, 0, 1), np.pi / 2))
    np.testing.assert_array_almost_equal(compute_skinned_positions(mesh), [[-1, 1, 0]])


def test_skinning_blends_linearly():
    root, spine, neck = _chain()
    skeleton = Skeleton([root, spine, neck])
    mesh = _skinned([[0, 1.5, 0]], [[0, 1, 0, 0]], [[0.5, 0.5, 0, 0]], skeleton)
    spine.set_position(1, 1, 0)  # translate spine by +1 x
    np.testing.assert_array_almost_equal(compute_skinned_positions(mesh), [[0.5, 1.5, 0]])


def test_skinning_respects_bind_matrix():
    root, spine, neck = _chain()
    skeleton = Skeleton([root, spine, neck])
    bind = mat4_translation(0, 1, 0)
    mesh = _skinned([[0, 1, 0]], [[1, 0, 0, 0]], [[1, 0, 0, 0]], skeleton, bind_matrix=bind)
    # vertex lives at world (0,2,0); rotate spine 90° about z
    spine.set_quaternion(quat_from_axis_angle(vec3(0, 0, 1), np.pi / 2))
    # world result (-1,1,0), back in mesh space subtract bind translation
    np.testing.assert_array_almost_equal(compute_skinned_positions(mesh), [[-1, 0, 0]])


def test_zero_weights_collapse_to_origin():
    skeleton = Skeleton(list(_chain()))
    mesh = _skinned([[0.3, 1.0, 0.2]], [[0, 0, 0, 0]], [[0, 0, 0, 0]], skeleton)
    np.testing.assert_array_almost_equal(compute_skinned_positions(mesh), [[0, 0, 0]])


def test_bone_index_out_of_range():
    skeleton = Skeleton(list(_chain()))
    mesh = _skinned([[0, 0, 0]], [[5, 0, 0, 0]], [[1, 0, 0, 0]], skeleton)
    with pytest.raises(IndexError):
        compute_skinned_positions(mesh)


def test_unbound_mesh_raises():
    geom = BufferGeometry(positions=np.zeros((1, 3)))
    geom.set_skin_attributes([[0, 0, 0, 0]], [[1, 0, 0, 0]])
    with pytest.raises(ValueError):
        compute_skinned_positions(SkinnedMesh(name="m", geometry=geom))
