"""Tests for math_utils module."""

import numpy as np

from fitforge.core.math_utils import (
    vec3, mat4_identity, mat4_translation, mat4_from_quaternion, mat4_compose,
    mat4_inverse, quat_identity, quat_from_axis_angle, normalize,
    transform_point,
)


def test_vec3():
    v = vec3(1, 2, 3)
    assert v.shape == (3,)
    np.testing.assert_array_equal(v, [1, 2, 3])


def test_mat4_translation():
    m = mat4_translation(1, 2, 3)
    p = transform_point(m, vec3(0, 0, 0))
    np.testing.assert_array_almost_equal(p, [1, 2, 3])


def test_quat_identity_is_identity_matrix():
    np.testing.assert_array_almost_equal(mat4_from_quaternion(quat_identity()), np.eye(4))


def test_quat_from_axis_angle_rotates():
    q = quat_from_axis_angle(vec3(0, 0, 1), np.pi / 2)
    p = transform_point(mat4_from_quaternion(q), vec3(1, 0, 0))
    np.testing.assert_array_almost_equal(p, [0, 1, 0], decimal=10)


def test_mat4_compose_trs():
    q = quat_from_axis_angle(vec3(0, 1, 0), np.pi / 2)
    m = mat4_compose(vec3(1, 0, 0), q, vec3(2, 2, 2))
    # scale, then rotate (z → x), then translate
    p = transform_point(m, vec3(0, 0, 1))
    np.testing.assert_array_almost_equal(p, [3, 0, 0], decimal=10)


def test_mat4_inverse_roundtrip():
    m = mat4_compose(vec3(1, 2, 3), quat_from_axis_angle(vec3(1, 1, 0), 0.7), vec3(1, 2, 1))
    np.testing.assert_array_almost_equal(m @ mat4_inverse(m), mat4_identity())


def test_normalize_zero_vector():
    np.testing.assert_array_equal(normalize(vec3()), [0, 0, 0])

