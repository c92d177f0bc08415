"""Tests for the Wavefront OBJ garment loader."""

import numpy as np
import pytest

from fitforge.loaders.obj_parser import load_obj_file, parse_obj

QUAD_OBJ = """\
# garment panel
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
vt 0 0
vt 1 0
vt 1 1
vt 0 1
f 1/1 2/2 3/3 4/4
"""


def test_parse_quad_triangulated():
    geom = parse_obj(QUAD_OBJ)
    assert geom.vertex_count == 4
    assert geom.triangle_count == 2
    np.testing.assert_array_equal(geom.indices, [0, 1, 2, 0, 2, 3])
    np.testing.assert_array_almost_equal(geom.positions_3d[2], [1, 1, 0])


def test_uvs_mapped_per_vertex():
    geom = parse_obj(QUAD_OBJ)
    np.testing.assert_array_almost_equal(geom.uvs.reshape(-1, 2), [[0, 0], [1, 0], [1, 1], [0, 1]])


def test_normals_computed_when_absent():
    geom = parse_obj(QUAD_OBJ)
    np.testing.assert_array_almost_equal(geom.normals.reshape(-1, 3), np.tile([0, 0, 1], (4, 1)))


def test_explicit_normals_kept():
    text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvn 0 0 -1\nf 1//1 2//1 3//1\n"
    geom = parse_obj(text)
    np.testing.assert_array_almost_equal(geom.normals.reshape(-1, 3), np.tile([0, 0, -1], (3, 1)))
    assert geom.uvs is None


def test_split_uvs_dropped():
    # vertex 1 carries two different UVs across faces (a seam)
    text = (
        "v 0 0 0\nv 1 0 0\nv 0 1 0\nv 1 1 0\n"
        "vt 0 0\nvt 1 0\nvt 0 1\nvt 1 1\nvt 0.5 0.5\n"
        "f 1/1 2/2 3/3\nf 2/5 4/4 3/3\n"
    )
    geom = parse_obj(text)
    assert geom.uvs is None
    assert geom.triangle_count == 2


def test_negative_indices():
    text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nf -3 -2 -1\n"
    geom = parse_obj(text)
    np.testing.assert_array_equal(geom.indices, [0, 1, 2])


def test_bad_face_reference():
    with pytest.raises(ValueError):
        parse_obj("v 0 0 0\nv 1 0 0\nf 1 2 3\n")


def test_load_obj_file(tmp_path):
    path = tmp_path / "panel.obj"
    path.write_text(QUAD_OBJ)
    geom = load_obj_file(path)
    assert geom.vertex_count == 4
