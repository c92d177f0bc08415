"""Wavefront OBJ parser → BufferGeometry for authored garment meshes."""

import logging

import numpy as np

from fitforge.core.mesh import BufferGeometry

logger = logging.getLogger(__name__)


def _resolve(token: str, count: int) -> int:
    """OBJ index (1-based, negative = relative to end) → 0-based."""
    i = int(token)
    if i < 0:
        i += count
    else:
        i -= 1
    if not 0 <= i < count:
        raise ValueError(f"OBJ face references element {token}, only {count} defined")
    return i


def parse_obj(text: str) -> BufferGeometry:
    """Parse a Wavefront OBJ string into indexed BufferGeometry.

    Supports ``v``, ``vt``, ``vn``, and ``f`` lines.  Polygons are fan
    triangulated.  UVs and normals are kept only when the file maps
    exactly one of each to every position (the common export layout);
    otherwise UVs are dropped and normals are recomputed.

    Parameters
    ----------
    text : str
        The OBJ file contents.

    Returns
    -------
    BufferGeometry
        Indexed geometry with positions, normals, triangle indices and,
        where available, UVs.

    Raises
    ------
    ValueError
        A face references an undefined vertex, UV or normal.
    """
    positions: list[list[float]] = []
    texcoords: list[list[float]] = []
    normals: list[list[float]] = []
    faces: list[list[tuple[int, int, int]]] = []  # (v, vt, vn), -1 when absent

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        key = parts[0]

        if key == "v" and len(parts) >= 4:
            positions.append([float(parts[1]), float(parts[2]), float(parts[3])])
        elif key == "vt" and len(parts) >= 3:
            texcoords.append([float(parts[1]), float(parts[2])])
        elif key == "vn" and len(parts) >= 4:
            normals.append([float(parts[1]), float(parts[2]), float(parts[3])])
        elif key == "f":
            face = []
            for token in parts[1:]:
                fields = token.split("/")
                vi = _resolve(fields[0], len(positions))
                ti = _resolve(fields[1], len(texcoords)) if len(fields) >= 2 and fields[1] else -1
                ni = _resolve(fields[2], len(normals)) if len(fields) >= 3 and fields[2] else -1
                face.append((vi, ti, ni))
            faces.append(face)

    vertex_count = len(positions)
    pos_arr = np.array(positions, dtype=np.float32).reshape(-1)

    tri_indices: list[int] = []
    for face in faces:
        for k in range(1, len(face) - 1):
            tri_indices.extend([face[0][0], face[k][0], face[k + 1][0]])
    idx_arr = np.array(tri_indices, dtype=np.uint32)

    uv_arr = _per_position(texcoords, faces, vertex_count, slot=1, width=2)
    norm_arr = _per_position(normals, faces, vertex_count, slot=2, width=3)

    geom = BufferGeometry(
        positions=pos_arr,
        normals=norm_arr,
        indices=idx_arr,
        vertex_count=vertex_count,
        uvs=uv_arr,
    )
    if norm_arr is None:
        geom.compute_normals()
    if texcoords and uv_arr is None:
        logger.debug("OBJ UVs are split per face corner; UVs dropped")
    return geom


def _per_position(
    values: list[list[float]],
    faces: list[list[tuple[int, int, int]]],
    vertex_count: int,
    slot: int,
    width: int,
) -> np.ndarray | None:
    """Map face-corner attributes onto positions if the mapping is 1:1."""
    if not values or not faces:
        return None
    mapping = np.full(vertex_count, -1, dtype=np.int64)
    for face in faces:
        for corner in face:
            vi, ai = corner[0], corner[slot]
            if ai < 0:
                return None
            if mapping[vi] == -1:
                mapping[vi] = ai
            elif mapping[vi] != ai:
                return None
    if np.any(mapping < 0):
        return None
    return np.array(values, dtype=np.float32)[mapping].reshape(-1)


def load_obj_file(path) -> BufferGeometry:
    """Load an OBJ file from disk.

    Parameters
    ----------
    path : str or Path
        Path to the ``.obj`` file.

    Returns
    -------
    BufferGeometry
    """
    with open(path, "r") as f:
        text = f.read()
    return parse_obj(text)
