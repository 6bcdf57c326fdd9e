"""4x4 matrix helpers (row-major numpy arrays, column vectors: ``M @ p``)."""

import math

import numpy as np
from trimesh import transformations as tf

from .constants import DEG_TO_RAD

X_AXIS = [1.0, 0.0, 0.0]
Z_AXIS = [0.0, 0.0, 1.0]


def translation(x: float, y: float, z: float) -> np.ndarray:
    return tf.translation_matrix([x, y, z])


def rotation_x(angle: float) -> np.ndarray:
    return tf.rotation_matrix(angle, X_AXIS)


def rotation_z(angle: float) -> np.ndarray:
    return tf.rotation_matrix(angle, Z_AXIS)


def uniform_scale(factor: float) -> np.ndarray:
    return tf.scale_matrix(factor)


def make_perspective_matrix(fovy: float, aspect: float, near: float, far: float) -> np.ndarray:
    """OpenGL-style perspective projection (``fovy`` in radians)."""
    f = 1.0 / math.tan(fovy / 2)
    nf = 1 / (near - far)
    return np.array([
        [f / aspect, 0.0, 0.0, 0.0],
        [0.0, f, 0.0, 0.0],
        [0.0, 0.0, (far + near) * nf, 2 * far * near * nf],
        [0.0, 0.0, -1.0, 0.0],
    ])


def apply_matrix(matrix: np.ndarray, point) -> np.ndarray:
    """Transform a 3D point by a 4x4 matrix, including the perspective divide."""
    x, y, z = point
    out = matrix @ np.array([x, y, z, 1.0])
    return out[:3] / out[3]


def object_matrix(position, rotation_deg, scale) -> np.ndarray:
    """Compose translate · rotate · scale for a placed object.

    ``rotation_deg`` is applied intrinsically about X, then Y, then Z.
    """
    rx, ry, rz = (a * DEG_TO_RAD for a in rotation_deg)
    rotate = tf.euler_matrix(rx, ry, rz, axes="rxyz")
    return tf.translation_matrix(position) @ rotate @ np.diag([*scale, 1.0])
