"""Keep a perspective camera and the world anchor aligned with a 2D map viewport."""

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from . import config
from .constants import DEG_TO_RAD, MAX_VALID_LATITUDE, WORLD_SIZE, WORLD_SIZE_RATIO
from .geometry import (
    apply_matrix,
    make_perspective_matrix,
    rotation_x,
    rotation_z,
    translation,
    uniform_scale,
)
from .models import BoundingBox, ViewportState
from .projection import clamp, mercator_x, mercator_y, unproject

logger = logging.getLogger(__name__)

# Moves the world so its origin matches the GL origin the host renders from
_TRANSLATE_TO_GL_ORIGIN = translation(WORLD_SIZE / 2, -WORLD_SIZE / 2, 0)
_FLIP_Y = rotation_z(np.pi)


@dataclass
class Camera:
    """Perspective camera owned by :class:`CameraSync`.

    ``fov`` is the vertical field of view in degrees.
    """
    fov: float
    aspect: float
    near: float = 0.001
    far: float = 1e21
    projection_matrix: np.ndarray = field(default_factory=lambda: np.eye(4))
    world_matrix: np.ndarray = field(default_factory=lambda: np.eye(4))

    @property
    def projection_matrix_inverse(self) -> np.ndarray:
        return np.linalg.inv(self.projection_matrix)

    @property
    def view_matrix(self) -> np.ndarray:
        return np.linalg.inv(self.world_matrix)

    @property
    def position(self) -> np.ndarray:
        return self.world_matrix[:3, 3].copy()

    def ray_from_ndc(self, x: float, y: float) -> Tuple[np.ndarray, np.ndarray]:
        """World-space ray from the camera through normalized device coords (x, y)."""
        origin = self.position
        target = apply_matrix(self.world_matrix,
                              apply_matrix(self.projection_matrix_inverse, (x, y, 0.5)))
        direction = target - origin
        return origin, direction / np.linalg.norm(direction)


class CameraSync:
    """Re-derive camera and world-anchor matrices from the host viewport.

    Every pass recomputes the matrices from scratch; nothing is
    accumulated between viewport events. The projection matrix is only
    rebuilt on resize.
    """

    def __init__(self, world, state: Optional[ViewportState] = None):
        self.world = world
        self.host = None
        self.state = state
        fov = state.fov if state else config.DEFAULT_FOV
        aspect = state.width / state.height if state else 1.0
        self.camera = Camera(fov=fov, aspect=aspect)

    # ── Host wiring ──────────────────────────────────────────────────────

    def attach(self, host):
        """Subscribe to the host's move/resize notifications and sync once."""
        self.host = host
        host.on("move", self._on_move)
        host.on("resize", self._on_resize)
        self.synchronize(host.get_state(), True)

    def detach(self):
        """Stop listening to the host and release the camera."""
        if self.host is not None:
            self.host.off("move", self._on_move)
            self.host.off("resize", self._on_resize)
            self.host = None
        self.camera = None
        self.state = None

    def _on_move(self, _event=None):
        self.synchronize(self.host.get_state(), False)

    def _on_resize(self, _event=None):
        self.synchronize(self.host.get_state(), True)

    # ── Synchronization ──────────────────────────────────────────────────

    def synchronize(self, state: ViewportState, rebuild_projection: bool):
        self.state = state
        if rebuild_projection:
            self._update_projection_matrix(state)
        self._update_camera_world_matrix(state)
        self._update_world_matrix(state)
        logger.debug(f"Synchronized camera: zoom={state.zoom:.3f} bearing={state.bearing:.1f} "
                     f"pitch={state.pitch:.1f} projection={'rebuilt' if rebuild_projection else 'kept'}")

    def _update_projection_matrix(self, state: ViewportState):
        offset_x, offset_y = state.center_offset
        camera = self.camera
        camera.fov = state.fov
        camera.aspect = state.width / state.height
        camera.near = state.height / 50
        camera.far = state.far_z

        matrix = make_perspective_matrix(state.fov * DEG_TO_RAD, camera.aspect,
                                         camera.near, camera.far)
        # Off-center viewport: shear the frustum toward the visual center
        matrix[0, 2] += -offset_x * 2 / state.width
        matrix[1, 2] += offset_y * 2 / state.height
        camera.projection_matrix = matrix

    def _update_camera_world_matrix(self, state: ViewportState):
        pitch = state.pitch * DEG_TO_RAD
        bearing = state.bearing * DEG_TO_RAD

        matrix = np.eye(4)
        matrix = translation(0, 0, state.camera_to_center_distance) @ matrix
        matrix = rotation_x(pitch) @ matrix
        matrix = rotation_z(-bearing) @ matrix

        if state.elevation:
            matrix[2, 3] = state.camera_to_center_distance * np.cos(pitch)

        self.camera.world_matrix = matrix

    def _update_world_matrix(self, state: ViewportState):
        zoom_scale = state.scale * WORLD_SIZE_RATIO

        x, y = state.center_offset
        if not x or not y:
            lat = clamp(state.center.lat, -MAX_VALID_LATITUDE, MAX_VALID_LATITUDE)
            x = mercator_x(state.center.lng) * state.world_size
            y = mercator_y(lat) * state.world_size

        matrix = np.eye(4)
        matrix = _FLIP_Y @ matrix
        matrix = _TRANSLATE_TO_GL_ORIGIN @ matrix
        matrix = uniform_scale(zoom_scale) @ matrix
        matrix = translation(-x, y, 0) @ matrix

        self.world.matrix = matrix

    # ── Derived queries ──────────────────────────────────────────────────

    def visible_bounds(self) -> Optional[BoundingBox]:
        """Geographic box around the ground visible at the viewport corners.

        Corner rays that never reach the ground (above the horizon) are
        cut at the far plane and dropped onto it.
        """
        state, camera = self.state, self.camera
        if state is None or camera is None:
            return None

        to_projected = np.linalg.inv(self.world.matrix)
        corners = []
        for ndc_x, ndc_y in ((-1, 1), (1, 1), (1, -1), (-1, -1)):
            origin, direction = camera.ray_from_ndc(ndc_x, ndc_y)
            if direction[2] < -1e-9 and origin[2] > 0:
                ground = origin + direction * (-origin[2] / direction[2])
            else:
                ground = origin + direction * camera.far
                ground[2] = 0.0
            if not np.all(np.isfinite(ground)):
                return None
            x, y, _ = apply_matrix(to_projected, ground)
            coord = unproject(x, y)
            corners.append((coord.lng, coord.lat))
        return BoundingBox.from_points(corners)
