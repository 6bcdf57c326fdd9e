"""MapViewport: an in-process stand-in for a web-map host.

Derives the same transform values a web-map camera reports (scale,
world size, camera-to-center distance, far plane) from center, zoom,
bearing, pitch, fov and canvas size, and delivers ``move``, ``resize``,
``click`` and ``mousemove`` notifications synchronously.
"""

import logging
import math
from collections import defaultdict
from typing import Optional

from . import config
from .constants import DEG_TO_RAD, TILE_SIZE
from .events import PointerEvent
from .models import BoundingBox, GeoCoordinate, ViewportState
from .projection import clamp

logger = logging.getLogger(__name__)


class MapViewport:
    def __init__(self, center=(0.0, 0.0), zoom: float = 0.0, bearing: float = 0.0,
                 pitch: float = 0.0, width: float = 800, height: float = 600,
                 fov: Optional[float] = None, elevation: float = 0.0,
                 center_offset=(0.0, 0.0), bounds: Optional[BoundingBox] = None):
        self.center = GeoCoordinate.convert(center)
        self.zoom = zoom
        self.bearing = bearing
        self.pitch = pitch
        self.width = width
        self.height = height
        self.fov = config.DEFAULT_FOV if fov is None else fov
        self.elevation = elevation
        self.center_offset = tuple(center_offset)
        self.bounds = bounds
        self.listeners = defaultdict(list)
        self.repaints = 0

    # ── Derived transform values ─────────────────────────────────────────

    @property
    def scale(self) -> float:
        return 2 ** self.zoom

    @property
    def world_size(self) -> float:
        return TILE_SIZE * self.scale

    @property
    def camera_to_center_distance(self) -> float:
        return 0.5 / math.tan(self.fov * DEG_TO_RAD / 2) * self.height

    @property
    def far_z(self) -> float:
        """Distance to the furthest visible ground point, padded by 1%."""
        fov = self.fov * DEG_TO_RAD
        pitch = self.pitch * DEG_TO_RAD
        distance = self.camera_to_center_distance
        fov_above_center = fov * (0.5 + self.center_offset[1] / self.height)
        ground_angle = math.pi / 2 + pitch
        top_half_surface = (math.sin(fov_above_center) * distance
                            / math.sin(clamp(math.pi - ground_angle - fov_above_center,
                                             0.01, math.pi - 0.01)))
        furthest = math.cos(math.pi / 2 - pitch) * top_half_surface + distance
        return furthest * 1.01

    def get_state(self) -> ViewportState:
        return ViewportState(
            center=self.center,
            zoom=self.zoom,
            bearing=self.bearing,
            pitch=self.pitch,
            fov=self.fov,
            width=self.width,
            height=self.height,
            camera_to_center_distance=self.camera_to_center_distance,
            far_z=self.far_z,
            scale=self.scale,
            world_size=self.world_size,
            elevation=self.elevation,
            center_offset=self.center_offset,
            bounds=self.bounds,
        )

    # ── Subscriptions ────────────────────────────────────────────────────

    def on(self, name: str, callback):
        self.listeners[name].append(callback)

    def off(self, name: str, callback):
        if callback in self.listeners[name]:
            self.listeners[name].remove(callback)

    def emit(self, name: str, event=None):
        for callback in list(self.listeners[name]):
            callback(event)

    def trigger_repaint(self):
        self.repaints += 1

    # ── Interaction ──────────────────────────────────────────────────────

    def jump_to(self, center=None, zoom=None, bearing=None, pitch=None,
                bounds: Optional[BoundingBox] = None):
        """Change the camera and notify ``move`` listeners."""
        if center is not None:
            self.center = GeoCoordinate.convert(center)
        if zoom is not None:
            self.zoom = zoom
        if bearing is not None:
            self.bearing = bearing
        if pitch is not None:
            self.pitch = pitch
        self.bounds = bounds
        logger.debug(f"Viewport moved to {self.center.lng:.5f}, {self.center.lat:.5f} z{self.zoom}")
        self.emit("move")

    def resize(self, width: float, height: float, fov: Optional[float] = None):
        """Change the canvas size (and optionally fov); notifies ``resize`` then ``move``."""
        self.width = width
        self.height = height
        if fov is not None:
            self.fov = fov
        self.emit("resize")
        self.emit("move")

    def click(self, x: float, y: float):
        self.emit("click", PointerEvent("click", (x, y)))

    def mouse_move(self, x: float, y: float):
        self.emit("mousemove", PointerEvent("mousemove", (x, y)))
