"""Geo-anchored models and scene lights."""

import asyncio
import itertools
import logging
import pathlib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import trimesh
from trimesh.scene.lighting import DirectionalLight, Light

from .events import LayerEvent, LayerEventType
from .geometry import object_matrix
from .models import GeoCoordinate, ValidationError
from .projection import meters_to_world_units, project
from .scene import WHITE, AmbientLight, as_scene

logger = logging.getLogger(__name__)

# Shared by models and lights so ids never collide within a layer
_object_ids = itertools.count(1)


def _axes(value, default: float):
    """(x, y, z) from a 3-sequence or an {x, y, z} mapping; falsy axes use ``default``."""
    if value is None:
        return (default, default, default)
    if isinstance(value, Mapping):
        value = (value.get("x"), value.get("y"), value.get("z"))
    x, y, z = value
    return (float(x or default), float(y or default), float(z or default))


class ModelLoader:
    """Loads model files into trimesh scenes.

    Injected per layer; formats are whatever ``trimesh.load`` supports
    (glTF/GLB, OBJ, STL, PLY, OFF, ...).
    """

    def __init__(self, base_dir=None):
        self.base_dir = pathlib.Path(base_dir) if base_dir else None

    def resolve(self, source) -> pathlib.Path:
        path = pathlib.Path(source)
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path
        return path

    def load(self, source, file_type: Optional[str] = None) -> trimesh.Scene:
        path = self.resolve(source)
        logger.info(f"Loading model {path}")
        try:
            scene = trimesh.load(str(path), file_type=file_type, force="scene")
        except Exception as e:
            logger.error(f"Error loading model {path}: {e}")
            raise
        logger.info(f"Loaded {path.name}: {len(scene.geometry)} geometries")
        return scene

    async def load_async(self, source, file_type: Optional[str] = None) -> trimesh.Scene:
        """Load in a worker thread so the caller's event loop keeps running."""
        return await asyncio.to_thread(self.load, source, file_type)


class GeoModel:
    """A renderable payload anchored at a geographic position.

    ``scale`` is in meters per model unit along each axis and
    ``rotation`` in degrees (X, then Y, then Z). The placement matrix
    converts meters to world units for the model's latitude.
    """

    def __init__(self, mesh=None, position=None, scale=None, rotation=None):
        self.id = next(_object_ids)
        self.scale = _axes(scale, 1.0)
        self.rotation = _axes(rotation, 0.0)
        self.position: Optional[GeoCoordinate] = None
        self.payload: Optional[trimesh.Scene] = None
        self.layer = None
        self.matrix = np.eye(4)

        if position is not None:
            self.position = GeoCoordinate.convert(position)
        if mesh is not None:
            self.payload = as_scene(mesh)
        self._update_matrix()

    def __repr__(self):
        return f"GeoModel(id={self.id}, position={self.position})"

    def _update_matrix(self):
        if self.position is None:
            self.matrix = object_matrix((0.0, 0.0, 0.0), self.rotation, (1.0, 1.0, 1.0))
            return
        lat_scale = meters_to_world_units(self.position.lat)
        self.matrix = object_matrix(
            project(*self.position.to_tuple()),
            self.rotation,
            [axis * lat_scale for axis in self.scale],
        )

    # ── Mutators ─────────────────────────────────────────────────────────

    def set_position(self, position) -> "GeoModel":
        self.position = GeoCoordinate.convert(position)
        self._update_matrix()
        self._repaint()
        return self

    def set_scale(self, x: float, y: float, z: float) -> "GeoModel":
        self.scale = _axes((x, y, z), 1.0)
        self._update_matrix()
        self._repaint()
        return self

    def set_rotation(self, x: float, y: float, z: float) -> "GeoModel":
        self.rotation = _axes((x, y, z), 0.0)
        self._update_matrix()
        self._repaint()
        return self

    def set_payload(self, payload) -> "GeoModel":
        """Install the renderable payload; notifies the layer if it is live."""
        self.payload = as_scene(payload)
        layer = self.layer
        if layer is not None:
            layer._reindex_object(self)
            if layer.attached:
                self._fire(LayerEventType.addobject)
        self._repaint()
        return self

    async def load(self, source, loader: ModelLoader, file_type: Optional[str] = None) -> "GeoModel":
        """Fetch a model file and install it as this model's payload."""
        payload = await loader.load_async(source, file_type)
        return self.set_payload(payload)

    # ── Layer membership ─────────────────────────────────────────────────

    def add_to(self, layer) -> "GeoModel":
        if self.layer is not None and self.layer is not layer:
            self.remove()
        self.layer = layer
        layer._add_object(self)
        if self.payload is not None:
            self._fire(LayerEventType.addobject)
        self._repaint()
        return self

    def remove(self) -> "GeoModel":
        layer = self.layer
        if layer is not None:
            layer._remove_object(self)
            self._fire(LayerEventType.removeobject)
            self.layer = None
            layer.trigger_repaint()
        return self

    def _fire(self, kind: LayerEventType):
        self.layer.fire(kind, LayerEvent(type=kind, target=self, geo_coordinate=self.position))

    def _repaint(self):
        if self.layer is not None:
            self.layer.trigger_repaint()


# ── Lights ───────────────────────────────────────────────────────────────

@dataclass
class LightSource:
    light: Light
    position: Optional[np.ndarray] = None


class SceneLight:
    """A group of lights added to a layer's scene root.

    Kinds: ``default`` (ambient plus a front and a back directional
    light), ``ambient``, ``directional`` (placed at ``vector``).
    """

    KINDS = ("default", "ambient", "directional")

    def __init__(self, kind: str = "default", color=None, intensity=None, vector=None):
        if kind == "direction":
            kind = "directional"
        if kind not in self.KINDS:
            raise ValidationError(f"Unknown light kind {kind!r}; expected one of {self.KINDS}")
        self.id = next(_object_ids)
        self.kind = kind
        self.sources: List[LightSource] = []
        self.layer = None

        if kind == "default":
            self._add_default_lights()
        elif kind == "ambient":
            self._add_ambient_light(color, intensity)
        else:
            self._add_directional_light(color, intensity, vector)

    def _add_default_lights(self):
        self._add_ambient_light(WHITE, 0.75)
        self._add_directional_light(WHITE, 0.25, (-30, 100, -100))
        self._add_directional_light(WHITE, 0.25, (30, 100, 100))

    def _source_name(self) -> str:
        return f"light_{self.id}_{len(self.sources)}"

    def _add_ambient_light(self, color, intensity):
        light = AmbientLight(name=self._source_name(), color=color, intensity=intensity)
        self.sources.append(LightSource(light))

    def _add_directional_light(self, color, intensity, vector):
        position = None if vector is None else np.array(_axes(vector, 0.0))
        light = DirectionalLight(name=self._source_name(), color=color, intensity=intensity)
        self.sources.append(LightSource(light, position))

    def add_to(self, layer) -> "SceneLight":
        if self.layer is not None and self.layer is not layer:
            self.remove()
        self.layer = layer
        layer._add_light(self)
        layer.fire(LayerEventType.addlight, LayerEvent(type=LayerEventType.addlight, target=self))
        return self

    def remove(self) -> "SceneLight":
        if self.layer is not None:
            self.layer._remove_light(self)
            self.layer.fire(LayerEventType.removelight,
                            LayerEvent(type=LayerEventType.removelight, target=self))
            self.layer = None
        return self
