"""Placed-object registry, visibility culling and ray picking."""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
import trimesh
from trimesh.scene.lighting import Light

from .models import BoundingBox, ValidationError

logger = logging.getLogger(__name__)

_node_ids = itertools.count(1)

WHITE = [255, 255, 255, 255]


class AmbientLight(Light):
    """Uniform light with no direction or position."""


@dataclass(eq=False)
class MeshNode:
    """One hit-testable mesh inside an object's payload."""
    name: str
    mesh: trimesh.Trimesh
    transform: np.ndarray  # relative to the owning object's root
    uid: int = field(default_factory=lambda: next(_node_ids))


@dataclass
class Intersection:
    distance: float
    point: np.ndarray
    object_id: int
    node: MeshNode
    face_index: int


def as_scene(payload) -> trimesh.Scene:
    """Normalize a renderable payload to a trimesh Scene."""
    if isinstance(payload, trimesh.Scene):
        return payload
    if isinstance(payload, trimesh.Trimesh):
        return trimesh.Scene(payload)
    raise ValidationError(
        f"Payload must be a trimesh.Trimesh or trimesh.Scene, got {type(payload).__name__}")


def mesh_nodes(scene: trimesh.Scene) -> List[MeshNode]:
    """Flatten a payload's scene graph into its triangle meshes."""
    nodes = []
    for node_name in scene.graph.nodes_geometry:
        transform, geom_name = scene.graph[node_name]
        mesh = scene.geometry.get(geom_name)
        # Paths and point clouds are drawn but cannot be hit
        if isinstance(mesh, trimesh.Trimesh) and len(mesh.faces):
            nodes.append(MeshNode(node_name, mesh, np.asarray(transform, dtype=float)))
    return nodes


class WorldAnchor:
    """Root transform of the placed objects.

    ``matrix`` is overwritten wholesale by CameraSync on every pass.
    ``children`` holds the currently attached (rendered) objects.
    """

    def __init__(self, name: str = "world"):
        self.name = name
        self.matrix = np.eye(4)
        self.children: Dict[int, object] = {}

    def add(self, obj):
        self.children[obj.id] = obj

    def remove(self, obj):
        self.children.pop(obj.id, None)

    def clear(self):
        self.children.clear()

    def __contains__(self, obj) -> bool:
        return obj.id in self.children


class SceneIndex:
    """Objects placed on the world anchor, plus scene-level lights.

    Keeps an owner index from every payload mesh node to the id of the
    object that registered it, so a ray hit resolves to its object
    without walking the graph.

    ``base_light`` is the ambient light every scene carries under the
    lights added by the application; ``clear`` keeps it.
    """

    def __init__(self):
        self.anchor = WorldAnchor()
        self.base_light = AmbientLight(name="base_ambient", color=WHITE, intensity=1.0)
        self.lights: Dict[int, object] = {}
        self._objects: Dict[int, object] = {}
        self._nodes: Dict[int, List[MeshNode]] = {}
        self._owners: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, obj) -> bool:
        return obj.id in self._objects

    @property
    def objects(self) -> list:
        return list(self._objects.values())

    def get(self, object_id: int):
        return self._objects.get(object_id)

    def owner_of(self, node: MeshNode):
        """Object that owns ``node``, or None."""
        return self._objects.get(self._owners.get(node.uid))

    def is_attached(self, obj) -> bool:
        return obj in self.anchor

    # ── Registration ─────────────────────────────────────────────────────

    def place(self, obj):
        """Register ``obj`` and attach its payload to the world anchor."""
        self._objects[obj.id] = obj
        self.reindex(obj)
        self.anchor.add(obj)
        logger.debug(f"Placed object {obj.id} ({len(self._nodes[obj.id])} mesh nodes)")

    def remove(self, obj):
        """Detach ``obj`` and drop it from the registry."""
        self.anchor.remove(obj)
        for node in self._nodes.pop(obj.id, []):
            self._owners.pop(node.uid, None)
        self._objects.pop(obj.id, None)
        logger.debug(f"Removed object {obj.id}")

    def reindex(self, obj):
        """Rebuild the owner index for ``obj`` after its payload changed."""
        for node in self._nodes.pop(obj.id, []):
            self._owners.pop(node.uid, None)
        nodes = mesh_nodes(as_scene(obj.payload)) if obj.payload is not None else []
        for node in nodes:
            self._owners[node.uid] = obj.id
        self._nodes[obj.id] = nodes

    def add_light(self, light):
        self.lights[light.id] = light

    def remove_light(self, light):
        self.lights.pop(light.id, None)

    def light_sources(self) -> Iterator[Tuple[Light, np.ndarray]]:
        """Yield (light, scene-root transform) for the base light and every added source."""
        yield self.base_light, np.eye(4)
        for light in self.lights.values():
            for source in light.sources:
                transform = np.eye(4)
                if source.position is not None:
                    transform[:3, 3] = source.position
                yield source.light, transform

    def clear(self):
        self.anchor.clear()
        self.lights.clear()
        self._objects.clear()
        self._nodes.clear()
        self._owners.clear()

    # ── Visibility ───────────────────────────────────────────────────────

    def update_visibility(self, obj, bounds: Optional[BoundingBox], zoom: float,
                          min_zoom: float, max_zoom: float,
                          render_outside_bounds: bool) -> bool:
        """Attach ``obj`` iff it is in bounds and in the zoom range.

        ``bounds=None`` means the visible area is unknown and never culls.
        Returns whether the object ended up attached.
        """
        if render_outside_bounds or bounds is None:
            in_bounds = True
        else:
            position = obj.position
            in_bounds = position is not None and bounds.contains(position.lng, position.lat)
        in_zoom_range = min_zoom <= zoom <= max_zoom

        if in_bounds and in_zoom_range:
            self.anchor.add(obj)
            return True
        self.anchor.remove(obj)
        return False

    def update_all_visibility(self, bounds, zoom, min_zoom, max_zoom,
                              render_outside_bounds) -> int:
        """Re-evaluate every registered object; returns how many are attached."""
        attached = 0
        for obj in self._objects.values():
            if self.update_visibility(obj, bounds, zoom, min_zoom, max_zoom,
                                      render_outside_bounds):
                attached += 1
        logger.debug(f"Visibility pass: {attached}/{len(self._objects)} attached")
        return attached

    # ── Picking ──────────────────────────────────────────────────────────

    def world_meshes(self) -> Iterator[Tuple[object, MeshNode, np.ndarray]]:
        """Yield (object, node, world matrix) for every attached mesh."""
        for obj in list(self.anchor.children.values()):
            object_world = self.anchor.matrix @ obj.matrix
            for node in self._nodes.get(obj.id, []):
                yield obj, node, object_world @ node.transform

    def intersect(self, origin, direction) -> List[Intersection]:
        """All hits of a world-space ray on attached meshes, nearest first."""
        origin = np.asarray(origin, dtype=float)
        direction = np.asarray(direction, dtype=float)
        hits = []
        for obj, node, world in self.world_meshes():
            if not np.all(np.isfinite(world)):
                continue
            try:
                inverse = np.linalg.inv(world)
            except np.linalg.LinAlgError:
                logger.debug(f"Skipping degenerate transform on object {obj.id}")
                continue

            local_origin = (inverse @ np.append(origin, 1.0))[:3]
            local_direction = inverse[:3, :3] @ direction
            locations, _, faces = node.mesh.ray.intersects_location(
                [local_origin], [local_direction], multiple_hits=True)
            if not len(locations):
                continue

            homogeneous = np.column_stack([locations, np.ones(len(locations))])
            points = (world @ homogeneous.T).T[:, :3]
            distances = np.linalg.norm(points - origin, axis=1)
            for point, distance, face in zip(points, distances, faces):
                hits.append(Intersection(float(distance), point, obj.id, node, int(face)))

        hits.sort(key=lambda hit: hit.distance)
        return hits

    def pick(self, canvas_x: float, canvas_y: float, camera,
             viewport_width: float, viewport_height: float):
        """Object under a canvas pixel, or None.

        Canvas y grows downward; NDC y grows upward.
        """
        mouse_x = (canvas_x / viewport_width) * 2 - 1
        mouse_y = -(canvas_y / viewport_height) * 2 + 1

        origin, direction = camera.ray_from_ndc(mouse_x, mouse_y)
        hits = self.intersect(origin, direction)
        if not hits:
            return None
        return self.owner_of(hits[0].node)
