"""Render drivers: the consumer side of ``render(scene, camera)``."""

import logging
import math
from typing import Protocol

import trimesh

from .camera import Camera
from .models import PathManager
from .scene import SceneIndex

logger = logging.getLogger(__name__)


class RenderDriver(Protocol):
    def render(self, scene: SceneIndex, camera: Camera) -> None:
        """Draw one frame; raise to the caller on failure."""


class GlbRenderDriver:
    """Writes each rendered frame as a GLB snapshot.

    Meshes are baked into world space (anchor · object · node) and the
    synchronized camera becomes the file's scene camera, so any glTF
    viewer reproduces the layer's view. Lights sit at the scene root.
    """

    def __init__(self, output_path="frame.glb", resolution=(800, 600)):
        self.output_path = PathManager.get_output_path(output_path)
        self.resolution = tuple(int(v) for v in resolution)
        self.frames = 0

    def build_scene(self, scene: SceneIndex, camera: Camera) -> trimesh.Scene:
        glb_scene = trimesh.Scene()
        for obj, node, world in scene.world_meshes():
            name = f"object_{obj.id}_{node.name}"
            glb_scene.add_geometry(node.mesh, node_name=name, geom_name=name, transform=world)

        # Setting lights explicitly stops trimesh from generating its own
        lights = []
        for light, transform in scene.light_sources():
            glb_scene.graph[light.name] = transform
            lights.append(light)
        glb_scene.lights = lights

        if camera is not None:
            fov_x = 2 * math.degrees(math.atan(math.tan(math.radians(camera.fov) / 2) * camera.aspect))
            glb_scene.camera = trimesh.scene.Camera(
                resolution=self.resolution, fov=(fov_x, camera.fov),
                z_near=camera.near, z_far=camera.far)
            glb_scene.camera_transform = camera.world_matrix
        return glb_scene

    def render(self, scene: SceneIndex, camera: Camera) -> None:
        glb_scene = self.build_scene(scene, camera)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        glb_scene.export(str(self.output_path), file_type="glb")
        self.frames += 1
        logger.info(f"Rendered frame {self.frames}: {len(glb_scene.geometry)} meshes "
                    f"→ {self.output_path}")
