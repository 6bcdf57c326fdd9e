"""Tests for the scene index: culling, owner lookup and picking."""

import numpy as np
import pytest
import trimesh

from geoscene.geometry import apply_matrix
from geoscene.models import BoundingBox, ValidationError
from geoscene.objects import GeoModel
from geoscene.scene import SceneIndex, as_scene, mesh_nodes

from .conftest import CANBERRA

# Roughly 100 m north of Canberra
NORTH = (CANBERRA[0], CANBERRA[1] + 0.0009)

NEAR_CANBERRA = BoundingBox(north=-35.0, south=-36.0, east=149.5, west=148.5)
FAR_AWAY = BoundingBox(north=10.0, south=0.0, east=10.0, west=0.0)


class TestPayloads:
    def test_mesh_is_wrapped_in_scene(self, box_mesh):
        assert isinstance(as_scene(box_mesh), trimesh.Scene)

    def test_scene_passes_through(self, box_mesh):
        scene = trimesh.Scene(box_mesh)
        assert as_scene(scene) is scene

    def test_rejects_other_payloads(self):
        with pytest.raises(ValidationError):
            as_scene("building.glb")

    def test_mesh_nodes_skip_non_triangle_geometry(self, box_mesh):
        scene = trimesh.Scene(box_mesh)
        scene.add_geometry(trimesh.PointCloud(np.random.random((10, 3))))
        nodes = mesh_nodes(scene)
        assert len(nodes) == 1
        assert nodes[0].mesh is box_mesh


class TestVisibility:
    @pytest.fixture
    def index(self, box_mesh):
        index = SceneIndex()
        index.place(GeoModel(mesh=box_mesh, position=CANBERRA))
        return index

    def test_in_bounds_and_zoom_range_is_attached(self, index):
        obj = index.objects[0]
        assert index.update_visibility(obj, NEAR_CANBERRA, 17, 0, 24, False)
        assert index.is_attached(obj)

    def test_out_of_bounds_is_detached(self, index):
        obj = index.objects[0]
        assert not index.update_visibility(obj, FAR_AWAY, 17, 0, 24, False)
        assert not index.is_attached(obj)
        # still registered, just not rendered
        assert obj in index

    def test_render_outside_bounds_ignores_bounds(self, index):
        obj = index.objects[0]
        assert index.update_visibility(obj, FAR_AWAY, 17, 0, 24, True)

    @pytest.mark.parametrize("zoom", [9.99, 15.01, 22])
    def test_outside_zoom_range_is_detached_regardless_of_bounds(self, index, zoom):
        obj = index.objects[0]
        assert not index.update_visibility(obj, NEAR_CANBERRA, zoom, 10, 15, True)
        assert not index.is_attached(obj)

    @pytest.mark.parametrize("zoom", [10, 12.5, 15])
    def test_zoom_range_is_inclusive(self, index, zoom):
        assert index.update_visibility(index.objects[0], None, zoom, 10, 15, False)

    def test_unknown_bounds_never_cull(self, index):
        assert index.update_visibility(index.objects[0], None, 17, 0, 24, False)

    def test_object_without_position_is_culled_by_bounds(self, index, box_mesh):
        loose = GeoModel(mesh=box_mesh)
        index.place(loose)
        assert not index.update_visibility(loose, NEAR_CANBERRA, 17, 0, 24, False)

    def test_reattaches_when_back_in_view(self, index):
        obj = index.objects[0]
        index.update_visibility(obj, FAR_AWAY, 17, 0, 24, False)
        index.update_visibility(obj, NEAR_CANBERRA, 17, 0, 24, False)
        assert index.is_attached(obj)

    def test_update_all_counts_attached(self, index, box_mesh):
        index.place(GeoModel(mesh=box_mesh, position=(5.0, 5.0)))
        assert index.update_all_visibility(NEAR_CANBERRA, 17, 0, 24, False) == 1
        assert index.update_all_visibility(None, 17, 0, 24, False) == 2


class TestRegistry:
    def test_owner_index_maps_nodes_to_object(self, box_mesh):
        index = SceneIndex()
        obj = GeoModel(mesh=box_mesh, position=CANBERRA)
        index.place(obj)
        (_, node, _), = list(index.world_meshes())
        assert index.owner_of(node) is obj

    def test_lookup_by_id(self, box_mesh):
        index = SceneIndex()
        obj = GeoModel(mesh=box_mesh, position=CANBERRA)
        index.place(obj)
        assert index.get(obj.id) is obj
        assert index.get(-1) is None

    def test_remove_drops_owner_entries(self, box_mesh):
        index = SceneIndex()
        obj = GeoModel(mesh=box_mesh, position=CANBERRA)
        index.place(obj)
        (_, node, _), = list(index.world_meshes())
        index.remove(obj)
        assert index.owner_of(node) is None
        assert len(index) == 0
        assert not index.is_attached(obj)

    def test_reindex_after_payload_change(self, box_mesh):
        index = SceneIndex()
        obj = GeoModel(position=CANBERRA)
        index.place(obj)
        assert list(index.world_meshes()) == []
        obj.payload = as_scene(box_mesh)
        index.reindex(obj)
        assert len(list(index.world_meshes())) == 1

    def test_clear(self, box_mesh):
        index = SceneIndex()
        index.place(GeoModel(mesh=box_mesh, position=CANBERRA))
        index.clear()
        assert len(index) == 0
        assert index.anchor.children == {}


class TestPicking:
    def test_model_origin_sits_on_world_origin(self, layer, box_mesh):
        model = GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        world = layer.index.anchor.matrix @ model.matrix
        np.testing.assert_allclose(apply_matrix(world, (0, 0, 0)), [0, 0, 0], atol=1e-6)

    def test_hit_at_canvas_center(self, layer, box_mesh):
        model = GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        assert layer.query_render_object((400, 300)) is model

    def test_miss_in_corner(self, layer, box_mesh):
        GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        assert layer.query_render_object((10, 10)) is None

    def test_north_object_is_above_center_on_canvas(self, layer, box_mesh):
        center = GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        north = GeoModel(mesh=box_mesh, position=NORTH).add_to(layer)
        assert layer.query_render_object((400, 95)) is north
        assert layer.query_render_object((400, 300)) is center

    def test_nearest_object_wins(self, layer, box_mesh):
        GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        raised = GeoModel(mesh=box_mesh, position=(*CANBERRA, 50)).add_to(layer)
        assert layer.query_render_object((400, 300)) is raised

    def test_hits_sorted_nearest_first(self, layer, box_mesh):
        GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        GeoModel(mesh=box_mesh, position=(*CANBERRA, 50)).add_to(layer)
        origin, direction = layer.camera.ray_from_ndc(0, 0)
        distances = [hit.distance for hit in layer.index.intersect(origin, direction)]
        assert len(distances) >= 2
        assert distances == sorted(distances)

    def test_child_mesh_resolves_to_root_object(self, layer, box_mesh):
        payload = trimesh.Scene()
        payload.add_geometry(box_mesh, node_name="base")
        payload.add_geometry(box_mesh.copy(), node_name="tower",
                             transform=trimesh.transformations.translation_matrix([0, 0, 40]))
        model = GeoModel(mesh=payload, position=CANBERRA).add_to(layer)
        hits = layer.index.intersect(*layer.camera.ray_from_ndc(0, 0))
        assert hits[0].node.name == "tower"
        assert layer.query_render_object((400, 300)) is model

    def test_removed_object_is_not_pickable(self, layer, box_mesh):
        model = GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        model.remove()
        assert layer.query_render_object((400, 300)) is None

    def test_culled_object_is_not_pickable(self, viewport, box_mesh):
        from geoscene.layer import GeoLayer

        layer = GeoLayer("low", max_zoom=10)
        layer.on_attach(viewport)
        GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        viewport.jump_to(zoom=17)
        assert layer.query_render_object((400, 300)) is None
        layer.on_detach()

    def test_rotated_view_still_hits(self, viewport, layer, box_mesh):
        model = GeoModel(mesh=box_mesh, position=CANBERRA).add_to(layer)
        viewport.jump_to(bearing=45, pitch=50)
        assert layer.query_render_object((400, 300)) is model
