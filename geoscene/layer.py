"""GeoLayer: the map-layer facade tying camera sync, scene index and events together."""

import logging
from typing import Optional

from . import config
from .camera import CameraSync
from .constants import DEFAULT_MAX_ZOOM, DEFAULT_MIN_ZOOM
from .events import EventBus, LayerEvent, LayerEventType, PointerEvent, Subscription
from .models import ValidationError
from .objects import GeoModel, ModelLoader
from .scene import SceneIndex

logger = logging.getLogger(__name__)


class GeoLayer:
    """Custom 3D layer for a host map viewport.

    The host drives the lifecycle: ``on_attach`` when the layer is added
    to the map, ``render_frame`` once per frame, ``on_detach`` when it
    is removed. Application code registers listeners with ``on``.
    """

    def __init__(self, layer_id: str, min_zoom: Optional[float] = None,
                 max_zoom: Optional[float] = None,
                 render_outside_bounds: Optional[bool] = None,
                 renderer=None, loader: Optional[ModelLoader] = None):
        self.id = layer_id
        self.min_zoom = DEFAULT_MIN_ZOOM if min_zoom is None else float(min_zoom)
        self.max_zoom = DEFAULT_MAX_ZOOM if max_zoom is None else float(max_zoom)
        if self.min_zoom > self.max_zoom:
            raise ValidationError(
                f"Layer {layer_id!r}: min_zoom {self.min_zoom} exceeds max_zoom {self.max_zoom}")
        self.render_outside_bounds = (config.RENDER_OUTSIDE_BOUNDS if render_outside_bounds is None
                                      else bool(render_outside_bounds))
        self.renderer = renderer
        self.loader = loader or ModelLoader()
        self.index = SceneIndex()
        self.events = EventBus()
        self.host = None
        self.camera_sync: Optional[CameraSync] = None
        self._hovered = None

    @property
    def attached(self) -> bool:
        return self.host is not None

    @property
    def camera(self):
        return self.camera_sync.camera if self.camera_sync else None

    @property
    def culls(self) -> bool:
        """False when the zoom range is unrestricted and bounds culling is off."""
        return not (self.min_zoom == DEFAULT_MIN_ZOOM and self.max_zoom == DEFAULT_MAX_ZOOM
                    and self.render_outside_bounds)

    # ── Host lifecycle ───────────────────────────────────────────────────

    def on_attach(self, host):
        self.host = host
        self.camera_sync = CameraSync(self.index.anchor)
        # Subscribed first so the camera is current before visibility runs
        self.camera_sync.attach(host)
        host.on("move", self._on_move)
        host.on("click", self._on_click)
        host.on("mousemove", self._on_mouse_move)
        self.refresh_visibility()
        logger.info(f"Layer {self.id!r} attached ({len(self.index)} objects)")

    def on_detach(self):
        host = self.host
        if host is None:
            return
        host.off("move", self._on_move)
        host.off("click", self._on_click)
        host.off("mousemove", self._on_mouse_move)
        self.camera_sync.detach()
        self.camera_sync = None
        for obj in self.index.objects:
            obj.layer = None
        self.index.clear()
        self._hovered = None
        self.host = None
        logger.info(f"Layer {self.id!r} detached")

    def render_frame(self):
        """Draw one synchronized frame through the render driver."""
        if not self.attached or self.renderer is None:
            return
        self.renderer.render(self.index, self.camera)

    def trigger_repaint(self):
        if self.host is not None:
            self.host.trigger_repaint()

    # ── Application events ───────────────────────────────────────────────

    def on(self, kind, callback) -> Subscription:
        return self.events.subscribe(kind, callback)

    def off(self, kind, callback):
        self.events.unsubscribe(kind, callback)

    def fire(self, kind, event: LayerEvent):
        self.events.publish(kind, event)

    # ── Queries ──────────────────────────────────────────────────────────

    def query_render_object(self, point):
        """Topmost placed object at canvas point (x, y), or None."""
        if not self.attached or self.camera is None:
            return None
        x, y = point
        state = self.camera_sync.state
        return self.index.pick(x, y, self.camera, state.width, state.height)

    def refresh_visibility(self):
        """Re-run zoom and bounds culling over every object."""
        if not self.attached or not self.culls:
            return
        bounds, zoom = self._culling_view()
        self.index.update_all_visibility(bounds, zoom, self.min_zoom, self.max_zoom,
                                         self.render_outside_bounds)

    def _culling_view(self):
        """(bounds, zoom) of the current view; bounds is None when bounds culling is off."""
        state = self.host.get_state()
        bounds = None
        if not self.render_outside_bounds:
            bounds = state.bounds or self.camera_sync.visible_bounds()
        return bounds, state.zoom

    # ── Objects and lights ───────────────────────────────────────────────

    async def load_model(self, source, position, scale=None, rotation=None,
                         file_type: Optional[str] = None) -> GeoModel:
        """Place a model at ``position`` and load its payload with this layer's loader."""
        model = GeoModel(position=position, scale=scale, rotation=rotation).add_to(self)
        return await model.load(source, self.loader, file_type)

    def _add_object(self, obj):
        self.index.place(obj)
        if self.attached and self.culls:
            bounds, zoom = self._culling_view()
            self.index.update_visibility(obj, bounds, zoom, self.min_zoom, self.max_zoom,
                                         self.render_outside_bounds)
        logger.info(f"Layer {self.id!r}: added object {obj.id}")

    def _remove_object(self, obj):
        self.index.remove(obj)
        if self._hovered is obj:
            self._hovered = None
        logger.info(f"Layer {self.id!r}: removed object {obj.id}")

    def _reindex_object(self, obj):
        self.index.reindex(obj)

    def _add_light(self, light):
        self.index.add_light(light)

    def _remove_light(self, light):
        self.index.remove_light(light)

    # ── Host notifications ───────────────────────────────────────────────

    def _on_move(self, _event=None):
        self.refresh_visibility()

    def _on_click(self, event: PointerEvent):
        obj = self.query_render_object(event.point)
        if obj is not None:
            self.fire(LayerEventType.click, LayerEvent(
                type=LayerEventType.click, target=obj,
                geo_coordinate=obj.position, canvas_point=event.point))

    def _on_mouse_move(self, event: PointerEvent):
        obj = self.query_render_object(event.point)
        previous = self._hovered

        if obj is not None and obj is not previous:
            self.fire(LayerEventType.mouseenter, LayerEvent(
                type=LayerEventType.mouseenter, target=obj,
                geo_coordinate=obj.position, canvas_point=event.point))

        if obj is not None:
            self.fire(LayerEventType.mouseover, LayerEvent(
                type=LayerEventType.mouseover, target=obj,
                geo_coordinate=obj.position, canvas_point=event.point))

        if previous is not None and obj is not previous:
            self.fire(LayerEventType.mouseleave, LayerEvent(
                type=LayerEventType.mouseleave, target=previous,
                geo_coordinate=previous.position, canvas_point=event.point))

        self._hovered = obj
