"""Pytest configuration and fixtures for geoscene tests."""

import pytest
import trimesh

from geoscene.layer import GeoLayer
from geoscene.viewport import MapViewport

CANBERRA = (148.9819, -35.3981)


class RecordingRenderer:
    """Render driver that remembers what it was asked to draw."""

    def __init__(self):
        self.calls = []

    def render(self, scene, camera):
        self.calls.append((scene, camera))


@pytest.fixture
def viewport():
    """Top-down viewport centred on Canberra at street zoom."""
    return MapViewport(center=CANBERRA, zoom=17, width=800, height=600)


@pytest.fixture
def box_mesh():
    """20 m cube centred on its origin."""
    return trimesh.creation.box(extents=(20.0, 20.0, 20.0))


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def layer(viewport, renderer):
    layer = GeoLayer("test", renderer=renderer)
    layer.on_attach(viewport)
    yield layer
    layer.on_detach()


@pytest.fixture
def recorded(layer):
    """Events fired by ``layer``, as (type, event) pairs."""
    events = []
    for kind in ("click", "mouseover", "mouseenter", "mouseleave",
                 "addobject", "removeobject", "addlight", "removelight"):
        layer.on(kind, lambda event: events.append((event.type.value, event)))
    return events
