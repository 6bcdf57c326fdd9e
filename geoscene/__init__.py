"""GeoScene: anchor 3D models to geographic positions on a web-map camera.

Import constants FIRST so the ``.env`` file is loaded before config
reads the environment.
"""

from geoscene import constants as _constants  # noqa: F401

from geoscene.camera import Camera, CameraSync
from geoscene.events import LayerEvent, LayerEventType
from geoscene.layer import GeoLayer
from geoscene.models import BoundingBox, GeoCoordinate, ValidationError, ViewportState
from geoscene.objects import GeoModel, ModelLoader, SceneLight
from geoscene.scene import SceneIndex
from geoscene.viewport import MapViewport
