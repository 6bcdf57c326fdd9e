"""Synchronous publish/subscribe for layer interaction events."""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from .models import GeoCoordinate, ValidationError


class LayerEventType(str, Enum):
    click = "click"
    mouseover = "mouseover"
    mouseenter = "mouseenter"
    mouseleave = "mouseleave"
    addobject = "addobject"
    removeobject = "removeobject"
    addlight = "addlight"
    removelight = "removelight"


@dataclass
class LayerEvent:
    type: LayerEventType
    target: Any
    geo_coordinate: Optional[GeoCoordinate] = None
    canvas_point: Optional[Tuple[float, float]] = None


@dataclass
class PointerEvent:
    """Pointer notification delivered by the host viewport."""
    type: str
    point: Tuple[float, float]
    geo_coordinate: Optional[GeoCoordinate] = None


Listener = Callable[[LayerEvent], None]


def event_type(kind) -> LayerEventType:
    try:
        return LayerEventType(kind)
    except ValueError:
        raise ValidationError(f"Unknown layer event type: {kind!r}") from None


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    def __init__(self, bus: "EventBus", kind: LayerEventType, callback: Listener):
        self.bus = bus
        self.kind = kind
        self.callback = callback

    @property
    def active(self) -> bool:
        return self.callback in self.bus.subscribers[self.kind]

    def unsubscribe(self):
        self.bus.unsubscribe(self.kind, self.callback)


class EventBus:
    """One listener channel per event type.

    Delivery is synchronous, in subscription order, on the caller's
    thread. Listener exceptions propagate to the publisher.
    """

    def __init__(self):
        self.subscribers = defaultdict(list)

    def subscribe(self, kind, callback: Listener) -> Subscription:
        kind = event_type(kind)
        if callback not in self.subscribers[kind]:
            self.subscribers[kind].append(callback)
        return Subscription(self, kind, callback)

    def unsubscribe(self, kind, callback: Listener):
        listeners = self.subscribers[event_type(kind)]
        if callback in listeners:
            listeners.remove(callback)

    def publish(self, kind, event: LayerEvent):
        # Snapshot so listeners may unsubscribe while being notified
        for callback in list(self.subscribers[event_type(kind)]):
            callback(event)

    def clear(self):
        self.subscribers.clear()
