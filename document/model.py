"""
Document data model — the central data structures of the animation core.

A Document contains:
- Layers, each with a declared (resting) transform
- TemplateClips, the single source of truth each layer's track is derived from
- Global template parameter defaults and background settings

LayerTracks are derived from the clips by composer.timeline and sampled
by composer.sampler; they are never authored directly while a layer has
clips, apart from hand-placed keyframes on channels no clip drives.
"""

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from utils.animation import Easing

CHANNELS = ("position", "scale", "rotation", "opacity")

# Provenance tag for compiler fallback keyframes that belong to no clip
BASE_TAG = "__base__"


@dataclass(frozen=True)
class Vec2:
    """2D offset or position (normalized vs absolute is a rendering concern)."""
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other):
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other):
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, k):
        return Vec2(self.x * k, self.y * k)

    __rmul__ = __mul__

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data) -> "Vec2":
        if isinstance(data, Vec2):
            return data
        return cls(float(data.get("x", 0.0)), float(data.get("y", 0.0)))


class UseBase:
    """Keyframe value meaning "resolve to the clip's base state"."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "USE_BASE"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


USE_BASE = UseBase()


@dataclass(frozen=True)
class Keyframe:
    """
    A single timed value in one channel.

    Attributes:
        time: Milliseconds, >= 0
        value: Vec2 (position) or float (scale, rotation in radians, opacity 0-1)
        easing: Easing applied on the way into this keyframe
        clip_id: Provenance — id of the clip that produced it, BASE_TAG for
            compiler fallbacks, None for hand-placed keyframes
    """
    time: float
    value: Any
    easing: Easing = Easing.LINEAR
    clip_id: Optional[str] = None

    def to_dict(self) -> dict:
        value = self.value.to_dict() if isinstance(self.value, Vec2) else self.value
        data = {"time": self.time, "value": value, "easing": self.easing.value}
        if self.clip_id is not None:
            data["clip_id"] = self.clip_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Keyframe":
        value = data.get("value", 0.0)
        if isinstance(value, dict):
            value = Vec2.from_dict(value)
        return cls(
            time=float(data.get("time", 0.0)),
            value=value,
            easing=Easing(data.get("easing", "linear")),
            clip_id=data.get("clip_id"),
        )


@dataclass
class PathClip:
    """A freehand motion path, sampled by arc length."""
    id: str
    start_time: float
    duration: float
    points: list[Vec2] = field(default_factory=list)
    easing: Easing = Easing.LINEAR

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_time": self.start_time,
            "duration": self.duration,
            "points": [p.to_dict() for p in self.points],
            "easing": self.easing.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PathClip":
        return cls(
            id=data["id"],
            start_time=float(data.get("start_time", 0.0)),
            duration=float(data.get("duration", 0.0)),
            points=[Vec2.from_dict(p) for p in data.get("points", [])],
            easing=Easing(data.get("easing", "linear")),
        )


@dataclass
class LayerTrack:
    """Compiled, continuous keyframe representation of one layer."""
    layer_id: str
    position: list[Keyframe] = field(default_factory=list)
    scale: list[Keyframe] = field(default_factory=list)
    rotation: list[Keyframe] = field(default_factory=list)
    opacity: list[Keyframe] = field(default_factory=list)
    paths: list[PathClip] = field(default_factory=list)

    def channel(self, name: str) -> list[Keyframe]:
        """Get a channel's keyframe list by name."""
        if name not in CHANNELS:
            raise ValueError(f"Unknown channel: {name}")
        return getattr(self, name)

    def end_time(self) -> float:
        """Time of the latest keyframe across all channels."""
        times = [frames[-1].time for frames in (self.channel(c) for c in CHANNELS) if frames]
        return max(times) if times else 0.0

    def to_dict(self) -> dict:
        data = {"layer_id": self.layer_id}
        for name in CHANNELS:
            data[name] = [kf.to_dict() for kf in self.channel(name)]
        data["paths"] = [p.to_dict() for p in self.paths]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LayerTrack":
        track = cls(layer_id=data["layer_id"])
        for name in CHANNELS:
            setattr(track, name, [Keyframe.from_dict(kf) for kf in data.get(name, [])])
        track.paths = [PathClip.from_dict(p) for p in data.get("paths", [])]
        return track


@dataclass
class TemplateClip:
    """
    A timed application of one template to one layer.

    Attributes:
        id: Unique clip id
        layer_id: Layer the clip animates
        template: Template name (kept as a string so unknown templates survive)
        start: Start time in ms
        duration: Authored duration in ms
        parameters: Template parameters (roll_distance, jump_height, ...)
    """
    id: str
    layer_id: str
    template: str
    start: float = 0.0
    duration: float = 1000.0
    parameters: dict = field(default_factory=dict)

    @property
    def end(self) -> float:
        return self.start + self.duration

    def to_dict(self) -> dict:
        params = {}
        for key, value in self.parameters.items():
            if key == "path_points":
                value = [Vec2.from_dict(p).to_dict() for p in value]
            params[key] = value
        return {
            "id": self.id,
            "layer_id": self.layer_id,
            "template": self.template,
            "start": self.start,
            "duration": self.duration,
            "parameters": params,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TemplateClip":
        params = dict(data.get("parameters", {}))
        if "path_points" in params:
            params["path_points"] = [Vec2.from_dict(p) for p in params["path_points"]]
        return cls(
            id=data["id"],
            layer_id=data["layer_id"],
            template=data.get("template", ""),
            start=float(data.get("start", 0.0)),
            duration=float(data.get("duration", 1000.0)),
            parameters=params,
        )


@dataclass
class SampledLayerState:
    """Flat transform handed to the renderer; also used as a declared base state."""
    position: Vec2 = field(default_factory=lambda: Vec2(0.5, 0.5))
    scale: float = 1.0
    rotation: float = 0.0
    opacity: float = 1.0
    active_path_id: Optional[str] = None

    def value(self, channel: str):
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        return getattr(self, channel)

    def to_dict(self) -> dict:
        data = {
            "position": self.position.to_dict(),
            "scale": self.scale,
            "rotation": self.rotation,
            "opacity": self.opacity,
        }
        if self.active_path_id is not None:
            data["active_path_id"] = self.active_path_id
        return data


DEFAULT_LAYER_STATE = SampledLayerState()


@dataclass
class Layer:
    """
    An animatable object with a declared resting transform.

    The layer-level scale is applied downstream by the renderer, so the
    declared base state handed to the compiler always has scale 1.
    """
    id: str
    kind: str = "circle"
    x: float = 0.5
    y: float = 0.5
    scale: float = 1.0
    rotation: float = 0.0
    opacity: float = 1.0
    props: dict = field(default_factory=dict)

    def base_state(self) -> SampledLayerState:
        return SampledLayerState(
            position=Vec2(self.x, self.y),
            scale=1.0,
            rotation=self.rotation,
            opacity=self.opacity,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "x": self.x,
            "y": self.y,
            "scale": self.scale,
            "rotation": self.rotation,
            "opacity": self.opacity,
            "props": dict(self.props),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Layer":
        return cls(
            id=data["id"],
            kind=data.get("kind", "circle"),
            x=float(data.get("x", 0.5)),
            y=float(data.get("y", 0.5)),
            scale=float(data.get("scale", 1.0)),
            rotation=float(data.get("rotation", 0.0)),
            opacity=float(data.get("opacity", 1.0)),
            props=dict(data.get("props", {})),
        )


@dataclass
class Document:
    """
    The entire editable document — what history snapshots capture.

    Created by the host (or loaded from JSON), mutated through
    document.store.TimelineStore, compiled by composer.timeline.
    """
    layers: list[Layer] = field(default_factory=list)
    layer_order: list[str] = field(default_factory=list)
    clips: list[TemplateClip] = field(default_factory=list)
    parameters: dict = field(default_factory=dict)
    background: dict = field(default_factory=dict)
    keyframes: dict = field(default_factory=dict)  # layer_id -> LayerTrack of hand-placed keyframes

    def get_layer(self, layer_id: str) -> Optional[Layer]:
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        return None

    def get_clip(self, clip_id: str) -> Optional[TemplateClip]:
        for clip in self.clips:
            if clip.id == clip_id:
                return clip
        return None

    def clips_for_layer(self, layer_id: str) -> list[TemplateClip]:
        """Get a layer's clips ordered by start time."""
        return sorted((c for c in self.clips if c.layer_id == layer_id), key=lambda c: c.start)

    def copy(self) -> "Document":
        """Structurally independent deep copy."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        """Serialize document to dict (for JSON persistence)."""
        return {
            "layers": [layer.to_dict() for layer in self.layers],
            "layer_order": list(self.layer_order),
            "clips": [clip.to_dict() for clip in self.clips],
            "parameters": copy.deepcopy(self.parameters),
            "background": copy.deepcopy(self.background),
            "keyframes": {layer_id: track.to_dict() for layer_id, track in self.keyframes.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        """Deserialize document from dict."""
        layers = [Layer.from_dict(d) for d in data.get("layers", [])]
        return cls(
            layers=layers,
            layer_order=list(data.get("layer_order", [layer.id for layer in layers])),
            clips=[TemplateClip.from_dict(d) for d in data.get("clips", [])],
            parameters=dict(data.get("parameters", {})),
            background=dict(data.get("background", {})),
            keyframes={
                layer_id: LayerTrack.from_dict(track)
                for layer_id, track in data.get("keyframes", {}).items()
            },
        )
