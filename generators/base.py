"""
Preset contract shared by every template generator.

A preset turns (parameters, optional target duration) into a local keyframe
curve starting at time 0. Values are offsets/multipliers against a zero
baseline; in/out presets may also use USE_BASE to mark the keyframe that
settles on the caller-supplied base state.
"""

from dataclasses import dataclass, field, replace

from document.model import CHANNELS, Keyframe
from utils.animation import Easing

# Global template parameter defaults (overridable from config.yaml "templates")
DEFAULT_PARAMETERS = {
    "template_speed": 1.0,
    "roll_distance": 0.2,
    "jump_height": 0.25,
    "jump_velocity": 1.5,
    "pop_scale": 1.6,
    "pop_wobble": False,
    "pop_speed": 1.0,
    "pop_collapse": True,
    "pop_reappear": False,
    "shake_distance": 0.02,
    "pulse_scale": 0.2,
    "pulse_speed": 1.0,
    "spin_speed": 1.0,
    "spin_direction": 1,
    "slide_distance": 0.2,
}


def param(params, key):
    """Read a template parameter, falling back to the global default."""
    value = params.get(key) if params else None
    if value is None:
        return DEFAULT_PARAMETERS.get(key)
    return value


def kf(time, value, easing=Easing.LINEAR):
    """Shorthand for a local (untagged) keyframe."""
    return Keyframe(time=time, value=value, easing=easing)


@dataclass
class PresetResult:
    """Local keyframe deltas for each channel plus the natural duration (ms)."""
    duration: float
    position: list = field(default_factory=list)
    scale: list = field(default_factory=list)
    rotation: list = field(default_factory=list)
    opacity: list = field(default_factory=list)
    meta: dict = field(default_factory=dict)

    def channel(self, name):
        if name not in CHANNELS:
            raise ValueError(f"Unknown channel: {name}")
        return getattr(self, name)

    def rescaled(self, duration):
        """Stretch every keyframe time so the curve fills `duration`."""
        if duration is None or self.duration <= 0 or duration == self.duration:
            return self
        k = duration / self.duration
        channels = {
            name: [replace(frame, time=frame.time * k) for frame in self.channel(name)]
            for name in CHANNELS
        }
        return PresetResult(duration=duration, meta=dict(self.meta), **channels)


class Preset:
    """
    Base class for template strategies.

    Subclasses set `name`, `default_duration` and, for the in/out family,
    `in_out` ("in" or "out"), and implement generate().
    """
    name = ""
    in_out = None
    default_duration = 1000.0

    def natural_duration(self, params):
        """Duration the preset picks when the caller does not override it."""
        return self.generate(params).duration

    def generate(self, params, duration=None):
        raise NotImplementedError
