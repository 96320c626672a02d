"""
In/out templates — entrances and exits that settle on the layer's base state.

Every *_in clip ends exactly at the layer's resting transform and every
*_out clip starts from it, whatever that transform is. The settled
keyframe carries USE_BASE; the compiler resolves it against the clip base.

Other values per channel:
  - position / rotation: offsets from the clip base
  - scale: absolute multiplier
  - opacity: literal value (replaces the clip base)
"""

import math

from document.model import USE_BASE, Vec2
from generators.base import Preset, PresetResult, kf, param
from utils.animation import Easing

DEFAULT_TRANSITION_DURATION = 500.0
GROW_FACTOR = 1.5


def _fade(params, direction):
    return {"opacity": 0.0}


def _slide(params, direction):
    d = param(params, "slide_distance")
    offset = Vec2(-d, 0) if direction == "in" else Vec2(d, 0)
    return {"position": offset, "opacity": 0.0}


def _grow(params, direction):
    if direction == "in":
        return {"scale": 0.0}
    return {"scale": GROW_FACTOR, "opacity": 0.0}


def _shrink(params, direction):
    if direction == "in":
        return {"scale": GROW_FACTOR, "opacity": 0.0}
    return {"scale": 0.0}


def _spin(params, direction):
    turn = math.pi * 2
    return {"rotation": -turn if direction == "in" else turn, "scale": 0.0}


def _twist(params, direction):
    quarter = math.pi / 2
    return {"rotation": -quarter if direction == "in" else quarter, "opacity": 0.0}


def _move_scale(params, direction):
    d = param(params, "slide_distance")
    offset = Vec2(0, d) if direction == "in" else Vec2(0, -d)
    return {"position": offset, "scale": 0.5}


TRANSITION_FAMILY = {
    "fade": _fade,
    "slide": _slide,
    "grow": _grow,
    "shrink": _shrink,
    "spin": _spin,
    "twist": _twist,
    "move_scale": _move_scale,
}

# twist overshoots into place, everything else decelerates in / accelerates out
ENTRANCE_EASING = {"twist": Easing.EASE_OUT_BACK}


class TransitionPreset(Preset):
    """One member of the in/out family, e.g. slide_in or grow_out."""
    default_duration = DEFAULT_TRANSITION_DURATION

    def __init__(self, family, direction):
        self.family = family
        self.in_out = direction
        self.name = f"{family}_{direction}"

    def generate(self, params, duration=None):
        d = duration or self.default_duration
        channels = TRANSITION_FAMILY[self.family](params, self.in_out)

        frames = {}
        for channel, value in channels.items():
            if self.in_out == "in":
                easing = ENTRANCE_EASING.get(self.family, Easing.EASE_OUT)
                frames[channel] = [kf(0, value), kf(d, USE_BASE, easing)]
            else:
                frames[channel] = [kf(0, USE_BASE), kf(d, value, Easing.EASE_IN)]

        return PresetResult(duration=d, meta={"in_out": self.in_out}, **frames)


TRANSITION_PRESETS = [
    TransitionPreset(family, direction)
    for family in TRANSITION_FAMILY
    for direction in ("in", "out")
]
