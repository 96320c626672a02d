"""
Preset Generator — parametric motion templates.

Physical templates derive their duration from their parameters:
  - roll: distance / speed against a calibration (0.2 @ 1200 ms @ 1.0x)
  - jump: single-bounce arc under gravity
  - pop: scale burst, duration 1000 / speed

Periodic templates (shake, pulse, spin) are stretched to whatever clip
length was authored. The in/out family lives in generators/transitions.py.
"""

import math

from document.model import Vec2
from generators.base import Preset, PresetResult, kf, param
from generators.transitions import TRANSITION_PRESETS
from utils.animation import Easing
from utils.paths import calculate_path_length

GRAVITY = 9.8  # normalized units per second^2

ROLL_BASE_DISTANCE = 0.2
ROLL_BASE_DURATION = 1200.0
ROLL_BASE_SPEED = 1.0

MIN_PHYSICAL_DURATION = 300.0
MAX_JUMP_DURATION = 2400.0

# Path clips travel 0.25 units/s at 1x speed
PATH_BASE_SPEED = 0.25


# ─── INVERSE HELPERS (drag-to-resize) ─────────────────────────────

def duration_from_distance(distance, speed=ROLL_BASE_SPEED):
    """Roll duration (ms) for a distance at a speed, before the 300 ms floor."""
    return (distance / ROLL_BASE_DISTANCE) / max(0.1, speed) * ROLL_BASE_DURATION


def distance_from_duration(duration, speed=ROLL_BASE_SPEED):
    """Exact inverse of duration_from_distance."""
    return duration / ROLL_BASE_DURATION * max(0.1, speed) * ROLL_BASE_DISTANCE


def jump_duration(height, velocity):
    """Jump duration (ms): twice the time to reach `height`, clamped to 300..2400."""
    h = max(0.05, height)
    v = max(0.2, velocity)
    # the velocity must be able to reach h at all: v0^2 / 2g >= h
    v0 = max(v, math.sqrt(2 * GRAVITY * h))
    under_root = max(0.0, v0 * v0 - 2 * GRAVITY * h)
    time_up = (v0 - math.sqrt(under_root)) / GRAVITY
    return max(MIN_PHYSICAL_DURATION, min(MAX_JUMP_DURATION, time_up * 2 * 1000))


def jump_height_for_duration(duration, velocity=1.5):
    """Height whose ascent at `velocity` takes half of `duration`."""
    time_up = max(0.15, duration / 2000.0)
    v = max(0.2, velocity)
    height = v * time_up - 0.5 * GRAVITY * time_up * time_up
    return max(0.05, height)


def pop_speed_for_duration(duration):
    """Pop speed that produces `duration` (duration = 1000 / speed)."""
    return max(0.2, 1000.0 / max(100.0, duration))


def path_duration_for_length(length, speed=1.0):
    """Default duration (ms) for travelling a path of `length` units."""
    return max(MIN_PHYSICAL_DURATION, length / PATH_BASE_SPEED / max(0.1, speed) * 1000.0)


# ─── PHYSICAL ─────────────────────────────────────────────────────

class RollPreset(Preset):
    """Constant horizontal travel with four full turns."""
    name = "roll"
    default_duration = ROLL_BASE_DURATION

    def generate(self, params, duration=None):
        distance = max(0.05, param(params, "roll_distance"))
        speed = max(0.1, param(params, "template_speed"))
        natural = max(MIN_PHYSICAL_DURATION, duration_from_distance(distance, speed))
        result = PresetResult(
            duration=natural,
            position=[
                kf(0, Vec2(0, 0)),
                kf(natural, Vec2(distance, 0)),
            ],
            rotation=[
                kf(0, 0.0),
                kf(natural, math.pi * 4),
            ],
            meta={"roll_distance": distance},
        )
        return result.rescaled(duration)


class JumpPreset(Preset):
    """Single bounce with anticipation and landing squash on scale."""
    name = "jump"
    default_duration = 450.0

    def generate(self, params, duration=None):
        height = max(0.05, param(params, "jump_height"))
        velocity = param(params, "jump_velocity")
        d = jump_duration(height, velocity)
        result = PresetResult(
            duration=d,
            position=[
                kf(0, Vec2(0, 0)),
                kf(d * 0.5, Vec2(0, -height), Easing.EASE_OUT),
                kf(d, Vec2(0, 0), Easing.EASE_IN),
            ],
            scale=[
                kf(0, 1.0),
                kf(d * 0.2, 0.95, Easing.EASE_OUT),
                kf(d * 0.5, 1.05, Easing.EASE_OUT),
                # landing squish
                kf(d * 0.85, 0.93, Easing.EASE_IN),
                kf(d, 1.0, Easing.EASE_OUT),
            ],
            meta={"jump_height": height},
        )
        return result.rescaled(duration)


class PopPreset(Preset):
    """
    Scale up to a peak, burst, then vanish.

    collapse=True shrinks to scale 0 (permanent); collapse=False holds the
    peak and only drops opacity, so a later clip can bring it back.
    """
    name = "pop"
    default_duration = 1000.0

    def generate(self, params, duration=None):
        peak = param(params, "pop_scale")
        wobble = bool(param(params, "pop_wobble"))
        collapse = bool(param(params, "pop_collapse"))
        d = 1000.0 / max(0.2, param(params, "pop_speed"))
        burst_start = d * 0.52
        burst_end = d * 0.62
        settle = peak * 0.92 if wobble else peak * 0.9
        settle_easing = Easing.EASE_OUT_BACK if wobble else Easing.EASE_OUT

        scale = [
            kf(0, 1.0),
            kf(d * 0.5, peak, Easing.EASE_OUT),
            kf(burst_start, settle, settle_easing),
        ]
        if collapse:
            scale.append(kf(burst_end, 0.0, Easing.EASE_IN))
        else:
            # hold at peak; only opacity drops
            scale.append(kf(burst_end, peak))

        result = PresetResult(
            duration=d,
            scale=scale,
            opacity=[
                kf(0, 1.0),
                kf(burst_start, 1.0),
                kf(burst_end, 0.0, Easing.EASE_IN),
            ],
            meta={
                "pop_scale": peak,
                "wobble": wobble,
                "collapse": collapse,
                "reappear": bool(param(params, "pop_reappear")),
            },
        )
        return result.rescaled(duration)


# ─── PERIODIC ─────────────────────────────────────────────────────

class ShakePreset(Preset):
    """Alternating horizontal jitter that decays back to rest."""
    name = "shake"
    default_duration = 500.0

    def generate(self, params, duration=None):
        d = duration or self.default_duration
        amplitude = param(params, "shake_distance")
        cycles = max(2, round(6 * max(0.1, param(params, "template_speed"))))
        steps = cycles * 2

        position = [kf(0, Vec2(0, 0))]
        for i in range(1, steps):
            sign = 1 if i % 2 else -1
            decay = 1.0 - i / steps
            position.append(kf(d * i / steps, Vec2(sign * amplitude * decay, 0), Easing.EASE_IN_OUT))
        position.append(kf(d, Vec2(0, 0), Easing.EASE_IN_OUT))

        return PresetResult(duration=d, position=position, meta={"cycles": cycles})


class PulsePreset(Preset):
    """Scale beats between 1 and 1 + amount."""
    name = "pulse"
    default_duration = 800.0

    def generate(self, params, duration=None):
        d = duration or self.default_duration
        amount = param(params, "pulse_scale")
        period = 500.0 / max(0.1, param(params, "pulse_speed"))
        beats = max(1, round(d / period))

        scale = [kf(0, 1.0)]
        for b in range(beats):
            scale.append(kf(d * (2 * b + 1) / (2 * beats), 1.0 + amount, Easing.EASE_IN_OUT))
            scale.append(kf(d * (2 * b + 2) / (2 * beats), 1.0, Easing.EASE_IN_OUT))

        return PresetResult(duration=d, scale=scale, meta={"beats": beats})


class SpinPreset(Preset):
    """Continuous rotation; one turn per second at 1x."""
    name = "spin"
    default_duration = 1200.0

    def generate(self, params, duration=None):
        d = duration or self.default_duration
        speed = max(0.1, param(params, "spin_speed"))
        direction = -1 if param(params, "spin_direction") < 0 else 1
        turns = speed * d / 1000.0
        return PresetResult(
            duration=d,
            rotation=[
                kf(0, 0.0),
                kf(d, direction * math.pi * 2 * turns),
            ],
            meta={"turns": turns},
        )


class PathPreset(Preset):
    """
    Freehand path. Carries no keyframes: the compiler records a PathClip
    and the sampler walks it by arc length.
    """
    name = "path"
    default_duration = 1000.0

    def natural_duration(self, params):
        points = [Vec2.from_dict(p) for p in param(params, "path_points") or []]
        return path_duration_for_length(calculate_path_length(points), param(params, "template_speed"))

    def generate(self, params, duration=None):
        d = duration or self.natural_duration(params)
        return PresetResult(duration=d, meta={"path": True})


PRESETS = {}


def register_preset(preset):
    PRESETS[preset.name] = preset
    return preset


for _preset in (RollPreset(), JumpPreset(), PopPreset(), ShakePreset(),
                PulsePreset(), SpinPreset(), PathPreset()):
    register_preset(_preset)
for _preset in TRANSITION_PRESETS:
    register_preset(_preset)


def get_preset(template):
    """Look up a template strategy; None for unknown templates."""
    return PRESETS.get(template)


def is_in_out(template):
    preset = get_preset(template)
    return preset is not None and preset.in_out is not None
