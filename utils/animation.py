"""
Animation utilities — easing curves and interpolation for keyframe playback.

Used by the preset generators (to tag keyframes) and by the sampler
(to evaluate the fraction between two bracketing keyframes).
"""

from enum import Enum


class Easing(Enum):
    """Easing applied on the way INTO a keyframe."""
    LINEAR = "linear"
    EASE_IN = "ease_in"
    EASE_OUT = "ease_out"
    EASE_IN_OUT = "ease_in_out"
    EASE_OUT_BACK = "ease_out_back"
    STEP = "step"


def ease_in_quad(t):
    """Slow start, fast end. Good for landings."""
    t = max(0.0, min(1.0, t))
    return t * t


def ease_out_quad(t):
    """Gentle deceleration."""
    t = max(0.0, min(1.0, t))
    return 1.0 - (1.0 - t) ** 2


def ease_in_out_quad(t):
    """Smooth acceleration and deceleration."""
    t = max(0.0, min(1.0, t))
    if t < 0.5:
        return 2.0 * t * t
    else:
        return 1.0 - (-2.0 * t + 2.0) ** 2 / 2.0


def ease_out_back(t):
    """Overshoots the target slightly, then settles. Great for pop/wobble."""
    t = max(0.0, min(1.0, t))
    c1 = 1.70158
    c3 = c1 + 1.0
    return 1.0 + c3 * (t - 1.0) ** 3 + c1 * (t - 1.0) ** 2


def step(t):
    """Hold the previous value until the next keyframe is reached."""
    return 1.0 if t >= 1.0 else 0.0


EASING_FUNCTIONS = {
    Easing.LINEAR: lambda t: max(0.0, min(1.0, t)),
    Easing.EASE_IN: ease_in_quad,
    Easing.EASE_OUT: ease_out_quad,
    Easing.EASE_IN_OUT: ease_in_out_quad,
    Easing.EASE_OUT_BACK: ease_out_back,
    Easing.STEP: step,
}


def ease(t, easing=Easing.LINEAR):
    """
    Map a linear progress fraction through an easing curve.

    Args:
        t: Progress 0.0 to 1.0 (clamped)
        easing: Easing enum value or its string name. None = linear.

    Returns:
        Eased fraction (may leave 0..1 for overshooting curves)
    """
    if easing is None:
        easing = Easing.LINEAR
    elif not isinstance(easing, Easing):
        easing = Easing(easing)
    return EASING_FUNCTIONS[easing](t)


def interpolate(start, end, t, easing=None):
    """
    Interpolate between two values with optional easing.

    Args:
        start: Start value (number or anything supporting + - and scalar *)
        end: End value
        t: Progress 0.0 to 1.0
        easing: Easing enum value. None = linear.

    Returns:
        Interpolated value
    """
    return start + (end - start) * ease(t, easing)
