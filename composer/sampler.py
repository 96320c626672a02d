"""
Sampler — evaluates compiled layer tracks at a playhead time.

Pure functions; safe to call every frame. Active path clips override the
position channel with a point located by arc length along the path.
"""

import bisect
import math

from document.model import DEFAULT_LAYER_STATE, SampledLayerState
from utils.animation import ease, interpolate
from utils.paths import point_along_path


def _finite_time(t):
    return t if isinstance(t, (int, float)) and math.isfinite(t) else 0.0


def sample_channel(keyframes, t, fallback=None):
    """
    Sample one channel at time t.

    Clamps to the first/last value outside the keyframe range; otherwise
    interpolates the bracketing pair with the arriving keyframe's easing.

    Args:
        keyframes: Time-sorted list of Keyframe
        t: Time in ms
        fallback: Returned when the channel is empty

    Returns:
        Sampled value (float or Vec2)
    """
    if not keyframes:
        return fallback
    t = _finite_time(t)

    first, last = keyframes[0], keyframes[-1]
    if t <= first.time:
        return first.value
    if t >= last.time:
        return last.value

    i = bisect.bisect_right([frame.time for frame in keyframes], t)
    prev, nxt = keyframes[i - 1], keyframes[i]
    if nxt.time == prev.time:
        return nxt.value
    fraction = (t - prev.time) / (nxt.time - prev.time)
    return interpolate(prev.value, nxt.value, fraction, nxt.easing)


def sample_layer_tracks(track, t, default_state=DEFAULT_LAYER_STATE):
    """Sample the four channels independently; empty channels use default_state."""
    if track is None:
        return SampledLayerState(
            position=default_state.position,
            scale=default_state.scale,
            rotation=default_state.rotation,
            opacity=default_state.opacity,
        )
    return SampledLayerState(
        position=sample_channel(track.position, t, default_state.position),
        scale=sample_channel(track.scale, t, default_state.scale),
        rotation=sample_channel(track.rotation, t, default_state.rotation),
        opacity=sample_channel(track.opacity, t, default_state.opacity),
    )


def sample_path_clip(clip, t):
    """
    Point on a path clip at time t, or None outside its window.

    The window is inclusive at both ends. Distance travelled is the eased
    elapsed fraction times the total path length.
    """
    t = _finite_time(t)
    points = [p for p in clip.points if p.is_finite()]
    if len(points) < 2:
        return None
    if t < clip.start_time or t > clip.start_time + clip.duration:
        return None
    if clip.duration <= 0:
        return points[-1]
    fraction = (t - clip.start_time) / clip.duration
    return point_along_path(points, ease(fraction, clip.easing))


def sample_layer(track, t, default_state=DEFAULT_LAYER_STATE):
    """Sample a layer, letting an active path clip override position."""
    state = sample_layer_tracks(track, t, default_state)
    if track is None:
        return state
    for clip in track.paths:
        point = sample_path_clip(clip, t)
        if point is not None:
            state.position = point
            state.active_path_id = clip.id
            break
    return state


def sample_timeline(tracks, t, default_state=DEFAULT_LAYER_STATE, base_states=None):
    """
    Sample every track at time t.

    Args:
        tracks: Iterable of LayerTrack
        t: Playhead time in ms
        default_state: Substitute for empty channels
        base_states: Optional {layer_id: SampledLayerState} overriding
            default_state per layer

    Returns:
        Dict of layer_id -> SampledLayerState
    """
    base_states = base_states or {}
    return {
        track.layer_id: sample_layer(track, t, base_states.get(track.layer_id, default_state))
        for track in tracks
    }
