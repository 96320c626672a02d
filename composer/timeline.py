"""
Timeline compiler — rebuilds a layer's animation channels from its clips.

Takes one layer's TemplateClips (the single source of truth) plus the
layer's declared base state and deterministically produces a LayerTrack:
four keyframe channels (position, scale, rotation, opacity) and a list of
PathClips. Identical inputs always compile to identical tracks.

Every keyframe a clip writes is tagged with that clip's id; compiler
fallbacks carry BASE_TAG and hand-placed keyframes carry no tag.
"""

import bisect
import math
from dataclasses import replace

from composer.sampler import sample_channel
from document.model import (
    BASE_TAG, CHANNELS, DEFAULT_LAYER_STATE, USE_BASE,
    Keyframe, LayerTrack, PathClip, SampledLayerState, Vec2,
)
from generators.base import param
from generators.presets import get_preset
from utils.animation import Easing

MIN_CLIP_DURATION = 80.0  # ms
MIN_TIMELINE_DURATION = 4000.0  # ms
HOLD_OFFSET = 1.0  # ms before a clip where the layer is frozen


def _t(time):
    """Round keyframe times so rescaled curves land on exact boundaries."""
    return round(time, 6)


def _finite(value):
    return isinstance(value, (int, float)) and math.isfinite(value)


def _clip_duration(duration, minimum):
    if not _finite(duration) or duration < minimum:
        return minimum
    return float(duration)


def _clip_start(start):
    if not _finite(start) or start < 0:
        return 0.0
    return float(start)


def _insert(frames, frame):
    """Insert in time order; an existing keyframe at the same time is replaced."""
    i = bisect.bisect_left([f.time for f in frames], frame.time)
    if i < len(frames) and frames[i].time == frame.time:
        frames[i] = frame
    else:
        frames.insert(i, frame)


def upsert_keyframe(frames, frame):
    """Return a new time-sorted list with `frame` merged in (last write wins)."""
    merged = list(frames)
    _insert(merged, frame)
    return merged


def _sanitize_state(state, fallback=DEFAULT_LAYER_STATE):
    """Replace any non-finite component with the fallback's."""
    position = state.position if isinstance(state.position, Vec2) and state.position.is_finite() \
        else fallback.position
    return SampledLayerState(
        position=position,
        scale=state.scale if _finite(state.scale) else fallback.scale,
        rotation=state.rotation if _finite(state.rotation) else fallback.rotation,
        opacity=state.opacity if _finite(state.opacity) else fallback.opacity,
    )


def _sample_state(channels, original, t, declared):
    """
    Sample the state at t from the track under construction, falling back
    per channel to the original track, then to the declared base.
    """
    values = {}
    for name in CHANNELS:
        frames = channels[name]
        if not frames and original is not None:
            frames = original.channel(name)
        values[name] = sample_channel(frames, t, declared.value(name))
    return _sanitize_state(SampledLayerState(**values), declared)


def _map_value(channel, value, base, in_out):
    """Resolve a local preset value against the clip base state."""
    if value is USE_BASE:
        return base.value(channel)
    if channel == "position":
        if not isinstance(value, Vec2) or not value.is_finite():
            return base.position
        return base.position + value
    if not _finite(value):
        return base.value(channel)
    if channel == "rotation":
        return base.rotation + value
    if channel == "scale":
        # absolute multiplier; layer-level scale is applied downstream
        return value
    # opacity
    return value if in_out else base.opacity * value


def _hold(channels, time, state, clip_id, names=CHANNELS):
    for name in names:
        _insert(channels[name], Keyframe(_t(time), state.value(name), Easing.LINEAR, clip_id))


def _path_points(params):
    points = []
    for p in param(params, "path_points") or []:
        p = Vec2.from_dict(p)
        if p.is_finite():
            points.append(p)
    return points


def compile_layer_track(layer_id, clips, base_state=None, original=None,
                        min_clip_duration=MIN_CLIP_DURATION):
    """
    Compile one layer's clips into a LayerTrack.

    Args:
        layer_id: Layer being compiled
        clips: The layer's TemplateClips (any order)
        base_state: Declared base (rest) state of the layer
        original: Pre-rebuild track; consulted for the first clip's base and
            for channels the new track has no data for yet. Hand-placed
            keyframes (clip_id None) on channels no clip drives are kept.
        min_clip_duration: Floor for non-finite / too-short durations

    Returns:
        LayerTrack with a time-0 keyframe on every channel
    """
    declared = _sanitize_state(base_state or DEFAULT_LAYER_STATE)
    ordered = sorted(clips, key=lambda c: _clip_start(c.start))
    channels = {name: [] for name in CHANNELS}
    paths = []

    clip_bases = {}
    written = set()
    prev_end = None
    prev_meta = None
    prev_id = None

    for i, clip in enumerate(ordered):
        start = _clip_start(clip.start)
        duration = _clip_duration(clip.duration, min_clip_duration)
        preset = get_preset(clip.template)
        in_out = preset.in_out if preset is not None else None

        # a. state immediately before this clip
        if i == 0:
            if in_out:
                base = declared
            else:
                base = _sample_state({name: [] for name in CHANNELS}, original, start, declared)
                base = replace(base, scale=abs(base.scale))
        else:
            boundary = min(start, prev_end)
            base = _sample_state(channels, original, boundary, declared)
            if start < prev_end:
                # overlapping clip cuts the previous one short
                for name in CHANNELS:
                    channels[name] = [f for f in channels[name] if f.time <= start]
                _hold(channels, start, base, clip.id)
        sampled = base

        restore = (
            prev_meta is not None
            and prev_meta.get("collapse")
            and prev_meta.get("reappear")
            and prev_id in clip_bases
        )
        if restore:
            popped = clip_bases[prev_id]
            base = replace(base, scale=popped.scale, opacity=popped.opacity)
        elif in_out == "in" and (base.opacity <= 0 or base.scale <= 0):
            # an entrance after a hidden state settles on the declared rest
            base = replace(base, scale=declared.scale, opacity=declared.opacity)
        clip_bases[clip.id] = base

        if preset is None:
            print(f"   [Compiler] Unknown template '{clip.template}' on clip {clip.id}, skipping")
            prev_end, prev_meta, prev_id = start + duration, None, clip.id
            continue

        # b. local curve stretched to the authored duration
        try:
            result = preset.generate(clip.parameters, duration).rescaled(duration)
        except Exception as e:
            print(f"   [Compiler] Template '{clip.template}' failed on clip {clip.id}: {e}")
            _hold(channels, start, base, clip.id)
            _hold(channels, start + duration, base, clip.id)
            prev_end, prev_meta, prev_id = start + duration, None, clip.id
            continue

        # c. freeze the layer across a gap before this clip
        hold_time = start - HOLD_OFFSET
        if i > 0 and hold_time > prev_end:
            _hold(channels, hold_time, sampled, clip.id)

        if restore:
            # stay collapsed until this clip starts, then come back
            for name in ("scale", "opacity"):
                frames = channels[name]
                if hold_time > 0 and (not frames or frames[-1].time < hold_time):
                    _insert(frames, Keyframe(_t(hold_time), sampled.value(name), Easing.LINEAR, clip.id))
            _hold(channels, start, base, clip.id, names=("scale", "opacity"))

        # f. path clips record the path instead of position keyframes
        if clip.template == "path":
            points = _path_points(clip.parameters)
            if len(points) >= 2:
                easing = Easing(param(clip.parameters, "path_easing") or "linear")
                paths.append(PathClip(clip.id, start, duration, points, easing))
                written.add("position")
                delta = points[-1] - base.position
                _insert(channels["position"], Keyframe(
                    _t(start + duration), base.position + delta, Easing.LINEAR, clip.id,
                ))
            else:
                _hold(channels, start, base, clip.id, names=("position",))
                _hold(channels, start + duration, base, clip.id, names=("position",))

        # d/e. map into absolute time and value, tag, merge
        for name in CHANNELS:
            if result.channel(name):
                written.add(name)
            for frame in result.channel(name):
                _insert(channels[name], Keyframe(
                    time=_t(start + frame.time),
                    value=_map_value(name, frame.value, base, in_out),
                    easing=frame.easing,
                    clip_id=clip.id,
                ))

        prev_end, prev_meta, prev_id = start + duration, result.meta, clip.id

    # hand-placed keyframes own the channels no clip animates
    if original is not None:
        for name in CHANNELS:
            manual = [f for f in original.channel(name) if f.clip_id is None]
            if manual and name not in written:
                channels[name] = manual

    _anchor_time_zero(channels, ordered, clip_bases)

    for name in CHANNELS:
        if not channels[name]:
            channels[name] = [Keyframe(0.0, declared.value(name), Easing.LINEAR, BASE_TAG)]

    return LayerTrack(
        layer_id=layer_id,
        paths=sorted(paths, key=lambda p: p.start_time),
        **channels,
    )


def _anchor_time_zero(channels, ordered, clip_bases):
    """
    Guarantee a time-0 keyframe on every non-empty channel, duplicated at
    firstClipStart - 1 so nothing interpolates across the idle lead-in.
    """
    first = ordered[0] if ordered else None
    first_start = _clip_start(first.start) if first is not None else 0.0

    for name, frames in channels.items():
        if not frames or frames[0].time <= 0:
            continue
        lead = frames[0]
        if lead.clip_id is None or first is None or first.id not in clip_bases:
            value, tag = lead.value, BASE_TAG
        else:
            value, tag = clip_bases[first.id].value(name), first.id

        hold_time = first_start - HOLD_OFFSET
        if tag != BASE_TAG and 0 < hold_time < lead.time:
            _insert(frames, Keyframe(_t(hold_time), value, Easing.LINEAR, tag))
        _insert(frames, Keyframe(0.0, value, Easing.LINEAR, tag))


def driven_channels(clips, min_clip_duration=MIN_CLIP_DURATION):
    """Names of the channels at least one of these clips animates."""
    driven = set()
    for clip in clips:
        preset = get_preset(clip.template)
        if preset is None:
            continue
        if clip.template == "path":
            driven.add("position")
            continue
        try:
            result = preset.generate(clip.parameters, _clip_duration(clip.duration, min_clip_duration))
        except Exception:
            continue
        driven.update(name for name in CHANNELS if result.channel(name))
    return driven


def timeline_duration(tracks, clips=(), floor=MIN_TIMELINE_DURATION):
    """
    Overall timeline length (ms).

    Max of the last keyframe across all channels, every clip end, every
    path clip end, and a floor.
    """
    ends = [floor]
    for track in tracks:
        ends.append(track.end_time())
        ends.extend(p.end_time for p in track.paths)
    for clip in clips:
        if _finite(clip.start) and _finite(clip.duration):
            ends.append(clip.start + clip.duration)
    return max(ends)


def compile_document(document, original_tracks=None, min_clip_duration=MIN_CLIP_DURATION):
    """
    Compile every layer of a Document.

    Args:
        document: Document with layers and clips
        original_tracks: Optional {layer_id: LayerTrack} pre-rebuild tracks

    Returns:
        Dict of layer_id -> LayerTrack
    """
    original_tracks = original_tracks or {}
    return {
        layer.id: compile_layer_track(
            layer.id,
            document.clips_for_layer(layer.id),
            layer.base_state(),
            original_tracks.get(layer.id),
            min_clip_duration,
        )
        for layer in document.layers
    }
