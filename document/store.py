"""
Timeline store — the editable document plus everything derived from it.

Owns the Document, one compiled LayerTrack per layer, playback state and
undo/redo history. Every mutation recompiles the affected layers before
returning, so sampling never sees a stale track, then records a history
snapshot and notifies subscribers.

Usage:
    store = TimelineStore(config=config)
    store.add_layer(Layer("ball", x=0.3, y=0.5))
    store.apply_preset("ball", "roll")
    store.apply_preset("ball", "jump")
    state = store.sample_at(600)["ball"]
"""

import math
import uuid
from dataclasses import replace

from composer.sampler import sample_timeline
from composer.timeline import (
    MIN_CLIP_DURATION, MIN_TIMELINE_DURATION,
    compile_layer_track, driven_channels, timeline_duration, upsert_keyframe,
)
from document.history import DEFAULT_CAPACITY, HistoryManager
from document.model import CHANNELS, Document, LayerTrack, TemplateClip, Vec2
from generators.base import DEFAULT_PARAMETERS, param
from generators.presets import (
    distance_from_duration, get_preset, jump_height_for_duration, pop_speed_for_duration,
)
from utils.paths import chaikin_smooth

# (min, max) clamps applied by set_parameter and resize_clip
PARAMETER_LIMITS = {
    "template_speed": (0.1, 4.0),
    "roll_distance": (0.01, 1.0),
    "jump_height": (0.05, 1.0),
    "jump_velocity": (0.2, 6.0),
    "pop_scale": (1.0, 3.0),
    "pop_speed": (0.25, 3.0),
    "pulse_scale": (0.05, 1.0),
    "pulse_speed": (0.1, 5.0),
    "spin_speed": (0.1, 10.0),
    "shake_distance": (0.0, 0.5),
    "slide_distance": (0.01, 1.0),
}

BOOLEAN_PARAMETERS = ("pop_wobble", "pop_collapse", "pop_reappear")

# Global parameters copied into a new clip, per template
TEMPLATE_PARAMETERS = {
    "roll": ("roll_distance", "template_speed"),
    "jump": ("jump_height", "jump_velocity"),
    "pop": ("pop_scale", "pop_wobble", "pop_speed", "pop_collapse", "pop_reappear"),
    "shake": ("shake_distance", "template_speed"),
    "pulse": ("pulse_scale", "pulse_speed"),
    "spin": ("spin_speed", "spin_direction"),
    "path": ("template_speed",),
}
TRANSITION_PARAMETERS = ("slide_distance",)

LAYER_FIELDS = ("kind", "x", "y", "scale", "rotation", "opacity", "props")

SAME_START_TOLERANCE = 1.0  # ms


def _clamp(value, low, high):
    return max(low, min(high, value))


def _finite(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class TimelineStore:
    """
    Document aggregate with subscribe/notify.

    Args:
        document: Initial Document (copied); empty when None
        config: Parsed config.yaml dict; uses the "timeline" and
            "templates" sections
    """

    def __init__(self, document=None, config=None):
        config = config or {}
        timeline_config = config.get("timeline", {})
        self.min_clip_duration = float(timeline_config.get("min_clip_duration", MIN_CLIP_DURATION))
        self.min_duration = float(timeline_config.get("min_duration", MIN_TIMELINE_DURATION))
        self.history = HistoryManager(timeline_config.get("history_capacity", DEFAULT_CAPACITY))

        self.document = document.copy() if document is not None else Document()
        parameters = dict(DEFAULT_PARAMETERS)
        parameters.update(config.get("templates", {}))
        parameters.update(self.document.parameters)
        self.document.parameters = parameters

        self.tracks = {}
        self.duration = self.min_duration
        self.current_time = 0.0
        self.is_playing = False
        self.loop = False
        self.playback_rate = 1.0
        self._last_tick = None
        self._listeners = []

        self._rebuild_all()
        self.history.push(self.document)

    # ─── SUBSCRIPTIONS ────────────────────────────────────────────

    def subscribe(self, listener):
        """Register listener(store); returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    # ─── COMPILATION ──────────────────────────────────────────────

    def _rebuild_layer(self, layer_id):
        layer = self.document.get_layer(layer_id)
        if layer is None:
            self.tracks.pop(layer_id, None)
            return
        self.tracks[layer_id] = compile_layer_track(
            layer_id,
            self.document.clips_for_layer(layer_id),
            layer.base_state(),
            self.document.keyframes.get(layer_id),
            self.min_clip_duration,
        )

    def _rebuild_all(self):
        self.tracks = {}
        for layer in self.document.layers:
            self._rebuild_layer(layer.id)
        self._update_duration()

    def _update_duration(self):
        self.duration = timeline_duration(self.tracks.values(), self.document.clips, self.min_duration)
        self.current_time = _clamp(self.current_time, 0.0, self.duration)

    def _commit(self, *layer_ids):
        """Recompile the touched layers, snapshot, notify."""
        for layer_id in layer_ids:
            self._rebuild_layer(layer_id)
        self._update_duration()
        self.history.push(self.document)
        self._notify()

    # ─── LAYERS ───────────────────────────────────────────────────

    def add_layer(self, layer):
        if self.document.get_layer(layer.id) is not None:
            print(f"   [Store] Layer '{layer.id}' already exists")
            return False
        self.document.layers.append(layer)
        self.document.layer_order.append(layer.id)
        self._commit(layer.id)
        return True

    def update_layer(self, layer_id, **changes):
        """Change a layer's declared transform or props; recompiles its track."""
        layer = self.document.get_layer(layer_id)
        if layer is None:
            return False
        unknown = [key for key in changes if key not in LAYER_FIELDS]
        if unknown:
            raise ValueError(f"Unknown layer field: {unknown[0]}")
        for key, value in changes.items():
            setattr(layer, key, value)
        self._commit(layer_id)
        return True

    def remove_layer(self, layer_id):
        if self.document.get_layer(layer_id) is None:
            return False
        doc = self.document
        doc.layers = [layer for layer in doc.layers if layer.id != layer_id]
        doc.layer_order = [i for i in doc.layer_order if i != layer_id]
        doc.clips = [clip for clip in doc.clips if clip.layer_id != layer_id]
        doc.keyframes.pop(layer_id, None)
        self._commit(layer_id)
        return True

    # ─── CLIPS ────────────────────────────────────────────────────

    def _clip_parameters(self, template, overrides):
        preset = get_preset(template)
        keys = TRANSITION_PARAMETERS if preset.in_out else TEMPLATE_PARAMETERS.get(template, ())
        params = {key: self.document.parameters.get(key, DEFAULT_PARAMETERS.get(key)) for key in keys}
        params.update(overrides or {})
        if params.get("path_points"):
            params["path_points"] = [Vec2.from_dict(p) for p in params["path_points"]]
        return params

    def apply_preset(self, layer_id, template, start=None, duration=None, parameters=None):
        """
        Add a clip of `template` to a layer.

        Args:
            layer_id: Target layer
            template: Template name (roll, jump, pop, fade_in, ...)
            start: Start time in ms; None appends after the layer's last clip
            duration: Authored duration in ms; None uses the template's own
            parameters: Overrides for the global template parameters

        Returns:
            New clip id, or None when the layer or template is unknown
        """
        if self.document.get_layer(layer_id) is None:
            return None
        preset = get_preset(template)
        if preset is None:
            print(f"   [Store] Unknown template '{template}'")
            return None

        params = self._clip_parameters(template, parameters)
        existing = self.document.clips_for_layer(layer_id)
        if start is None:
            start = max((clip.end for clip in existing), default=0.0)
        start = max(0.0, float(start)) if _finite(start) else 0.0
        if duration is None:
            duration = preset.natural_duration(params)
        duration = max(self.min_clip_duration, float(duration)) if _finite(duration) \
            else self.min_clip_duration

        # re-applying the same template at the same spot replaces it
        self.document.clips = [
            clip for clip in self.document.clips
            if not (clip.layer_id == layer_id and clip.template == template
                    and abs(clip.start - start) < SAME_START_TOLERANCE)
        ]

        clip = TemplateClip(
            id=f"clip-{uuid.uuid4().hex[:12]}",
            layer_id=layer_id,
            template=template,
            start=start,
            duration=duration,
            parameters=params,
        )
        self.document.clips.append(clip)
        self._commit(layer_id)
        return clip.id

    def apply_path(self, layer_id, points, start=None, duration=None, smooth_iterations=2):
        """
        Add a freehand path clip from raw drawn points.

        The points are Chaikin-smoothed first; duration defaults to the
        time the smoothed path takes at the current template speed.
        """
        points = [Vec2.from_dict(p) for p in points]
        smoothed = chaikin_smooth(points, iterations=smooth_iterations)
        return self.apply_preset(layer_id, "path", start=start, duration=duration,
                                 parameters={"path_points": list(smoothed)})

    def update_clip(self, clip_id, start=None, duration=None, parameters=None):
        clip = self.document.get_clip(clip_id)
        if clip is None:
            return False
        if start is not None:
            clip.start = max(0.0, float(start)) if _finite(start) else 0.0
        if duration is not None:
            clip.duration = max(self.min_clip_duration, float(duration)) if _finite(duration) \
                else self.min_clip_duration
        if parameters:
            clip.parameters.update(parameters)
        self._commit(clip.layer_id)
        return True

    def move_clip(self, clip_id, start):
        return self.update_clip(clip_id, start=start)

    def resize_clip(self, clip_id, duration):
        """
        Change a clip's duration. Physical templates re-derive the parameter
        that determines their length so the clip plays at its new size.
        """
        clip = self.document.get_clip(clip_id)
        if clip is None:
            return False
        if not _finite(duration):
            duration = self.min_clip_duration
        duration = max(self.min_clip_duration, float(duration))

        params = {}
        if clip.template == "roll":
            distance = distance_from_duration(duration, param(clip.parameters, "template_speed"))
            params["roll_distance"] = _clamp(distance, *PARAMETER_LIMITS["roll_distance"])
        elif clip.template == "jump":
            height = jump_height_for_duration(duration, param(clip.parameters, "jump_velocity"))
            params["jump_height"] = _clamp(height, *PARAMETER_LIMITS["jump_height"])
        elif clip.template == "pop":
            params["pop_speed"] = _clamp(pop_speed_for_duration(duration), *PARAMETER_LIMITS["pop_speed"])

        return self.update_clip(clip_id, duration=duration, parameters=params)

    def remove_clip(self, clip_id):
        clip = self.document.get_clip(clip_id)
        if clip is None:
            return False
        self.document.clips = [c for c in self.document.clips if c.id != clip_id]
        self._commit(clip.layer_id)
        return True

    def reorder_clips(self, layer_id, clip_ids):
        """Lay the layer's clips back-to-back in the given order."""
        clips = self.document.clips_for_layer(layer_id)
        if not clips or sorted(clip_ids) != sorted(c.id for c in clips):
            return False
        cursor = min(clip.start for clip in clips)
        for clip_id in clip_ids:
            clip = self.document.get_clip(clip_id)
            clip.start = cursor
            cursor += clip.duration
        self._commit(layer_id)
        return True

    def clips_for_layer(self, layer_id):
        return self.document.clips_for_layer(layer_id)

    # ─── KEYFRAMES ────────────────────────────────────────────────

    def _manual_channel_open(self, layer_id, channel):
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        if self.document.get_layer(layer_id) is None:
            return False
        clips = self.document.clips_for_layer(layer_id)
        if channel in driven_channels(clips, self.min_clip_duration):
            print(f"   [Store] '{channel}' on layer '{layer_id}' is driven by clips")
            return False
        return True

    def set_keyframe(self, layer_id, channel, keyframe):
        """Place a hand-authored keyframe; refused on channels a clip animates."""
        if not self._manual_channel_open(layer_id, channel):
            return False
        track = self.document.keyframes.setdefault(layer_id, LayerTrack(layer_id))
        frames = upsert_keyframe(track.channel(channel), replace(keyframe, clip_id=None))
        setattr(track, channel, frames)
        self._commit(layer_id)
        return True

    def remove_keyframe(self, layer_id, channel, time):
        if not self._manual_channel_open(layer_id, channel):
            return False
        track = self.document.keyframes.get(layer_id)
        if track is None:
            return False
        frames = track.channel(channel)
        kept = [frame for frame in frames if frame.time != time]
        if len(kept) == len(frames):
            return False
        setattr(track, channel, kept)
        self._commit(layer_id)
        return True

    # ─── PARAMETERS ───────────────────────────────────────────────

    def set_parameter(self, name, value):
        """
        Set a global template parameter (used by clips created afterwards).

        Numeric values are clamped to PARAMETER_LIMITS; spin_direction is
        coerced to +1 / -1.
        """
        if name in BOOLEAN_PARAMETERS:
            value = bool(value)
        elif name == "spin_direction":
            value = -1 if value < 0 else 1
        elif name in PARAMETER_LIMITS:
            if not _finite(value):
                return False
            value = _clamp(float(value), *PARAMETER_LIMITS[name])
        else:
            return False
        self.document.parameters[name] = value
        self.history.push(self.document)
        self._notify()
        return True

    # ─── PLAYBACK ─────────────────────────────────────────────────

    def set_current_time(self, time):
        """Seek; clamps into [0, duration] and pauses playback."""
        time = float(time) if _finite(time) else 0.0
        self.current_time = _clamp(time, 0.0, self.duration)
        self.is_playing = False
        self._last_tick = None
        self._notify()

    def set_playing(self, playing):
        playing = bool(playing)
        if playing and self.current_time >= self.duration:
            self.current_time = 0.0
        self.is_playing = playing
        self._last_tick = None
        self._notify()

    def toggle_play(self):
        self.set_playing(not self.is_playing)

    def set_loop(self, loop):
        self.loop = bool(loop)
        self._notify()

    def set_playback_rate(self, rate):
        self.playback_rate = max(0.1, float(rate)) if _finite(rate) else 1.0
        self._notify()

    def tick(self, timestamp_ms):
        """
        Advance the playhead from a host clock timestamp.

        The first tick after play only records the timestamp. Reaching the
        end wraps around when looping, otherwise stops on the last frame.
        """
        if not self.is_playing or not _finite(timestamp_ms):
            return
        if self._last_tick is None:
            self._last_tick = timestamp_ms
            return
        delta = max(0.0, timestamp_ms - self._last_tick) * self.playback_rate
        self._last_tick = timestamp_ms

        next_time = self.current_time + delta
        if next_time >= self.duration:
            if self.loop and self.duration > 0:
                next_time %= self.duration
            else:
                next_time = self.duration
                self.is_playing = False
                self._last_tick = None
        self.current_time = next_time
        self._notify()

    # ─── HISTORY ──────────────────────────────────────────────────

    def snapshot(self):
        """Deep copy of the editable document."""
        return self.document.copy()

    def apply_snapshot(self, snapshot):
        """Replace the document with a snapshot and recompile everything."""
        self.document = snapshot.copy()
        self._rebuild_all()
        self._notify()

    def undo(self):
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self.apply_snapshot(snapshot)
        return True

    def redo(self):
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self.apply_snapshot(snapshot)
        return True

    def can_undo(self):
        return self.history.can_undo()

    def can_redo(self):
        return self.history.can_redo()

    # ─── SAMPLING ─────────────────────────────────────────────────

    def sample_at(self, time=None):
        """Sampled state of every layer at `time` (default: the playhead)."""
        if time is None:
            time = self.current_time
        base_states = {layer.id: layer.base_state() for layer in self.document.layers}
        ordered = [self.tracks[i] for i in self.document.layer_order if i in self.tracks]
        return sample_timeline(ordered, time, base_states=base_states)
