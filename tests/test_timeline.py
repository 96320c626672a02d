"""Tests for the timeline compiler: base chaining, holds, anchors and edge policy."""

import math

import pytest

from composer.sampler import sample_channel, sample_layer
from composer.timeline import (
    compile_document, compile_layer_track, driven_channels, timeline_duration,
)
from document.model import (
    BASE_TAG, CHANNELS, Document, Keyframe, Layer, LayerTrack, SampledLayerState, Vec2,
)
from generators.presets import jump_duration


def value_at(track, channel, t):
    return sample_channel(track.channel(channel), t)


def position_at(track, t):
    return value_at(track, "position", t)


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


class TestIdempotence:
    def test_same_inputs_same_track(self, make_clip, centre_base):
        clips = [make_clip("r", "roll", 0, 1200), make_clip("j", "jump", 1200, 450)]
        first = compile_layer_track("ball", clips, centre_base)
        second = compile_layer_track("ball", clips, centre_base)
        assert first == second

    def test_recompile_from_own_output(self, make_clip, centre_base):
        clips = [make_clip("r", "roll", 0, 1200), make_clip("j", "jump", 1200, 450)]
        first = compile_layer_track("ball", clips, centre_base)
        again = compile_layer_track("ball", clips, centre_base, original=first)
        assert again == first

    def test_clip_order_irrelevant(self, make_clip, centre_base):
        roll = make_clip("r", "roll", 0, 1200)
        jump = make_clip("j", "jump", 1200, 450)
        assert compile_layer_track("ball", [jump, roll], centre_base) == \
            compile_layer_track("ball", [roll, jump], centre_base)

    def test_time_zero_on_every_channel(self, make_clip, centre_base):
        track = compile_layer_track("ball", [make_clip("s", "spin", 700, 500)], centre_base)
        for name in CHANNELS:
            assert track.channel(name)[0].time == 0.0


# ---------------------------------------------------------------------------
# Base chaining
# ---------------------------------------------------------------------------


class TestContinuity:
    def test_roll_then_jump(self, make_clip, centre_base):
        clips = [
            make_clip("r", "roll", 0, 1200, roll_distance=0.2, template_speed=1.0),
            make_clip("j", "jump", 1200, 450),
        ]
        track = compile_layer_track("ball", clips, centre_base)
        before = position_at(track, 1199.99)
        after = position_at(track, 1200.01)
        assert after.x == pytest.approx(before.x, abs=1e-3)
        assert after.y == pytest.approx(before.y, abs=1e-3)

        end = position_at(track, 1650)
        assert end.x == pytest.approx(0.7)
        assert end.y == pytest.approx(0.5)
        assert value_at(track, "rotation", 1650) == pytest.approx(math.pi * 4)

    def test_scenario_jump_from_centre(self, make_clip, centre_base):
        d = jump_duration(0.25, 1.5)
        assert d == pytest.approx(451.75, abs=0.01)
        track = compile_layer_track(
            "ball", [make_clip("j", "jump", 0, d, jump_height=0.25, jump_velocity=1.5)], centre_base,
        )
        apex = position_at(track, d / 2)
        assert apex.x == pytest.approx(0.5)
        assert apex.y == pytest.approx(0.25, abs=1e-6)
        landed = position_at(track, d)
        assert landed.y == pytest.approx(0.5)
        assert value_at(track, "scale", d) == pytest.approx(1.0)

    def test_scenario_roll_then_pop(self, make_clip, centre_base):
        clips = [make_clip("r", "roll", 0, 1200), make_clip("p", "pop", 1200, 1000)]
        track = compile_layer_track("ball", clips, centre_base)
        assert position_at(track, 1200).x == pytest.approx(0.7)
        assert value_at(track, "scale", 1700) == pytest.approx(1.6)
        assert position_at(track, 2000).x == pytest.approx(0.7)
        assert value_at(track, "opacity", 2200) == pytest.approx(0.0)

    def test_exit_starts_where_roll_ended(self, make_clip, centre_base):
        clips = [make_clip("r", "roll", 0, 1200), make_clip("s", "slide_out", 1200, 500)]
        track = compile_layer_track("ball", clips, centre_base)
        assert position_at(track, 1200).x == pytest.approx(0.7)
        assert position_at(track, 1700).x == pytest.approx(0.9)
        assert value_at(track, "opacity", 1700) == pytest.approx(0.0)

    def test_overlap_cuts_previous_clip(self, make_clip, centre_base):
        clips = [make_clip("r", "roll", 0, 1200), make_clip("j", "jump", 600, 450)]
        track = compile_layer_track("ball", clips, centre_base)
        assert position_at(track, 600).x == pytest.approx(0.6)
        assert position_at(track, 1500).x == pytest.approx(0.6)
        assert value_at(track, "rotation", 1500) == pytest.approx(math.pi * 2)


# ---------------------------------------------------------------------------
# Holds and anchors
# ---------------------------------------------------------------------------


class TestGapHolding:
    def test_idle_before_first_clip(self, make_clip, centre_base):
        track = compile_layer_track("ball", [make_clip("r", "roll", 1000, 1200)], centre_base)
        for t in (0, 500, 999, 1000):
            assert position_at(track, t).x == pytest.approx(0.5)
        assert 999.0 in [frame.time for frame in track.position]
        assert position_at(track, 1600).x == pytest.approx(0.6)

    def test_gap_between_clips(self, make_clip, centre_base):
        clips = [make_clip("r", "roll", 0, 1200), make_clip("j", "jump", 2000, 450)]
        track = compile_layer_track("ball", clips, centre_base)
        assert position_at(track, 1500).x == pytest.approx(0.7)
        assert position_at(track, 1999).x == pytest.approx(0.7)
        assert value_at(track, "rotation", 1999) == pytest.approx(math.pi * 4)
        for name in CHANNELS:
            held = [f for f in track.channel(name) if f.time == 1999.0]
            assert held and held[0].clip_id == "j"

    def test_late_entrance_holds_declared_base(self, make_clip):
        base = SampledLayerState(position=Vec2(0.5, 0.5), opacity=0.8)
        track = compile_layer_track("ball", [make_clip("f", "fade_in", 1000, 500)], base)
        for t in (0, 500, 999):
            assert value_at(track, "opacity", t) == pytest.approx(0.8)
        assert value_at(track, "opacity", 1000) == pytest.approx(0.0)
        assert value_at(track, "opacity", 1500) == pytest.approx(0.8)


class TestEntranceAfterHidden:
    def test_fade_in_recovers_popped_layer(self, make_clip, centre_base):
        clips = [
            make_clip("p", "pop", 0, 1000, pop_collapse=False),
            make_clip("f", "fade_in", 1000, 500),
            make_clip("g", "grow_in", 1500, 500),
        ]
        track = compile_layer_track("ball", clips, centre_base)
        assert value_at(track, "opacity", 1000) == pytest.approx(0.0)
        assert value_at(track, "opacity", 1250) > 0.0
        assert value_at(track, "opacity", 1500) == pytest.approx(1.0)
        assert value_at(track, "opacity", 2000) == pytest.approx(1.0)

    def test_visible_base_kept(self, make_clip, centre_base):
        clips = [
            make_clip("s", "pulse", 0, 1000),
            make_clip("f", "fade_in", 1000, 500),
        ]
        base = SampledLayerState(position=Vec2(0.5, 0.5), opacity=0.6)
        track = compile_layer_track("ball", clips, base)
        assert value_at(track, "opacity", 1500) == pytest.approx(0.6)


class TestPopReappear:
    def test_restores_pre_pop_state(self, make_clip, centre_base):
        clips = [
            make_clip("p", "pop", 0, 1000, pop_collapse=True, pop_reappear=True),
            make_clip("r", "roll", 1000, 1200),
        ]
        track = compile_layer_track("ball", clips, centre_base)
        assert value_at(track, "scale", 800) == pytest.approx(0.0)
        assert value_at(track, "opacity", 800) == pytest.approx(0.0)
        assert value_at(track, "scale", 1000) == pytest.approx(1.0)
        assert value_at(track, "opacity", 1000) == pytest.approx(1.0)
        assert value_at(track, "scale", 1500) == pytest.approx(1.0)
        assert position_at(track, 2200).x == pytest.approx(0.7)

    def test_stays_gone_without_reappear(self, make_clip, centre_base):
        clips = [
            make_clip("p", "pop", 0, 1000, pop_collapse=True, pop_reappear=False),
            make_clip("r", "roll", 1000, 1200),
        ]
        track = compile_layer_track("ball", clips, centre_base)
        assert value_at(track, "scale", 1500) == pytest.approx(0.0)
        assert value_at(track, "opacity", 1500) == pytest.approx(0.0)


# ---------------------------------------------------------------------------
# Edge policy
# ---------------------------------------------------------------------------


class TestEdgePolicy:
    def test_unknown_template(self, make_clip, centre_base, capsys):
        track = compile_layer_track("ball", [make_clip("w", "wiggle")], centre_base)
        assert "Unknown template" in capsys.readouterr().out
        for name in CHANNELS:
            frames = track.channel(name)
            assert len(frames) == 1
            assert frames[0].clip_id == BASE_TAG
        assert track.position[0].value == Vec2(0.5, 0.5)

    def test_non_finite_duration_clamps(self, make_clip, centre_base):
        track = compile_layer_track("ball", [make_clip("s", "spin", 0, float("nan"))], centre_base)
        assert track.rotation[-1].time == pytest.approx(80.0)
        assert track.rotation[-1].value == pytest.approx(math.pi * 2 * 0.08)

    def test_negative_start_clamps(self, make_clip, centre_base):
        track = compile_layer_track("ball", [make_clip("r", "roll", -50, 1200)], centre_base)
        assert track.position[-1].time == pytest.approx(1200.0)

    def test_empty_layer_defaults(self, centre_base):
        track = compile_layer_track("ball", [], centre_base)
        assert track.position == [Keyframe(0.0, Vec2(0.5, 0.5), clip_id=BASE_TAG)]
        assert track.scale[0].value == 1.0
        assert track.rotation[0].value == 0.0
        assert track.opacity[0].value == 1.0


class TestPathClips:
    POINTS = [Vec2(0.1, 0.1), Vec2(0.5, 0.1), Vec2(0.5, 0.5)]

    def test_arc_length_sampling(self, make_clip, centre_base):
        clip = make_clip("path1", "path", 0, 1000, path_points=self.POINTS)
        track = compile_layer_track("ball", [clip], centre_base)
        assert len(track.paths) == 1

        mid = sample_layer(track, 500, centre_base)
        assert mid.position.x == pytest.approx(0.5)
        assert mid.position.y == pytest.approx(0.1)
        assert mid.active_path_id == "path1"

        after = sample_layer(track, 1500, centre_base)
        assert after.active_path_id is None
        assert after.position.x == pytest.approx(0.5)
        assert after.position.y == pytest.approx(0.5)

    def test_too_few_points_hold(self, make_clip, centre_base):
        clip = make_clip("path1", "path", 0, 1000, path_points=[Vec2(0.9, 0.9)])
        track = compile_layer_track("ball", [clip], centre_base)
        assert track.paths == []
        assert position_at(track, 500) == Vec2(0.5, 0.5)


class TestManualKeyframes:
    def test_kept_on_undriven_channel(self, make_clip, centre_base):
        manual = LayerTrack("ball", opacity=[Keyframe(500.0, 0.5)])
        track = compile_layer_track("ball", [make_clip("r", "roll", 0, 1200)], centre_base, manual)
        assert value_at(track, "opacity", 500) == pytest.approx(0.5)
        assert any(f.clip_id is None for f in track.opacity)

    def test_dropped_on_driven_channel(self, make_clip, centre_base):
        manual = LayerTrack("ball", opacity=[Keyframe(500.0, 0.5)])
        track = compile_layer_track("ball", [make_clip("p", "pop", 0, 1000)], centre_base, manual)
        assert all(f.clip_id is not None for f in track.opacity)
        assert value_at(track, "opacity", 900) == pytest.approx(0.0)

    def test_driven_channels(self, make_clip):
        assert driven_channels([make_clip("r", "roll")]) == {"position", "rotation"}
        assert driven_channels([make_clip("p", "path")]) == {"position"}
        assert driven_channels([make_clip("w", "wiggle")]) == set()


# ---------------------------------------------------------------------------
# Duration and documents
# ---------------------------------------------------------------------------


class TestDuration:
    def test_floor(self, make_clip, centre_base):
        track = compile_layer_track("ball", [make_clip("r", "roll", 0, 1200)], centre_base)
        assert timeline_duration([track]) == 4000.0

    def test_latest_clip_end(self, make_clip, centre_base):
        clip = make_clip("r", "roll", 5000, 1200)
        track = compile_layer_track("ball", [clip], centre_base)
        assert timeline_duration([track], [clip]) == pytest.approx(6200.0)

    def test_compile_document(self, make_clip):
        doc = Document(
            layers=[Layer("ball", x=0.2), Layer("box", x=0.8)],
            layer_order=["ball", "box"],
            clips=[make_clip("r", "roll", 0, 1200)],
        )
        tracks = compile_document(doc)
        assert set(tracks) == {"ball", "box"}
        assert tracks["ball"].position[-1].value.x == pytest.approx(0.4)
        assert tracks["box"].position == [Keyframe(0.0, Vec2(0.8, 0.5), clip_id=BASE_TAG)]
