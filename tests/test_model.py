"""Tests for the document data model and its JSON round trip."""

import copy
import json

import pytest

from document.model import (
    USE_BASE, Document, Keyframe, Layer, LayerTrack, PathClip, TemplateClip, Vec2,
)
from utils.animation import Easing


def sample_document():
    return Document(
        layers=[Layer("ball", kind="circle", x=0.3, y=0.6, props={"color": "#FF0000"}),
                Layer("box", kind="square", x=0.7, y=0.2, opacity=0.5)],
        layer_order=["box", "ball"],
        clips=[
            TemplateClip("c1", "ball", "roll", 0.0, 1200.0, {"roll_distance": 0.3}),
            TemplateClip("c2", "ball", "path", 1200.0, 800.0,
                         {"path_points": [Vec2(0.1, 0.2), Vec2(0.4, 0.4)]}),
        ],
        parameters={"pop_scale": 2.0},
        background={"type": "solid", "color": "#000000"},
        keyframes={"box": LayerTrack("box", scale=[Keyframe(250.0, 1.5, Easing.EASE_OUT)])},
    )


class TestVec2:
    def test_arithmetic(self):
        assert Vec2(1, 2) + Vec2(0.5, 0.5) == Vec2(1.5, 2.5)
        assert Vec2(1, 2) - Vec2(1, 1) == Vec2(0, 1)
        assert 2 * Vec2(1, 2) == Vec2(2, 4)

    def test_finite(self):
        assert Vec2(0, 0).is_finite()
        assert not Vec2(float("inf"), 0).is_finite()


class TestUseBase:
    def test_singleton_survives_copy(self):
        assert copy.deepcopy(USE_BASE) is USE_BASE
        assert copy.copy(USE_BASE) is USE_BASE


class TestRoundTrip:
    def test_keyframe(self):
        kf = Keyframe(10.0, Vec2(0.1, 0.2), Easing.STEP, "c1")
        assert Keyframe.from_dict(kf.to_dict()) == kf

    def test_untagged_keyframe_omits_clip_id(self):
        assert "clip_id" not in Keyframe(0.0, 1.0).to_dict()

    def test_path_clip(self):
        clip = PathClip("p", 100.0, 500.0, [Vec2(0, 0), Vec2(1, 1)], Easing.EASE_IN_OUT)
        assert PathClip.from_dict(clip.to_dict()) == clip

    def test_document_through_json(self):
        doc = sample_document()
        restored = Document.from_dict(json.loads(json.dumps(doc.to_dict())))
        assert restored == doc

    def test_layer_order_defaults_to_layers(self):
        doc = Document.from_dict({"layers": [{"id": "a"}, {"id": "b"}]})
        assert doc.layer_order == ["a", "b"]


class TestDocument:
    def test_clips_for_layer_sorted(self):
        doc = sample_document()
        doc.clips.reverse()
        assert [c.id for c in doc.clips_for_layer("ball")] == ["c1", "c2"]
        assert doc.clips_for_layer("box") == []

    def test_lookup(self):
        doc = sample_document()
        assert doc.get_layer("box").kind == "square"
        assert doc.get_layer("ghost") is None
        assert doc.get_clip("c2").end == pytest.approx(2000.0)
        assert doc.get_clip("nope") is None

    def test_copy_is_deep(self):
        doc = sample_document()
        clone = doc.copy()
        clone.clips[0].parameters["roll_distance"] = 0.9
        clone.layers[0].x = 0.0
        assert doc.clips[0].parameters["roll_distance"] == 0.3
        assert doc.layers[0].x == 0.3

    def test_base_state_ignores_layer_scale(self):
        layer = Layer("a", x=0.1, y=0.2, scale=3.0, rotation=1.0, opacity=0.4)
        base = layer.base_state()
        assert base.position == Vec2(0.1, 0.2)
        assert base.scale == 1.0
        assert base.rotation == 1.0
        assert base.opacity == 0.4

    def test_unknown_channel(self):
        with pytest.raises(ValueError):
            LayerTrack("a").channel("colour")
