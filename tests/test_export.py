"""Tests for preview frame rendering and the JSON frame dump."""

import json

import pytest

from composer.export import PreviewRenderer, export_frames_json, sample_frames
from utils.colors import hex_to_rgb

CONFIG = {
    "preview": {
        "width": 200,
        "height": 100,
        "fps": 10,
        "shape_color": "#FF0000",
        "background": {"type": "solid", "color": "#000000"},
    },
}


class TestPreviewRenderer:
    def test_frame_size(self, store):
        renderer = PreviewRenderer(CONFIG)
        img = renderer.render_frame(store.document, store.sample_at(0))
        assert img.size == (200, 100)
        assert img.mode == "RGB"

    def test_shape_drawn_at_position(self, store):
        renderer = PreviewRenderer(CONFIG)
        img = renderer.render_frame(store.document, store.sample_at(0))
        assert img.getpixel((100, 50)) == (255, 0, 0)
        assert img.getpixel((2, 2)) == (0, 0, 0)

    def test_invisible_layer_skipped(self, store):
        store.update_layer("ball", opacity=0.0)
        img = PreviewRenderer(CONFIG).render_frame(store.document, store.sample_at(0))
        assert img.getpixel((100, 50)) == (0, 0, 0)

    def test_gradient_background(self, store):
        config = {"preview": dict(CONFIG["preview"], background={
            "type": "gradient", "color_top": "#FFFFFF", "color_bottom": "#000000",
        })}
        store.remove_layer("ball")
        img = PreviewRenderer(config).render_frame(store.document, {})
        assert img.getpixel((10, 0)) == (255, 255, 255)
        assert sum(img.getpixel((10, 99))) < 30

    def test_square_kind(self, store):
        store.update_layer("ball", kind="square", props={"color": "#00FF00"})
        img = PreviewRenderer(CONFIG).render_frame(store.document, store.sample_at(0))
        assert img.getpixel((100, 50)) == (0, 255, 0)


class TestFrameDump:
    def test_sample_frames_cover_timeline(self, store):
        store.apply_preset("ball", "roll")
        frames = sample_frames(store, fps=10)
        assert len(frames) == 41
        assert frames[0]["time"] == 0.0
        assert frames[-1]["time"] == store.duration
        assert frames[12]["layers"]["ball"]["position"]["x"] == pytest.approx(0.7)

    def test_export_json(self, store, tmp_path):
        out = tmp_path / "frames" / "dump.json"
        export_frames_json(store, str(out), fps=5)
        data = json.loads(out.read_text())
        assert data["fps"] == 5
        assert data["duration"] == 4000.0
        assert len(data["frames"]) == 21


class TestColors:
    def test_hex(self):
        assert hex_to_rgb("#FFD23F") == (255, 210, 63)
        assert hex_to_rgb("fff") == (255, 255, 255)
