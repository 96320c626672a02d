"""
Preview export — renders sampled layer states to a video file or JSON.

Each frame samples the store at the frame time, draws every layer as a
flat shape with Pillow and hands the numpy array to a MoviePy VideoClip.
Wraps the MoviePy write_videofile call with the preview settings.
"""

import json
import math
import os

import numpy as np
from PIL import Image, ImageDraw
from moviepy import VideoClip

from utils.colors import draw_gradient, hex_to_rgb

# Default dimensions
PREVIEW_W = 1080
PREVIEW_H = 1080
PREVIEW_FPS = 30
SHAPE_SIZE = 0.12  # fraction of the shorter side

DEFAULT_BACKGROUND = {"type": "solid", "color": "#101018"}
DEFAULT_SHAPE_COLOR = "#FFD23F"


def _polygon(kind, radius):
    """Unit-centred outline for a shape kind, scaled to radius (px)."""
    if kind == "square":
        pts = [(-1, -1), (1, -1), (1, 1), (-1, 1)]
    elif kind == "triangle":
        pts = [(0, -1), (0.866, 0.5), (-0.866, 0.5)]
    elif kind == "star":
        pts = []
        for i in range(10):
            r = 1.0 if i % 2 == 0 else 0.45
            a = -math.pi / 2 + i * math.pi / 5
            pts.append((r * math.cos(a), r * math.sin(a)))
    else:
        return None
    return np.array(pts, dtype=float) * radius


class PreviewRenderer:
    """
    Draws sampled layer states onto Pillow frames.

    Shapes: circle (default), square, triangle, star. The layer's own scale
    multiplies the sampled scale; opacity is applied per shape.
    """

    def __init__(self, config=None):
        preview = (config or {}).get("preview", {})
        self.width = int(preview.get("width", PREVIEW_W))
        self.height = int(preview.get("height", PREVIEW_H))
        self.fps = preview.get("fps", PREVIEW_FPS)
        self.shape_size = float(preview.get("shape_size", SHAPE_SIZE))
        self.shape_color = preview.get("shape_color", DEFAULT_SHAPE_COLOR)
        self.background = preview.get("background", DEFAULT_BACKGROUND)

    def _draw_background(self, img, background):
        draw = ImageDraw.Draw(img)
        if background.get("type") == "gradient":
            top = hex_to_rgb(background.get("color_top", "#1B1B3A"))
            bottom = hex_to_rgb(background.get("color_bottom", "#05050F"))
            draw_gradient(draw, self.width, self.height, top, bottom)
        else:
            draw.rectangle([(0, 0), (self.width, self.height)],
                           fill=hex_to_rgb(background.get("color", DEFAULT_BACKGROUND["color"])))

    def _draw_layer(self, img, layer, state):
        opacity = max(0.0, min(1.0, state.opacity))
        scale = abs(state.scale * layer.scale)
        if opacity <= 0 or scale <= 0:
            return img

        radius = self.shape_size * min(self.width, self.height) * 0.5 * scale
        cx = state.position.x * self.width
        cy = state.position.y * self.height
        color = hex_to_rgb(layer.props.get("color", self.shape_color)) + (int(255 * opacity),)

        overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        outline = _polygon(layer.kind, radius)
        if outline is None:
            draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=color)
        else:
            c, s = math.cos(state.rotation), math.sin(state.rotation)
            rotated = outline @ np.array([[c, s], [-s, c]]) + np.array([cx, cy])
            draw.polygon([tuple(p) for p in rotated], fill=color)
        return Image.alpha_composite(img, overlay)

    def render_frame(self, document, states):
        """
        Draw one frame.

        Args:
            document: Document (layers, layer order, background)
            states: {layer_id: SampledLayerState}

        Returns:
            PIL RGB Image
        """
        img = Image.new("RGB", (self.width, self.height))
        self._draw_background(img, document.background or self.background)
        img = img.convert("RGBA")

        for layer_id in document.layer_order:
            layer = document.get_layer(layer_id)
            state = states.get(layer_id)
            if layer is None or state is None:
                continue
            img = self._draw_layer(img, layer, state)
        return img.convert("RGB")

    def make_clip(self, store):
        """MoviePy VideoClip covering the store's whole timeline."""
        duration = store.duration / 1000.0

        def frame_function(t):
            states = store.sample_at(t * 1000.0)
            return np.array(self.render_frame(store.document, states))

        return VideoClip(frame_function=frame_function, duration=duration)


def render_preview(store, output_path, config):
    """
    Render the store's timeline to a video file.

    Args:
        store: TimelineStore to sample
        output_path: Output MP4 path
        config: Config dict with preview settings

    Returns:
        Path to output video
    """
    preview_config = config.get("preview", {})
    renderer = PreviewRenderer(config)
    codec = preview_config.get("codec", "libx264")
    bitrate = preview_config.get("bitrate", "4M")

    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    print(f"   [Export] Rendering {store.duration / 1000.0:.2f}s preview to {output_path}...")

    clip = renderer.make_clip(store)
    clip.write_videofile(
        output_path,
        fps=renderer.fps,
        codec=codec,
        bitrate=bitrate,
        audio=False,
        preset="medium",
        threads=4,
        logger="bar",
    )

    print(f"   [Export] Done! Output: {output_path}")
    return output_path


def sample_frames(store, fps=PREVIEW_FPS):
    """Sampled states for every frame of the timeline."""
    step = 1000.0 / fps
    total = int(math.floor(store.duration / step)) + 1
    frames = []
    for i in range(total):
        t = min(store.duration, i * step)
        states = store.sample_at(t)
        frames.append({
            "time": round(t, 3),
            "layers": {layer_id: state.to_dict() for layer_id, state in states.items()},
        })
    return frames


def export_frames_json(store, output_path, fps=PREVIEW_FPS):
    """
    Write every frame's sampled states to JSON.

    Returns:
        Path to the written file
    """
    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    frames = sample_frames(store, fps)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump({"duration": store.duration, "fps": fps, "frames": frames}, f, indent=2)

    print(f"   [Export] Wrote {len(frames)} frames to {output_path}")
    return output_path
