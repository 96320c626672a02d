#!/usr/bin/env python3
"""
CLIP ANIMATOR — compile a clip document and sample, dump or preview it.

INSPECT:
  python animate.py --document scene.json --time 600
  python animate.py --demo --time 1200

APPLY TEMPLATES (appended after the layer's last clip):
  python animate.py --document scene.json --apply ball roll --apply ball jump --save scene.json

EXPORT:
  python animate.py --demo --frames output/frames.json
  python animate.py --document scene.json --preview output/preview.mp4
"""

import argparse
import json
import os
import sys
import time

import yaml

# Ensure project root is in path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from composer.export import export_frames_json, render_preview
from document.model import Document, Layer
from document.store import TimelineStore


def load_config(config_path=None):
    """Load configuration from config.yaml (empty dict when missing)."""
    config_path = config_path or os.path.join(PROJECT_ROOT, "config.yaml")
    if not os.path.exists(config_path):
        print(f"   [Config] {config_path} not found, using defaults")
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_document(path):
    """Load a Document from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return Document.from_dict(json.load(f))


def save_document(document, path):
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document.to_dict(), f, indent=2)


def build_demo(store):
    """Ball that rolls, jumps, pops and comes back; a square that fades in and spins."""
    store.add_layer(Layer("ball", kind="circle", x=0.3, y=0.6))
    store.apply_preset("ball", "roll")
    store.apply_preset("ball", "jump")
    store.apply_preset("ball", "pop", parameters={"pop_collapse": True, "pop_reappear": True})
    store.apply_preset("ball", "pulse")

    store.add_layer(Layer("box", kind="square", x=0.7, y=0.3, props={"color": "#4FC3F7"}))
    store.apply_preset("box", "fade_in", start=500)
    store.apply_preset("box", "spin", duration=1500)
    store.apply_preset("box", "slide_out")


def print_states(store, t):
    print(f"\n   t = {t:.1f} ms")
    for layer_id, state in store.sample_at(t).items():
        path = f"  path={state.active_path_id}" if state.active_path_id else ""
        print(f"   | {layer_id:<12} pos=({state.position.x:.4f}, {state.position.y:.4f})"
              f"  scale={state.scale:.4f}  rot={state.rotation:.4f}"
              f"  opacity={state.opacity:.4f}{path}")


def main():
    parser = argparse.ArgumentParser(
        description="Compile, sample and export clip-composed keyframe animations",
    )
    parser.add_argument("--document", default=None,
                        help="Document JSON file to load")
    parser.add_argument("--demo", action="store_true",
                        help="Use the built-in demo document")
    parser.add_argument("--config", default=None,
                        help="Config YAML (default: config.yaml next to this script)")
    parser.add_argument("--apply", nargs=2, action="append", default=[],
                        metavar=("LAYER", "TEMPLATE"),
                        help="Append a template clip to a layer (repeatable)")
    parser.add_argument("--time", type=float, action="append", default=[],
                        help="Print sampled states at this time in ms (repeatable)")
    parser.add_argument("--frames", default=None,
                        help="Write every frame's sampled states to this JSON file")
    parser.add_argument("--preview", default=None,
                        help="Render a preview video to this path")
    parser.add_argument("--save", default=None,
                        help="Save the (edited) document to this JSON file")
    args = parser.parse_args()

    if not args.document and not args.demo:
        parser.error("--document or --demo is required")

    config = load_config(args.config)
    start_time = time.time()

    print("=" * 55)
    print("  CLIP ANIMATOR")
    print("=" * 55)

    print("\n[1/3] Loading document...")
    if args.demo:
        store = TimelineStore(config=config)
        build_demo(store)
    else:
        store = TimelineStore(load_document(args.document), config=config)
    print(f"   Layers:   {len(store.document.layers)}")
    print(f"   Clips:    {len(store.document.clips)}")

    for layer_id, template in args.apply:
        clip_id = store.apply_preset(layer_id, template)
        if clip_id is None:
            print(f"   Warning: could not apply '{template}' to '{layer_id}'")
        else:
            print(f"   Applied {template} to {layer_id} ({clip_id})")

    print(f"   Duration: {store.duration:.1f} ms")

    print("\n[2/3] Sampling...")
    for t in args.time:
        print_states(store, t)
    if not args.time:
        print("   (no --time given)")

    print("\n[3/3] Exporting...")
    outputs = []
    if args.save:
        save_document(store.document, args.save)
        outputs.append(args.save)
    if args.frames:
        fps = config.get("preview", {}).get("fps", 30)
        outputs.append(export_frames_json(store, args.frames, fps))
    if args.preview:
        try:
            outputs.append(render_preview(store, args.preview, config))
        except Exception as e:
            print(f"   [Export] Preview failed: {e}")
    if not outputs:
        print("   (nothing to export)")

    elapsed = time.time() - start_time
    print(f"\n{'=' * 55}")
    print(f"  DONE in {elapsed:.1f}s")
    for path in outputs:
        print(f"  Output:   {path}")
    print(f"{'=' * 55}")


if __name__ == "__main__":
    main()
