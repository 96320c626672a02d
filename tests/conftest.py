"""
Pytest configuration and fixtures for the clip animator tests.
"""
import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from document.model import Layer, SampledLayerState, TemplateClip, Vec2  # noqa: E402
from document.store import TimelineStore  # noqa: E402


@pytest.fixture
def centre_base():
    """Declared base state at the middle of the canvas."""
    return SampledLayerState(position=Vec2(0.5, 0.5))


@pytest.fixture
def make_clip():
    """Factory for TemplateClips on the "ball" layer."""
    def _make(clip_id, template, start=0.0, duration=1000.0, **parameters):
        return TemplateClip(
            id=clip_id,
            layer_id="ball",
            template=template,
            start=start,
            duration=duration,
            parameters=parameters,
        )
    return _make


@pytest.fixture
def store():
    """Store holding one circle layer "ball" at (0.5, 0.5)."""
    s = TimelineStore()
    s.add_layer(Layer("ball", x=0.5, y=0.5))
    return s
