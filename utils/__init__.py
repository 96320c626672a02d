# Shared utilities for the clip animator
from utils.colors import hex_to_rgb, draw_gradient
from utils.animation import Easing, ease, interpolate
