"""
Color utilities for the preview renderer backgrounds and shapes.
"""


def hex_to_rgb(hex_color):
    """
    Convert hex color string to RGB tuple.

    Args:
        hex_color: Color string like "#FFFFFF", "FFFFFF" or short "#FFF"

    Returns:
        Tuple of (r, g, b) integers 0-255
    """
    hex_color = hex_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = "".join(ch * 2 for ch in hex_color)
    return tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))


def lerp_color(color1, color2, t):
    """Linear interpolation between two RGB colors, t clamped to 0-1."""
    t = max(0.0, min(1.0, t))
    return tuple(int(color1[i] + (color2[i] - color1[i]) * t) for i in range(3))


def draw_gradient(draw, width, height, color_top, color_bottom):
    """
    Draw a vertical gradient on a PIL ImageDraw.

    Args:
        draw: PIL ImageDraw instance
        width: Image width
        height: Image height
        color_top: Top color (r, g, b)
        color_bottom: Bottom color (r, g, b)
    """
    for y in range(height):
        c = lerp_color(color_top, color_bottom, y / height)
        draw.line([(0, y), (width, y)], fill=c)
