"""
Render-side color and glyph mapping.

Nothing here feeds back into the physics: colors and glyph vertices are
derived from a finished generation once per displayed frame.

Color modes:
- CONSTANT:    every particle gets the same color
- INDEX_SPLIT: first half of the population vs. second half
- GALAXY:      hue from the galaxy id via golden-ratio spacing

Glyphs are a small triangle in local space (tip along +x) rotated to the
particle's heading and moved to its position.
"""

import math
import numpy as np
from enum import IntEnum
from numba import njit, prange

from config import galaxy as config
from .errors import ConfigurationError

GOLDEN_RATIO_CONJUGATE = 0.6180339887498949

# Local glyph shape: equilateral triangle, unit circumradius, tip along +x
GLYPH_VERTICES = np.array([
    [1.0, 0.0, 0.0],
    [-0.5, 0.866, 0.0],
    [-0.5, -0.866, 0.0],
], dtype=np.float64)
VERTS_PER_GLYPH = 3


class ColorMode(IntEnum):
    CONSTANT = 0
    INDEX_SPLIT = 1
    GALAXY = 2

    @classmethod
    def parse(cls, value) -> "ColorMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper().replace("-", "_")]
            except KeyError:
                names = ", ".join(m.name.lower() for m in cls)
                raise ConfigurationError(f"Unknown color mode '{value}' (expected one of: {names})")
        return cls(int(value))


class GlyphMode(IntEnum):
    FLAT = 0      # single rotation by the heading in the xy plane
    SPATIAL = 1   # elevation then azimuth

    @classmethod
    def parse(cls, value) -> "GlyphMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                names = ", ".join(m.name.lower() for m in cls)
                raise ConfigurationError(f"Unknown glyph mode '{value}' (expected one of: {names})")
        return cls(int(value))


_INDEX_SPLIT = int(ColorMode.INDEX_SPLIT)
_GALAXY = int(ColorMode.GALAXY)
_SPATIAL = int(GlyphMode.SPATIAL)


# ============================================================================
# HUES
# ============================================================================

@njit(cache=True)
def galaxy_hue(galaxy_id: int) -> float:
    """Hue in [0, 1) after galaxy_id additions of the golden-ratio conjugate."""
    hue = 0.0
    for _ in range(galaxy_id):
        hue += GOLDEN_RATIO_CONJUGATE
        hue -= math.floor(hue)
    return hue


@njit(cache=True)
def galaxy_hue_table(count: int) -> np.ndarray:
    """Hues for galaxy ids 0..count-1, same accumulation as galaxy_hue."""
    hues = np.zeros(count, dtype=np.float64)
    hue = 0.0
    for k in range(count):
        hues[k] = hue
        hue += GOLDEN_RATIO_CONJUGATE
        hue -= math.floor(hue)
    return hues


@njit(cache=True)
def hsv_to_rgb(h: float, s: float, v: float):
    """Standard 6-sector HSV to RGB conversion, all channels in [0, 1]."""
    h6 = (h - math.floor(h)) * 6.0
    sector = int(h6) % 6
    f = h6 - math.floor(h6)
    p = v * (1.0 - s)
    q = v * (1.0 - s * f)
    t = v * (1.0 - s * (1.0 - f))

    if sector == 0:
        return v, t, p
    elif sector == 1:
        return q, v, p
    elif sector == 2:
        return p, v, t
    elif sector == 3:
        return p, q, v
    elif sector == 4:
        return t, p, v
    return v, p, q


@njit(parallel=True, fastmath=True, cache=True)
def compute_colors(
    galaxy_ids: np.ndarray,
    colors: np.ndarray,
    mode: int,
    constant_color: np.ndarray,
    split_colors: np.ndarray,
    hue_table: np.ndarray,
    num_bodies: int
):
    """Fill colors (n, 3) according to the color mode."""
    half = num_bodies // 2
    for i in prange(num_bodies):
        if mode == _GALAXY:
            r, g, b = hsv_to_rgb(hue_table[galaxy_ids[i]], 1.0, 1.0)
            colors[i, 0] = r
            colors[i, 1] = g
            colors[i, 2] = b
        elif mode == _INDEX_SPLIT:
            group = 0 if i < half else 1
            colors[i, 0] = split_colors[group, 0]
            colors[i, 1] = split_colors[group, 1]
            colors[i, 2] = split_colors[group, 2]
        else:
            colors[i, 0] = constant_color[0]
            colors[i, 1] = constant_color[1]
            colors[i, 2] = constant_color[2]


# ============================================================================
# ORIENTED GLYPHS
# ============================================================================

@njit(cache=True)
def heading_flat(vx: float, vy: float) -> float:
    """Rotation angle of the velocity in the xy plane (0 for zero velocity)."""
    return math.atan2(vy, vx)


@njit(cache=True)
def heading_spatial(vx: float, vy: float, vz: float):
    """(azimuth, elevation) of the velocity vector."""
    azimuth = math.atan2(vy, vx)
    elevation = math.atan2(vz, math.sqrt(vx * vx + vy * vy))
    return azimuth, elevation


@njit(cache=True)
def rotate_flat(x: float, y: float, z: float, angle: float):
    c = math.cos(angle)
    s = math.sin(angle)
    return x * c - y * s, x * s + y * c, z


@njit(cache=True)
def rotate_spatial(x: float, y: float, z: float, azimuth: float, elevation: float):
    """Tilt +x up by the elevation (about y), then turn by the azimuth (about z)."""
    ce = math.cos(elevation)
    se = math.sin(elevation)
    x1 = x * ce - z * se
    y1 = y
    z1 = x * se + z * ce

    ca = math.cos(azimuth)
    sa = math.sin(azimuth)
    return x1 * ca - y1 * sa, x1 * sa + y1 * ca, z1


@njit(parallel=True, fastmath=True, cache=True)
def build_glyph_vertices(
    positions: np.ndarray,
    velocities: np.ndarray,
    colors: np.ndarray,
    glyph: np.ndarray,
    vertices: np.ndarray,
    vert_colors: np.ndarray,
    size: float,
    mode: int,
    num_bodies: int
):
    """Write one oriented triangle (3 vertices) per particle."""
    for i in prange(num_bodies):
        px, py, pz = positions[i, 0], positions[i, 1], positions[i, 2]
        vx, vy, vz = velocities[i, 0], velocities[i, 1], velocities[i, 2]

        if mode == _SPATIAL:
            azimuth, elevation = heading_spatial(vx, vy, vz)
        else:
            azimuth = heading_flat(vx, vy)
            elevation = 0.0

        base = i * 3
        for k in range(3):
            lx = glyph[k, 0] * size
            ly = glyph[k, 1] * size
            lz = glyph[k, 2] * size
            if mode == _SPATIAL:
                rx, ry, rz = rotate_spatial(lx, ly, lz, azimuth, elevation)
            else:
                rx, ry, rz = rotate_flat(lx, ly, lz, azimuth)
            vertices[base + k, 0] = px + rx
            vertices[base + k, 1] = py + ry
            vertices[base + k, 2] = pz + rz
            vert_colors[base + k, 0] = colors[i, 0]
            vert_colors[base + k, 1] = colors[i, 1]
            vert_colors[base + k, 2] = colors[i, 2]


# ============================================================================
# COLOR MAPPER
# ============================================================================

class ColorMapper:
    """Derives per-particle colors and glyph geometry from a generation."""

    def __init__(self, mode=None, glyph_mode=None, glyph_size: float = None,
                 constant_color=None, split_colors=None):
        render_cfg = config.RENDER
        self.mode = ColorMode.parse(mode if mode is not None else render_cfg["color_mode"])
        self.glyph_mode = GlyphMode.parse(glyph_mode if glyph_mode is not None else render_cfg["glyph_mode"])
        self.glyph_size = float(glyph_size if glyph_size is not None else render_cfg["triangle_size"])
        self.constant_color = np.array(
            constant_color if constant_color is not None else config.COLORS["constant"],
            dtype=np.float64
        ).reshape(3)
        self.split_colors = np.array(
            split_colors if split_colors is not None else config.COLORS["split"],
            dtype=np.float64
        ).reshape(2, 3)

    def colors(self, population) -> np.ndarray:
        """(n, 3) float32 RGB colors."""
        n = len(population)
        out = np.zeros((n, 3), dtype=np.float32)
        if n == 0:
            return out
        hue_table = galaxy_hue_table(int(population.galaxy_ids.max()) + 1)
        compute_colors(
            population.galaxy_ids, out, int(self.mode),
            self.constant_color, self.split_colors, hue_table, n
        )
        return out

    def glyphs(self, population, colors: np.ndarray = None):
        """
        Oriented triangle geometry for every particle.

        Returns (vertices, vertex_colors), both (3n, 3) float32.
        """
        n = len(population)
        if colors is None:
            colors = self.colors(population)
        vertices = np.zeros((n * VERTS_PER_GLYPH, 3), dtype=np.float32)
        vert_colors = np.zeros((n * VERTS_PER_GLYPH, 3), dtype=np.float32)
        if n:
            build_glyph_vertices(
                population.positions, population.velocities, colors, GLYPH_VERTICES,
                vertices, vert_colors, self.glyph_size, int(self.glyph_mode), n
            )
        return vertices, vert_colors
