"""Glyph rendering for the galaxy simulation - one oriented triangle per particle."""

import math
import numpy as np
from OpenGL.GL import *
from OpenGL.arrays import vbo
from numba import njit, prange


@njit(parallel=True, fastmath=True, cache=True)
def compute_visibility(
    positions: np.ndarray,
    cam_pos: np.ndarray,
    cam_forward: np.ndarray,
    cam_right: np.ndarray,
    cam_up: np.ndarray,
    tan_h: float,
    tan_v: float,
    far_dist: float,
    visible_mask: np.ndarray,
    num_bodies: int
):
    """Frustum culling against the camera axes."""
    for i in prange(num_bodies):
        dx = positions[i, 0] - cam_pos[0]
        dy = positions[i, 1] - cam_pos[1]
        dz = positions[i, 2] - cam_pos[2]

        z = dx * cam_forward[0] + dy * cam_forward[1] + dz * cam_forward[2]

        if z < 0.001 or z > far_dist:
            visible_mask[i] = False
            continue

        x = dx * cam_right[0] + dy * cam_right[1] + dz * cam_right[2]
        y = dx * cam_up[0] + dy * cam_up[1] + dz * cam_up[2]

        half_width = z * tan_h * 1.2  # Slight margin
        half_height = z * tan_v * 1.2

        visible_mask[i] = abs(x) < half_width and abs(y) < half_height


class GalaxyRenderer:
    """Draws the glyphs produced by GalaxySimulation.glyphs() through VBOs."""

    def __init__(self, far_clip: float):
        self.far_clip = far_clip
        self._vbo_vertices = None
        self._vbo_colors = None
        self._vbos_initialized = False
        self._vbos_failed = False
        self.visible_count = 0

    def _init_vbos(self, vertices: np.ndarray, colors: np.ndarray):
        """Initialize VBOs for rendering."""
        try:
            self._vbo_vertices = vbo.VBO(vertices, usage=GL_DYNAMIC_DRAW)
            self._vbo_colors = vbo.VBO(colors, usage=GL_DYNAMIC_DRAW)
            self._vbos_initialized = True
        except Exception as e:
            print(f"[Render] VBO init failed, using client arrays: {e}")
            self._vbos_failed = True

    def _visible_vertices(self, positions, vertices, colors, camera, fov, aspect):
        """Drop the glyphs of particles outside the view frustum."""
        n = len(positions)
        cam_pos = np.ascontiguousarray(camera.get_position(), dtype=np.float64)
        forward, right, up = (np.ascontiguousarray(a, dtype=np.float64) for a in camera.get_camera_axes())

        half_fov_v = math.radians(fov) / 2
        half_fov_h = math.atan(math.tan(half_fov_v) * aspect)
        mask = np.ones(n, dtype=np.bool_)
        compute_visibility(
            positions, cam_pos, forward, right, up,
            math.tan(half_fov_h), math.tan(half_fov_v), self.far_clip, mask, n
        )
        self.visible_count = int(mask.sum())
        if self.visible_count == n:
            return vertices, colors
        vert_mask = np.repeat(mask, 3)
        return vertices[vert_mask], colors[vert_mask]

    def draw(self, positions, vertices, colors, camera=None, fov=None, aspect=None):
        """Render glyph triangles (3 vertices per particle)."""
        if camera is not None:
            vertices, colors = self._visible_vertices(positions, vertices, colors, camera, fov, aspect)
        else:
            self.visible_count = len(positions)

        vertices = np.ascontiguousarray(vertices, dtype=np.float32)
        colors = np.ascontiguousarray(colors, dtype=np.float32)
        if len(vertices) == 0:
            return

        if not self._vbos_initialized and not self._vbos_failed:
            self._init_vbos(vertices, colors)

        glEnable(GL_BLEND)
        glBlendFunc(GL_SRC_ALPHA, GL_ONE)  # Additive blending for glow effect

        if self._vbos_initialized:
            self._vbo_vertices.set_array(vertices)
            self._vbo_colors.set_array(colors)

            self._vbo_vertices.bind()
            glEnableClientState(GL_VERTEX_ARRAY)
            glVertexPointer(3, GL_FLOAT, 0, None)

            self._vbo_colors.bind()
            glEnableClientState(GL_COLOR_ARRAY)
            glColorPointer(3, GL_FLOAT, 0, None)

            glDrawArrays(GL_TRIANGLES, 0, len(vertices))

            self._vbo_vertices.unbind()
            self._vbo_colors.unbind()
        else:
            glEnableClientState(GL_VERTEX_ARRAY)
            glEnableClientState(GL_COLOR_ARRAY)
            glVertexPointer(3, GL_FLOAT, 0, vertices)
            glColorPointer(3, GL_FLOAT, 0, colors)
            glDrawArrays(GL_TRIANGLES, 0, len(vertices))

        glDisableClientState(GL_VERTEX_ARRAY)
        glDisableClientState(GL_COLOR_ARRAY)
        glDisable(GL_BLEND)
