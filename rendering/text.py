"""HUD text overlay."""

import pygame
from OpenGL.GL import *


class TextRenderer:
    """Draws lines of text in screen space with pygame fonts and glDrawPixels."""

    def __init__(self, color=(0.7, 0.8, 0.9), font_name: str = "monospace",
                 font_size: int = 16, line_spacing: int = 22):
        pygame.font.init()
        self.font = pygame.font.SysFont(font_name, font_size)
        self.color = tuple(int(c * 255) for c in color)
        self.line_spacing = line_spacing
        self._cache = {}

    def _rasterize(self, text: str):
        # HUD lines mostly repeat frame to frame
        hit = self._cache.get(text)
        if hit is None:
            surface = self.font.render(text, True, self.color)
            hit = (pygame.image.tostring(surface, "RGBA", True), surface.get_size())
            if len(self._cache) > 64:
                self._cache.clear()
            self._cache[text] = hit
        return hit

    def draw_lines(self, lines, x: int, y: int, screen_size: tuple):
        """Draw lines top-down starting at (x, y) from the top-left corner."""
        glMatrixMode(GL_PROJECTION)
        glPushMatrix()
        glLoadIdentity()
        glOrtho(0, screen_size[0], 0, screen_size[1], -1, 1)
        glMatrixMode(GL_MODELVIEW)
        glPushMatrix()
        glLoadIdentity()

        glDisable(GL_DEPTH_TEST)
        glEnable(GL_BLEND)
        glBlendFunc(GL_SRC_ALPHA, GL_ONE_MINUS_SRC_ALPHA)
        for k, text in enumerate(lines):
            data, (w, h) = self._rasterize(text)
            glRasterPos2f(x, screen_size[1] - (y + k * self.line_spacing) - h)
            glDrawPixels(w, h, GL_RGBA, GL_UNSIGNED_BYTE, data)
        glDisable(GL_BLEND)

        glPopMatrix()
        glMatrixMode(GL_PROJECTION)
        glPopMatrix()
        glMatrixMode(GL_MODELVIEW)
