"""Rendering components for the galaxy viewer."""

from .galaxy_renderer import GalaxyRenderer
from .text import TextRenderer

__all__ = ["GalaxyRenderer", "TextRenderer"]
