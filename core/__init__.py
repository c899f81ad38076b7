"""Viewer components: camera, input and the application loop."""

from .camera import Camera
from .input_handler import InputHandler
from .application import GalaxyApplication

__all__ = ["Camera", "InputHandler", "GalaxyApplication"]
