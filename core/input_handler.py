"""Keyboard and mouse control of the orbital camera."""

import pygame
from pygame.locals import *
from config import galaxy as config

from .camera import Camera


class InputHandler:
    """
    W/S or Up/Down: tilt up/down
    A/D or Left/Right: orbit around the galaxy
    Q/E: zoom in/out
    Mouse drag: orbit and tilt, mouse wheel: zoom
    """

    def __init__(self, camera: Camera):
        self.camera = camera
        self.mouse_dragging = False
        self.last_mouse_pos = (0, 0)

    def handle_event(self, event: pygame.event.Event) -> bool:
        """
        Handle a single camera-related pygame event.
        Returns True if the event was consumed.
        """
        if event.type == MOUSEBUTTONDOWN and event.button == 1:
            self.mouse_dragging = True
            self.last_mouse_pos = pygame.mouse.get_pos()
            return True
        if event.type == MOUSEBUTTONUP and event.button == 1:
            self.mouse_dragging = False
            return True
        if event.type == MOUSEWHEEL:
            self.camera.zoom_smooth(0.9 ** event.y)
            return True
        return False

    def handle_continuous_input(self, dt: float):
        """Handle held keys and mouse drags (called each frame)."""
        keys = pygame.key.get_pressed()
        cam_cfg = config.CAMERA
        rot_speed = cam_cfg["keyboard_rotate_speed"] * dt
        zoom_factor = 1.0 + cam_cfg["keyboard_zoom_speed"] * dt

        if keys[K_a] or keys[K_LEFT]:
            self.camera.rotate(-rot_speed, 0)
        if keys[K_d] or keys[K_RIGHT]:
            self.camera.rotate(rot_speed, 0)
        if keys[K_w] or keys[K_UP]:
            self.camera.rotate(0, rot_speed)
        if keys[K_s] or keys[K_DOWN]:
            self.camera.rotate(0, -rot_speed)
        if keys[K_q]:
            self.camera.zoom(1.0 / zoom_factor)
        if keys[K_e]:
            self.camera.zoom(zoom_factor)

        if self.mouse_dragging:
            current_pos = pygame.mouse.get_pos()
            dx = current_pos[0] - self.last_mouse_pos[0]
            dy = current_pos[1] - self.last_mouse_pos[1]
            self.camera.rotate(
                -dx * cam_cfg["mouse_sensitivity"],
                dy * cam_cfg["mouse_sensitivity"]
            )
            self.last_mouse_pos = current_pos
