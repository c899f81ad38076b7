"""Orbital camera around the galaxy plane (z is up)."""

import math
import numpy as np
from OpenGL.GL import *
from OpenGL.GLU import *
from config import galaxy as config

WORLD_UP = np.array([0.0, 0.0, 1.0])


class Camera:
    """
    Orbits a target point at a given radius.

    theta is the azimuth around +z and phi the elevation above the xy plane,
    both in degrees. Zoom is multiplicative so it feels the same at every
    scale.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        cam = config.CAMERA
        self.radius = cam["initial_radius"]
        self.target_radius = self.radius
        self.theta = cam["initial_theta"]
        self.phi = cam["initial_phi"]
        self.target = np.zeros(3)
        self.zoom_smoothing = 8.0

    def get_direction(self) -> np.ndarray:
        """Unit vector from the target toward the camera."""
        theta_rad = math.radians(self.theta)
        phi_rad = math.radians(self.phi)
        return np.array([
            math.cos(phi_rad) * math.cos(theta_rad),
            math.cos(phi_rad) * math.sin(theta_rad),
            math.sin(phi_rad),
        ])

    def get_camera_axes(self) -> tuple:
        """(forward, right, up); forward points from the camera to the target."""
        forward = -self.get_direction()

        right = np.cross(forward, WORLD_UP)
        right_len = np.linalg.norm(right)
        if right_len < 1e-6:
            right = np.array([1.0, 0.0, 0.0])
        else:
            right = right / right_len

        up = np.cross(right, forward)
        return forward, right, up / np.linalg.norm(up)

    def get_position(self) -> np.ndarray:
        return self.target + self.radius * self.get_direction()

    def _clamp_radius(self, radius: float) -> float:
        return max(config.CAMERA["min_radius"], min(config.CAMERA["max_radius"], radius))

    def rotate(self, d_theta: float, d_phi: float):
        """Orbit by the given angles in degrees."""
        self.theta = (self.theta + d_theta) % 360
        self.phi = max(config.CAMERA["min_phi"], min(config.CAMERA["max_phi"], self.phi + d_phi))

    def zoom(self, factor: float):
        """Scale the orbit radius immediately (factor < 1 moves closer)."""
        self.radius = self._clamp_radius(self.radius * factor)
        self.target_radius = self.radius

    def zoom_smooth(self, factor: float):
        self.target_radius = self._clamp_radius(self.target_radius * factor)

    def update(self, dt: float):
        """Ease the radius toward the requested zoom (called each frame)."""
        blend = min(1.0, self.zoom_smoothing * dt)
        self.radius = self._clamp_radius(self.radius + (self.target_radius - self.radius) * blend)

    def apply(self):
        """Load the view transform into the OpenGL modelview matrix."""
        pos = self.get_position()
        glLoadIdentity()
        gluLookAt(
            pos[0], pos[1], pos[2],
            self.target[0], self.target[1], self.target[2],
            WORLD_UP[0], WORLD_UP[1], WORLD_UP[2]
        )
