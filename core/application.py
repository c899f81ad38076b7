"""Interactive viewer: pygame window, OpenGL scene and HUD around a GalaxySimulation."""

import pygame
from pygame.locals import *
from OpenGL.GL import *
from OpenGL.GLU import *

from config import galaxy as config
from .camera import Camera
from .input_handler import InputHandler
from rendering import GalaxyRenderer, TextRenderer
from galaxy import GalaxySimulation

HELP_LINES = (
    "WASD: Rotate | QE: Zoom | Drag: Rotate | Wheel: Zoom",
    "SPACE: Pause | R: Reset | H: Toggle help | ESC: Quit",
)


class GalaxyApplication:
    """
    Owns the window and the frame loop.

    Each frame advances the simulation by `steps_per_frame` whole steps
    (the time step comes from SimParams, not from the frame time) and then
    draws the glyphs of the newest generation.
    """

    def __init__(self, simulation: GalaxySimulation = None, steps_per_frame: int = 1):
        pygame.init()
        pygame.display.set_mode(
            (config.WINDOW["width"], config.WINDOW["height"]),
            DOUBLEBUF | OPENGL
        )
        pygame.display.set_caption(config.WINDOW["title"])

        self.camera = Camera()
        self.input_handler = InputHandler(self.camera)

        self.renderer = GalaxyRenderer(config.CAMERA["far_clip"])
        self.text_renderer = TextRenderer(color=config.COLORS["text"])

        if simulation is None:
            print("[App] Initializing galaxy simulation...")
            simulation = GalaxySimulation()
        self.simulation = simulation
        self.steps_per_frame = max(1, int(steps_per_frame))

        self.clock = pygame.time.Clock()
        self.running = True
        self.fps = 0
        self.paused = False
        self.show_help = True
        self.frame_count = 0

        self._setup_gl()
        print("[App] Ready!")

    def _setup_gl(self):
        glClearColor(*config.COLORS["background"])
        glDisable(GL_DEPTH_TEST)
        glDisable(GL_CULL_FACE)

        glMatrixMode(GL_PROJECTION)
        glLoadIdentity()
        gluPerspective(
            config.CAMERA["fov"],
            config.WINDOW["width"] / config.WINDOW["height"],
            config.CAMERA["near_clip"],
            config.CAMERA["far_clip"]
        )
        glMatrixMode(GL_MODELVIEW)

    def _handle_events(self):
        for event in pygame.event.get():
            if event.type == QUIT:
                self.running = False
            elif event.type == KEYDOWN:
                if event.key == K_ESCAPE:
                    self.running = False
                elif event.key == K_SPACE:
                    self.paused = not self.paused
                    print(f"[App] {'Paused' if self.paused else 'Running'}")
                elif event.key == K_h:
                    self.show_help = not self.show_help
                elif event.key == K_r:
                    print("[App] Resetting simulation...")
                    self.simulation.reset()
                    self.camera.reset()
            else:
                self.input_handler.handle_event(event)

    def _update(self, dt: float):
        dt = min(dt, 0.05)

        self.input_handler.handle_continuous_input(dt)
        self.camera.update(dt)

        if not self.paused:
            self.simulation.update(self.steps_per_frame)

    def _hud_lines(self) -> list:
        sim = self.simulation
        status = "PAUSED" if self.paused else "RUNNING"
        lines = [
            f"Bodies: {self.renderer.visible_count:,}/{sim.num_bodies:,}  |  "
            f"Galaxies: {sim.num_galaxies}  |  FPS: {self.fps:.0f}  |  {status}",
            f"Law: {sim.force_law.label}  |  {sim.integrator.name.lower()}  |  "
            f"Backend: {sim.backend}  |  t={sim.time:.3f}  step={sim.steps}",
        ]
        if self.show_help:
            lines.extend(HELP_LINES)
        return lines

    def _render(self):
        glClear(GL_COLOR_BUFFER_BIT | GL_DEPTH_BUFFER_BIT)
        self.camera.apply()

        vertices, colors = self.simulation.glyphs()
        aspect = config.WINDOW["width"] / config.WINDOW["height"]
        self.renderer.draw(
            self.simulation.population.positions, vertices, colors,
            self.camera, config.CAMERA["fov"], aspect
        )

        screen_size = (config.WINDOW["width"], config.WINDOW["height"])
        self.text_renderer.draw_lines(self._hud_lines(), 10, 10, screen_size)

        pygame.display.flip()

    def run(self):
        """Main application loop."""
        print("[App] Starting main loop...")

        while self.running:
            dt = self.clock.tick() / 1000.0  # Uncapped FPS
            self.fps = self.clock.get_fps()
            self.frame_count += 1

            self._handle_events()
            self._update(dt)
            self._render()

        pygame.quit()
        print("[App] Shutdown complete")
