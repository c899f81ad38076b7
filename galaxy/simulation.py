"""
Galaxy N-body simulation.

Direct O(n²) summation, one worker per particle per step:
- CUDA (NVIDIA GPUs) when available, via galaxy.gpu_backend
- CPU otherwise, Numba prange over particles with double-buffered generations

Rendering lives in rendering/galaxy_renderer.py; this class only advances
generations and derives colors and glyphs from them.
"""

import numpy as np

from config import galaxy as config
from .buffers import ParticleBuffers
from .colors import ColorMapper
from .forces import ForceLaw
from .initialize import generate_population
from .integrator import Integrator
from .particles import Population, SimParams


class GalaxySimulation:
    """
    Runs a galaxy simulation on the best available backend.

    SimParams can be replaced between steps with set_params(); the force law
    and integrator are fixed for the lifetime of a run.
    """

    def __init__(self, num_particles: int = None, num_galaxies: int = None,
                 distribution: str = None, force_law=None, integrator=None,
                 params: SimParams = None, population: Population = None,
                 color_mode=None, glyph_mode=None, use_gpu: bool = True):
        sim_cfg = config.SIMULATION

        self.params = params if params is not None else SimParams.from_config()
        self.force_law = ForceLaw.parse(force_law if force_law is not None else sim_cfg["force_law"])
        self.integrator = Integrator.parse(integrator if integrator is not None else sim_cfg["integrator"])
        self.color_mapper = ColorMapper(color_mode, glyph_mode)

        self.distribution = distribution or config.GALAXY["distribution"]
        if population is None:
            population = generate_population(
                self.distribution, n=num_particles, num_galaxies=num_galaxies, G=self.params.g
            )
        self.num_bodies = len(population)
        self.num_galaxies = population.num_galaxies
        self.time = 0.0
        self.steps = 0

        self._buffers = ParticleBuffers(population, self.force_law, self.integrator)
        self._host_population = None

        self._gpu_sim = None
        self._use_gpu = False
        self.backend = "cpu"
        if use_gpu:
            self._init_gpu_backend(population)

        if self.force_law.unstable:
            print("[Galaxy] Warning: newtonian force law has no softening; "
                  "close encounters produce unbounded accelerations")

        print(f"[Galaxy] Initialized {self.num_bodies:,} bodies in {self.num_galaxies} "
              f"galaxies (law={self.force_law.label}, integrator={self.integrator.name.lower()}, "
              f"backend={self.backend})")

    def _init_gpu_backend(self, population: Population):
        """Try to initialize GPU acceleration."""
        try:
            from .gpu_backend import create_gpu_simulation

            self._gpu_sim = create_gpu_simulation(
                population, self.force_law, self.integrator, self.params
            )
            if self._gpu_sim is not None:
                self._use_gpu = True
                self.backend = "cuda"
                print("[Galaxy] GPU acceleration enabled: cuda")
                return
        except ImportError as e:
            print(f"[Galaxy] GPU backend not available: {e}")
        except Exception as e:
            print(f"[Galaxy] GPU init failed, using CPU: {e}")

        self._gpu_sim = None
        self._use_gpu = False
        self.backend = "cpu"

    @property
    def use_gpu(self) -> bool:
        return self._use_gpu

    @property
    def generation(self) -> int:
        return self._gpu_sim.generation if self._use_gpu else self._buffers.generation

    @property
    def population(self) -> Population:
        """The current (fully written) generation."""
        if self._use_gpu:
            if self._host_population is None:
                self._host_population = self._gpu_sim.get_population()
            return self._host_population
        return self._buffers.current

    def set_params(self, **changes):
        """Replace per-step parameters; takes effect from the next step."""
        self.params = self.params.replace(**changes)

    def update(self, steps: int = 1) -> Population:
        """Advance the simulation by whole steps."""
        for _ in range(steps):
            if self._use_gpu:
                self._gpu_sim.step(self.params)
            else:
                self._buffers.step(self.params)
            self.time += self.params.dt
            self.steps += 1
        self._host_population = None
        return self.population

    def colors(self) -> np.ndarray:
        return self.color_mapper.colors(self.population)

    def glyphs(self):
        """(vertices, vertex_colors) for the current generation."""
        return self.color_mapper.glyphs(self.population)

    def reset(self, population: Population = None, seed: int = None):
        """Start over from a new initial population."""
        if population is None:
            population = generate_population(
                self.distribution, n=self.num_bodies, num_galaxies=self.num_galaxies,
                G=self.params.g, seed=seed
            )
        self.num_bodies = len(population)
        self.num_galaxies = population.num_galaxies
        self.time = 0.0
        self.steps = 0
        self._host_population = None
        self._buffers.reset(population)
        if self._use_gpu:
            self._init_gpu_backend(population)

    def stats(self) -> dict:
        """Diagnostics for HUD and headless progress output."""
        pop = self.population
        speed_sq = np.einsum("ij,ij->i", pop.velocities, pop.velocities)
        return {
            "bodies": self.num_bodies,
            "galaxies": self.num_galaxies,
            "steps": self.steps,
            "time": self.time,
            "kinetic_energy": float(0.5 * np.dot(pop.masses, speed_sq)),
            "momentum": pop.momentum(),
            "finite": bool(np.all(np.isfinite(pop.positions)) and np.all(np.isfinite(pop.velocities))),
        }
