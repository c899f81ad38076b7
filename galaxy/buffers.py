"""
Double-buffered generation updates.

Two fixed-capacity populations are kept: "current" is read-only for the
whole step and "next" is written, one slot per worker. When the parallel
kernel returns every slot has been written and the roles swap. No worker
ever writes into the buffer it reads from, so the result of a step does not
depend on the order workers run in.
"""

import numpy as np

from config import galaxy as config
from .forces import ForceLaw, compute_accelerations
from .integrator import Integrator, step_population
from .particles import Population, SimParams

# Workers dispatched together per batch
PARTICLES_PER_GROUP = int(config.SIMULATION["particles_per_group"])


def workgroup_count(num_bodies: int, group_size: int = PARTICLES_PER_GROUP) -> int:
    """Number of batches needed to cover every particle."""
    return (num_bodies + group_size - 1) // group_size


def _prime(population: Population, params: SimParams, law: ForceLaw) -> np.ndarray:
    """Accelerations of a snapshot at its own positions."""
    n = len(population)
    acc = np.zeros((n, 3), dtype=np.float64)
    if n:
        compute_accelerations(
            population.positions, population.masses, acc, int(law),
            params.g, params.e, params.halo_scale, params.halo_radius, n
        )
    return acc


def _dispatch(src: Population, src_acc: np.ndarray, dst: Population,
              params: SimParams, law: ForceLaw, integrator: Integrator):
    n = len(src)
    if n == 0:
        return
    step_population(
        src.positions, src.velocities, src_acc, src.masses, src.galaxy_ids,
        dst.positions, dst.velocities, dst.accelerations, dst.masses, dst.galaxy_ids,
        int(law), int(integrator),
        params.dt, params.g, params.e, params.halo_scale, params.halo_radius, n
    )


def step(population: Population, params: SimParams,
         law=ForceLaw.PLUMMER, integrator=Integrator.LEAPFROG) -> Population:
    """
    Pure step function: (population, params) -> next generation.

    The input population is never modified. A population without stored
    accelerations is primed first so the leapfrog half kick has something
    to kick with.
    """
    law = ForceLaw.parse(law)
    integrator = Integrator.parse(integrator)

    src_acc = population.accelerations
    if src_acc is None:
        if integrator == Integrator.LEAPFROG:
            src_acc = _prime(population, params, law)
        else:
            src_acc = np.zeros((len(population), 3), dtype=np.float64)

    dst = Population.empty_like(population)
    _dispatch(population, src_acc, dst, params, law, integrator)
    return dst


class ParticleBuffers:
    """
    Two fixed-capacity generations plus an active-generation index.

    The buffer marked active is never written during a step; step() writes
    the other one and flips the index once the whole kernel has finished.
    """

    def __init__(self, population: Population,
                 law=ForceLaw.PLUMMER, integrator=Integrator.LEAPFROG):
        self.law = ForceLaw.parse(law)
        self.integrator = Integrator.parse(integrator)
        self.generation = 0
        self._load(population)

    def _load(self, population: Population):
        self._primed = population.has_accelerations
        first = population.copy()
        if first.accelerations is None:
            first.accelerations = np.zeros((len(first), 3), dtype=np.float64)
        self._buffers = [first, Population.empty_like(population)]
        self._active = 0

    @property
    def num_bodies(self) -> int:
        return len(self._buffers[0])

    @property
    def active_index(self) -> int:
        return self._active

    @property
    def current(self) -> Population:
        """The generation every worker reads (and the renderer displays)."""
        return self._buffers[self._active]

    @property
    def next(self) -> Population:
        """The generation the next step writes into."""
        return self._buffers[1 - self._active]

    def step(self, params: SimParams) -> Population:
        """Advance one generation and return the new current buffer."""
        src = self.current
        dst = self.next

        if not self._primed:
            if self.integrator == Integrator.LEAPFROG:
                src.accelerations[:] = _prime(src, params, self.law)
            self._primed = True

        _dispatch(src, src.accelerations, dst, params, self.law, self.integrator)

        # Kernel has returned: every slot of dst is written
        self._active = 1 - self._active
        self.generation += 1
        return self.current

    def run(self, params: SimParams, steps: int) -> Population:
        for _ in range(steps):
            self.step(params)
        return self.current

    def snapshot(self) -> Population:
        """Independent copy of the current generation."""
        return self.current.copy()

    def reset(self, population: Population):
        """Replace both generations (new run, same or different size)."""
        self.generation = 0
        self._load(population)
