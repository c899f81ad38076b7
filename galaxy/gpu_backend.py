"""
GPU Backend Detection and Selection
====================================

Detects and uses the best available compute backend for the step kernel:
1. CUDA (NVIDIA GPUs) - via Numba CUDA, one thread per particle
2. CPU (fallback) - via Numba parallel (prange), see galaxy.buffers

Both backends run the same direct-summation kernel with the same
double-buffering: threads read the current generation and write their own
slot of the next one, in blocks of PARTICLES_PER_GROUP threads.
"""

import math
import platform
import warnings
import numpy as np
from enum import Enum
from typing import Optional, Tuple

from numba.core.errors import NumbaPerformanceWarning

from .buffers import PARTICLES_PER_GROUP, workgroup_count
from .forces import ForceLaw, MIN_PAIR_DISTANCE
from .integrator import Integrator
from .particles import Population, SimParams

# Small grids trigger occupancy warnings on every launch
warnings.filterwarnings('ignore', category=NumbaPerformanceWarning)


class Backend(Enum):
    CUDA = "cuda"
    CPU = "cpu"


def detect_backend() -> Tuple[Backend, str]:
    """Detect the best available compute backend."""
    cuda_available, cuda_info = _check_cuda()
    if cuda_available:
        return Backend.CUDA, cuda_info
    return Backend.CPU, _get_cpu_info()


def _check_cuda() -> Tuple[bool, str]:
    """Check if CUDA is available via Numba."""
    try:
        from numba import cuda
        if cuda.is_available():
            device = cuda.get_current_device()
            name = device.name.decode() if isinstance(device.name, bytes) else device.name
            cc = device.compute_capability
            return True, f"{name} (CC {cc[0]}.{cc[1]})"
    except Exception as e:
        print(f"[GPU] CUDA check failed: {e}")
    return False, ""


def _get_cpu_info() -> str:
    """Get CPU info for fallback."""
    import multiprocessing
    try:
        cores = multiprocessing.cpu_count()
        return f"{platform.processor() or 'CPU'} ({cores} cores)"
    except NotImplementedError:
        return platform.processor() or "Unknown CPU"


# Global backend state
_BACKEND: Optional[Backend] = None
_BACKEND_INFO: str = ""


def get_backend() -> Tuple[Backend, str]:
    """Get the current backend (cached)."""
    global _BACKEND, _BACKEND_INFO
    if _BACKEND is None:
        _BACKEND, _BACKEND_INFO = detect_backend()
        print(f"[GPU] Using backend: {_BACKEND.value} - {_BACKEND_INFO}")
    return _BACKEND, _BACKEND_INFO


def force_backend(backend: Optional[Backend]):
    """Force a specific backend (for testing). None re-enables detection."""
    global _BACKEND, _BACKEND_INFO
    _BACKEND = backend
    _BACKEND_INFO = f"Forced: {backend.value}" if backend is not None else ""


# =============================================================================
# CUDA IMPLEMENTATION (NVIDIA)
# =============================================================================

def _init_cuda_kernels():
    """Compile the CUDA step kernels."""
    from numba import cuda

    NEWTONIAN = int(ForceLaw.NEWTONIAN)
    PLUMMER = int(ForceLaw.PLUMMER)
    LEAPFROG = int(Integrator.LEAPFROG)
    MIN_DIST = MIN_PAIR_DISTANCE

    @cuda.jit(device=True)
    def smoothstep(edge0, edge1, x):
        t = min(max((x - edge0) / (edge1 - edge0), 0.0), 1.0)
        return t * t * (3.0 - 2.0 * t)

    @cuda.jit(device=True)
    def acceleration_at(i, px, py, pz, positions, masses, law, G, softening,
                        halo_scale, halo_radius, n):
        ax, ay, az = 0.0, 0.0, 0.0
        for j in range(n):
            if j == i:
                continue
            dx = positions[j, 0] - px
            dy = positions[j, 1] - py
            dz = positions[j, 2] - pz
            dist_sq = dx * dx + dy * dy + dz * dz

            if law == NEWTONIAN:
                if dist_sq == 0.0:
                    continue
                dist = math.sqrt(dist_sq)
                # m_i cancels: (G * m_i * m_j / r²) / m_i
                force = G * masses[j] / (dist_sq * dist)
            elif law == PLUMMER:
                denom = dist_sq + softening
                if denom == 0.0:
                    continue
                force = G * masses[j] / (denom * math.sqrt(denom))
            else:
                dist = math.sqrt(dist_sq)
                if dist < MIN_DIST:
                    continue
                force = (G * masses[j] / (dist * dist_sq + softening)
                         + halo_scale * smoothstep(0.0, halo_radius, dist)) / dist

            ax += force * dx
            ay += force * dy
            az += force * dz
        return ax, ay, az

    @cuda.jit
    def prime_cuda(positions, masses, accelerations, law, G, softening,
                   halo_scale, halo_radius, n):
        """Accelerations of a snapshot at its own positions."""
        i = cuda.grid(1)
        if i >= n:
            return
        ax, ay, az = acceleration_at(
            i, positions[i, 0], positions[i, 1], positions[i, 2], positions, masses,
            law, G, softening, halo_scale, halo_radius, n
        )
        accelerations[i, 0] = ax
        accelerations[i, 1] = ay
        accelerations[i, 2] = az

    @cuda.jit
    def step_cuda(src_pos, src_vel, src_acc, src_mass, src_ids,
                  dst_pos, dst_vel, dst_acc, dst_mass, dst_ids,
                  law, integrator, dt, G, softening, halo_scale, halo_radius, n):
        """One thread per particle; reads src, writes dst[i] only."""
        i = cuda.grid(1)
        if i >= n:
            return

        px, py, pz = src_pos[i, 0], src_pos[i, 1], src_pos[i, 2]
        vx, vy, vz = src_vel[i, 0], src_vel[i, 1], src_vel[i, 2]

        if integrator == LEAPFROG:
            half_dt = dt * 0.5
            vx += src_acc[i, 0] * half_dt
            vy += src_acc[i, 1] * half_dt
            vz += src_acc[i, 2] * half_dt
            px += vx * dt
            py += vy * dt
            pz += vz * dt
            ax, ay, az = acceleration_at(i, px, py, pz, src_pos, src_mass, law, G,
                                         softening, halo_scale, halo_radius, n)
            vx += ax * half_dt
            vy += ay * half_dt
            vz += az * half_dt
        else:
            ax, ay, az = acceleration_at(i, px, py, pz, src_pos, src_mass, law, G,
                                         softening, halo_scale, halo_radius, n)
            vx += ax * dt
            vy += ay * dt
            vz += az * dt
            px += vx * dt
            py += vy * dt
            pz += vz * dt

        dst_pos[i, 0] = px
        dst_pos[i, 1] = py
        dst_pos[i, 2] = pz
        dst_vel[i, 0] = vx
        dst_vel[i, 1] = vy
        dst_vel[i, 2] = vz
        dst_acc[i, 0] = ax
        dst_acc[i, 1] = ay
        dst_acc[i, 2] = az
        dst_mass[i] = src_mass[i]
        dst_ids[i] = src_ids[i]

    return {
        'prime': prime_cuda,
        'step': step_cuda,
    }


class CUDASimulation:
    """CUDA-accelerated direct-summation step with device-side double buffering."""

    def __init__(self, population: Population, law, integrator, params: SimParams):
        from numba import cuda

        self.n = len(population)
        self.law = ForceLaw.parse(law)
        self.integrator = Integrator.parse(integrator)
        self.generation = 0

        self.kernels = _init_cuda_kernels()

        self.threads_per_block = PARTICLES_PER_GROUP
        self.blocks = max(1, workgroup_count(self.n))

        acc = population.accelerations
        primed = acc is not None
        if acc is None:
            acc = np.zeros((self.n, 3), dtype=np.float64)

        self._buffers = []
        for _ in range(2):
            self._buffers.append((
                cuda.to_device(population.positions),
                cuda.to_device(population.velocities),
                cuda.to_device(acc),
                cuda.to_device(population.masses),
                cuda.to_device(population.galaxy_ids),
            ))
        self._active = 0

        if not primed and self.integrator == Integrator.LEAPFROG and self.n:
            pos, _, d_acc, mass, _ = self._buffers[0]
            self.kernels['prime'][self.blocks, self.threads_per_block](
                pos, mass, d_acc, int(self.law), params.g, params.e,
                params.halo_scale, params.halo_radius, self.n
            )
            cuda.synchronize()

        print(f"[CUDA] Initialized with {self.n:,} bodies "
              f"({self.blocks} blocks x {self.threads_per_block} threads)")

    def step(self, params: SimParams):
        """Perform one simulation step and swap buffers after the barrier."""
        from numba import cuda

        if self.n == 0:
            return
        src = self._buffers[self._active]
        dst = self._buffers[1 - self._active]
        self.kernels['step'][self.blocks, self.threads_per_block](
            *src, *dst, int(self.law), int(self.integrator),
            params.dt, params.g, params.e, params.halo_scale, params.halo_radius, self.n
        )
        cuda.synchronize()
        self._active = 1 - self._active
        self.generation += 1

    def get_population(self) -> Population:
        """Copy the current generation back to the host."""
        pos, vel, acc, mass, ids = self._buffers[self._active]
        return Population(
            pos.copy_to_host(), vel.copy_to_host(), mass.copy_to_host(),
            accelerations=acc.copy_to_host(), galaxy_ids=ids.copy_to_host(),
        )

    def sync(self):
        """Synchronize GPU."""
        from numba import cuda
        cuda.synchronize()


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

# Larger populations stay on the CPU path unless force_gpu is set
CUDA_THRESHOLD = 200_000


def create_gpu_simulation(population: Population, law, integrator,
                          params: SimParams, force_gpu: bool = False):
    """Create a GPU simulation if a GPU backend is available.

    Args:
        population: Initial generation
        law: Force law (ForceLaw or name)
        integrator: Integrator (Integrator or name)
        params: Parameters used to prime accelerations
        force_gpu: If True, use the GPU even above CUDA_THRESHOLD

    Returns:
        GPU simulation object or None if the CPU path should be used
    """
    backend, info = get_backend()
    n = len(population)

    if backend == Backend.CUDA:
        if n <= CUDA_THRESHOLD or force_gpu:
            return CUDASimulation(population, law, integrator, params)
        print(f"[GPU] {n:,} bodies exceeds CUDA threshold, using CPU")

    return None
