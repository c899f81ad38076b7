"""
Direct-summation force evaluation.

Every particle feels every other particle (O(n²)); there is no tree or
multipole approximation. The force law is chosen once per run and passed to
the kernels as an integer tag so the whole evaluator stays inside Numba.

Force laws:
- NEWTONIAN:    a_i = sum_j G*m_i*m_j / r² * r̂ / m_i. Coincident pairs (r == 0)
                are skipped; nothing else is guarded, so close encounters blow
                up. Kept as an explicitly unstable baseline.
- PLUMMER:      a_i += G*m_j / (r² + e)^1.5 * d   (d not normalized)
- HALO:         a_i += (G*m_j / (r³ + e) + halo_scale*smoothstep(0, R_h, r)) * r̂,
                pairs closer than MIN_PAIR_DISTANCE are skipped
- MULTI_GALAXY: the HALO law; galaxy ids are carried for coloring only
"""

import math
import numpy as np
from enum import IntEnum
from numba import njit, prange

from .errors import ConfigurationError


class ForceLaw(IntEnum):
    NEWTONIAN = 0
    PLUMMER = 1
    HALO = 2
    MULTI_GALAXY = 3

    @property
    def unstable(self) -> bool:
        """True for laws with no protection against small-but-nonzero r."""
        return self == ForceLaw.NEWTONIAN

    @property
    def label(self) -> str:
        return self.name.lower() + (" (unstable)" if self.unstable else "")

    @classmethod
    def parse(cls, value) -> "ForceLaw":
        """Accept a ForceLaw, its integer value or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper().replace("-", "_")]
            except KeyError:
                names = ", ".join(m.name.lower() for m in cls)
                raise ConfigurationError(f"Unknown force law '{value}' (expected one of: {names})")
        return cls(int(value))


# Pairs closer than this are skipped by the halo laws (same units as position)
MIN_PAIR_DISTANCE = 1e-6

_NEWTONIAN = int(ForceLaw.NEWTONIAN)
_PLUMMER = int(ForceLaw.PLUMMER)


@njit(cache=True)
def smoothstep(edge0: float, edge1: float, x: float) -> float:
    """Hermite interpolation between 0 and 1 (GLSL/WGSL smoothstep)."""
    t = (x - edge0) / (edge1 - edge0)
    if t < 0.0:
        t = 0.0
    elif t > 1.0:
        t = 1.0
    return t * t * (3.0 - 2.0 * t)


@njit(cache=True)
def acceleration_at(
    i: int,
    px: float, py: float, pz: float,
    positions: np.ndarray,
    masses: np.ndarray,
    law: int,
    G: float,
    softening: float,
    halo_scale: float,
    halo_radius: float,
    num_bodies: int
):
    """
    Net acceleration on particle i if it were at (px, py, pz).

    Reads only the source snapshot; particle i itself is skipped. The
    position is passed separately so the integrator can evaluate at the
    drifted position while still reading the pre-step population.
    """
    ax, ay, az = 0.0, 0.0, 0.0

    if law == _NEWTONIAN:
        m_self = masses[i]
        for j in range(num_bodies):
            if j == i:
                continue
            dx = positions[j, 0] - px
            dy = positions[j, 1] - py
            dz = positions[j, 2] - pz
            dist_sq = dx * dx + dy * dy + dz * dz
            if dist_sq == 0.0:
                continue
            dist = math.sqrt(dist_sq)
            # F = G * m_i * m_j / r², along the unit vector to j
            force = G * m_self * masses[j] / dist_sq
            ax += force * dx / dist
            ay += force * dy / dist
            az += force * dz / dist
        return ax / m_self, ay / m_self, az / m_self

    if law == _PLUMMER:
        for j in range(num_bodies):
            if j == i:
                continue
            dx = positions[j, 0] - px
            dy = positions[j, 1] - py
            dz = positions[j, 2] - pz
            denom = dx * dx + dy * dy + dz * dz + softening
            if denom == 0.0:
                # e == 0 and coincident: d is zero, so is the contribution
                continue
            denom = denom * math.sqrt(denom)
            force = G * masses[j] / denom
            ax += force * dx
            ay += force * dy
            az += force * dz
        return ax, ay, az

    # HALO and MULTI_GALAXY
    for j in range(num_bodies):
        if j == i:
            continue
        dx = positions[j, 0] - px
        dy = positions[j, 1] - py
        dz = positions[j, 2] - pz
        dist = math.sqrt(dx * dx + dy * dy + dz * dz)
        if dist < MIN_PAIR_DISTANCE:
            continue
        force = G * masses[j] / (dist * dist * dist + softening)
        force += halo_scale * smoothstep(0.0, halo_radius, dist)
        ax += force * dx / dist
        ay += force * dy / dist
        az += force * dz / dist
    return ax, ay, az


@njit(parallel=True, cache=True)
def compute_accelerations(
    positions: np.ndarray,
    masses: np.ndarray,
    accelerations: np.ndarray,
    law: int,
    G: float,
    softening: float,
    halo_scale: float,
    halo_radius: float,
    num_bodies: int
):
    """Evaluate the acceleration of every particle at its current position."""
    for i in prange(num_bodies):
        ax, ay, az = acceleration_at(
            i, positions[i, 0], positions[i, 1], positions[i, 2],
            positions, masses, law, G, softening, halo_scale, halo_radius, num_bodies
        )
        accelerations[i, 0] = ax
        accelerations[i, 1] = ay
        accelerations[i, 2] = az


def evaluate(population, params, law=ForceLaw.PLUMMER, index: int = None) -> np.ndarray:
    """
    Accelerations for a population under the given law and parameters.

    Returns a (3,) vector when index is given, otherwise an (n, 3) array.
    """
    law = ForceLaw.parse(law)
    n = len(population)
    if index is not None:
        if not 0 <= index < n:
            raise IndexError(f"particle index {index} out of range for {n} particles")
        p = population.positions[index]
        return np.array(acceleration_at(
            index, p[0], p[1], p[2], population.positions, population.masses,
            int(law), params.g, params.e, params.halo_scale, params.halo_radius, n
        ))

    out = np.zeros((n, 3), dtype=np.float64)
    if n:
        compute_accelerations(
            population.positions, population.masses, out, int(law),
            params.g, params.e, params.halo_scale, params.halo_radius, n
        )
    return out


def softened_bound(params, max_mass: float, num_bodies: int, law=ForceLaw.PLUMMER) -> float:
    """
    Upper bound on |a| for any configuration under a softened law.

    Plummer: each pair contributes G*m*r / (r² + e)^1.5, maximal at
    r = sqrt(e/2) where it equals 2*G*m / (3*sqrt(3)*e).
    Halo: each pair contributes at most G*m/e + |halo_scale|.
    """
    law = ForceLaw.parse(law)
    if law.unstable:
        return math.inf
    if params.e == 0:
        return math.inf
    others = max(num_bodies - 1, 0)
    if law == ForceLaw.PLUMMER:
        per_pair = 2.0 * params.g * max_mass / (3.0 * math.sqrt(3.0) * params.e)
    else:
        per_pair = params.g * max_mass / params.e + abs(params.halo_scale)
    return others * per_pair
