"""
Per-particle time integration.

Each worker advances exactly one particle: it reads the whole source
generation and writes only its own slot of the destination generation.
"""

import numpy as np
from enum import IntEnum
from numba import njit, prange

from .errors import ConfigurationError
from .forces import acceleration_at


class Integrator(IntEnum):
    LEAPFROG = 0   # kick-drift-kick velocity Verlet
    EULER = 1      # naive baseline, full kick then drift

    @classmethod
    def parse(cls, value) -> "Integrator":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                names = ", ".join(m.name.lower() for m in cls)
                raise ConfigurationError(f"Unknown integrator '{value}' (expected one of: {names})")
        return cls(int(value))


_LEAPFROG = int(Integrator.LEAPFROG)


@njit(cache=True)
def advance_particle(
    i: int,
    src_pos: np.ndarray,
    src_vel: np.ndarray,
    src_acc: np.ndarray,
    masses: np.ndarray,
    dst_pos: np.ndarray,
    dst_vel: np.ndarray,
    dst_acc: np.ndarray,
    law: int,
    integrator: int,
    dt: float,
    G: float,
    softening: float,
    halo_scale: float,
    halo_radius: float,
    num_bodies: int
):
    """Advance particle i by one step, writing only dst[i]."""
    px, py, pz = src_pos[i, 0], src_pos[i, 1], src_pos[i, 2]
    vx, vy, vz = src_vel[i, 0], src_vel[i, 1], src_vel[i, 2]

    if integrator == _LEAPFROG:
        half_dt = dt * 0.5

        # Half kick with the stored acceleration
        vx += src_acc[i, 0] * half_dt
        vy += src_acc[i, 1] * half_dt
        vz += src_acc[i, 2] * half_dt

        # Drift
        px += vx * dt
        py += vy * dt
        pz += vz * dt

        # New acceleration at the drifted position, against the old snapshot
        ax, ay, az = acceleration_at(
            i, px, py, pz, src_pos, masses, law,
            G, softening, halo_scale, halo_radius, num_bodies
        )

        # Second half kick
        vx += ax * half_dt
        vy += ay * half_dt
        vz += az * half_dt
    else:
        ax, ay, az = acceleration_at(
            i, px, py, pz, src_pos, masses, law,
            G, softening, halo_scale, halo_radius, num_bodies
        )
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


@njit(parallel=True, cache=True)
def step_population(
    src_pos: np.ndarray,
    src_vel: np.ndarray,
    src_acc: np.ndarray,
    src_mass: np.ndarray,
    src_ids: np.ndarray,
    dst_pos: np.ndarray,
    dst_vel: np.ndarray,
    dst_acc: np.ndarray,
    dst_mass: np.ndarray,
    dst_ids: np.ndarray,
    law: int,
    integrator: int,
    dt: float,
    G: float,
    softening: float,
    halo_scale: float,
    halo_radius: float,
    num_bodies: int
):
    """
    One full step: one worker per particle, source read-only.

    Mass and galaxy id pass through unchanged so the destination holds a
    complete generation once the loop returns.
    """
    for i in prange(num_bodies):
        advance_particle(
            i, src_pos, src_vel, src_acc, src_mass,
            dst_pos, dst_vel, dst_acc,
            law, integrator, dt, G, softening, halo_scale, halo_radius, num_bodies
        )
        dst_mass[i] = src_mass[i]
        dst_ids[i] = src_ids[i]
