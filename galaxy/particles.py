"""Particle state and per-step simulation parameters."""

import math
import numpy as np
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Optional, Union

from config import galaxy as config
from .errors import ConfigurationError, DegenerateMassError, PopulationError


@dataclass
class Particle:
    """
    A single simulated body.

    Attributes:
        position: 3D world-space location
        velocity: 3D velocity vector
        acceleration: Last computed net acceleration (None if never evaluated)
        mass: Positive mass
        galaxy_id: Visualization group label, never read by the force laws (None means 0)
    """
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    acceleration: Optional[np.ndarray] = None
    mass: float = 1.0
    galaxy_id: Optional[int] = 0


@dataclass(frozen=True)
class SimParams:
    """Per-step parameters shared read-only by every worker of a step."""
    dt: float = 0.0005
    g: float = 1e-6
    e: float = 0.01
    halo_scale: float = 2.0
    halo_radius: float = 2.0

    def __post_init__(self):
        for name in ("dt", "g", "e", "halo_scale", "halo_radius"):
            value = getattr(self, name)
            if not isinstance(value, (int, float, np.floating, np.integer)) or not math.isfinite(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value!r}")
        if self.dt <= 0:
            raise ConfigurationError(f"dt must be > 0, got {self.dt}")
        if self.g < 0:
            raise ConfigurationError(f"g must be >= 0, got {self.g}")
        if self.e < 0:
            raise ConfigurationError(f"softening e must be >= 0, got {self.e}")
        if self.halo_radius <= 0:
            raise ConfigurationError(f"halo_radius must be > 0, got {self.halo_radius}")

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None, **overrides) -> "SimParams":
        """Build parameters from a SIMULATION-style config dict."""
        cfg = config.SIMULATION if cfg is None else cfg
        params = cls(
            dt=float(cfg["dt"]),
            g=float(cfg["gravity"]),
            e=float(cfg["softening"]),
            halo_scale=float(cfg.get("halo_scale", 2.0)),
            halo_radius=float(cfg.get("halo_radius", 2.0)),
        )
        if overrides:
            params = params.replace(**overrides)
        return params

    def replace(self, **changes) -> "SimParams":
        """Return a validated copy with some fields changed (between steps)."""
        return replace(self, **changes)


def _as_vectors(name: str, values, n: Optional[int] = None) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    if arr.size == 0 and n == 0:
        return arr.reshape(0, 3)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise PopulationError(f"{name} must have shape (n, 3), got {arr.shape}")
    if n is not None and arr.shape[0] != n:
        raise PopulationError(f"{name} has {arr.shape[0]} rows, expected {n}")
    return np.ascontiguousarray(arr)


class Population:
    """
    Structure-of-arrays snapshot of every particle (one generation).

    positions, velocities and accelerations are (n, 3) float64 arrays,
    masses is (n,) float64 and galaxy_ids is (n,) int32. accelerations is
    None for a population that has never been through the force evaluator.
    """

    def __init__(self, positions, velocities, masses,
                 accelerations=None, galaxy_ids=None):
        masses = np.array(masses, dtype=np.float64).reshape(-1)
        n = len(masses)

        self.positions = _as_vectors("positions", positions, n)
        self.velocities = _as_vectors("velocities", velocities, n)
        self.accelerations = None if accelerations is None else _as_vectors("accelerations", accelerations, n)

        bad = ~np.isfinite(masses) | (masses <= 0)
        if np.any(bad):
            idx = int(np.argmax(bad))
            raise DegenerateMassError(f"particle {idx} has invalid mass {masses[idx]!r} (must be > 0)")
        self.masses = masses

        if galaxy_ids is None:
            galaxy_ids = np.zeros(n, dtype=np.int32)
        galaxy_ids = np.array(galaxy_ids).reshape(-1)
        if len(galaxy_ids) != n:
            raise PopulationError(f"galaxy_ids has {len(galaxy_ids)} entries, expected {n}")
        if n and galaxy_ids.dtype.kind not in "iuf":
            raise PopulationError(f"galaxy_ids must be integers, got {galaxy_ids.dtype} values")
        if n and galaxy_ids.dtype.kind == "f":
            if not np.all(np.isfinite(galaxy_ids)) or np.any(galaxy_ids != np.floor(galaxy_ids)):
                raise PopulationError("galaxy_ids must be whole numbers")
        if n and np.any(galaxy_ids < 0):
            raise PopulationError("galaxy_ids must be non-negative")
        self.galaxy_ids = np.ascontiguousarray(galaxy_ids, dtype=np.int32)

    @classmethod
    def from_records(cls, records: Iterable[Union[Particle, dict]]) -> "Population":
        """
        Build a population from Particle records or plain dicts.

        Dict keys may be long ("position", "velocity", "acceleration") or
        short ("pos", "vel", "acc"); "mass" and "galaxy_id" are optional.
        Accelerations are kept only if every record provides one.
        """
        positions, velocities, accelerations, masses, galaxy_ids = [], [], [], [], []
        for rec in records:
            if isinstance(rec, Particle):
                rec = {
                    "position": rec.position, "velocity": rec.velocity,
                    "acceleration": rec.acceleration, "mass": rec.mass,
                    "galaxy_id": rec.galaxy_id,
                }
            positions.append(rec.get("position", rec.get("pos", (0.0, 0.0, 0.0))))
            velocities.append(rec.get("velocity", rec.get("vel", (0.0, 0.0, 0.0))))
            accelerations.append(rec.get("acceleration", rec.get("acc")))
            masses.append(rec.get("mass", 1.0))
            gid = rec.get("galaxy_id")
            galaxy_ids.append(0 if gid is None else gid)

        n = len(masses)
        if any(a is None for a in accelerations):
            accelerations = None
        return cls(
            np.reshape(np.array(positions, dtype=np.float64), (n, 3)),
            np.reshape(np.array(velocities, dtype=np.float64), (n, 3)),
            masses,
            accelerations=None if accelerations is None else np.reshape(
                np.array(accelerations, dtype=np.float64), (n, 3)),
            galaxy_ids=galaxy_ids,
        )

    @classmethod
    def empty_like(cls, other: "Population") -> "Population":
        """Allocate a same-sized population with zeroed kinematics."""
        n = len(other)
        return cls(
            np.zeros((n, 3)), np.zeros((n, 3)), other.masses.copy(),
            accelerations=np.zeros((n, 3)), galaxy_ids=other.galaxy_ids.copy(),
        )

    def __len__(self) -> int:
        return len(self.masses)

    def __iter__(self) -> Iterator[Particle]:
        for i in range(len(self)):
            yield self.particle(i)

    def __repr__(self) -> str:
        return f"Population(n={len(self)}, galaxies={self.num_galaxies})"

    @property
    def has_accelerations(self) -> bool:
        return self.accelerations is not None

    @property
    def num_galaxies(self) -> int:
        return int(self.galaxy_ids.max()) + 1 if len(self) else 0

    def particle(self, i: int) -> Particle:
        """Return a copy of particle i as a record."""
        return Particle(
            position=self.positions[i].copy(),
            velocity=self.velocities[i].copy(),
            acceleration=None if self.accelerations is None else self.accelerations[i].copy(),
            mass=float(self.masses[i]),
            galaxy_id=int(self.galaxy_ids[i]),
        )

    def copy(self) -> "Population":
        return Population(
            self.positions.copy(), self.velocities.copy(), self.masses.copy(),
            accelerations=None if self.accelerations is None else self.accelerations.copy(),
            galaxy_ids=self.galaxy_ids.copy(),
        )

    def total_mass(self) -> float:
        return float(self.masses.sum())

    def center_of_mass(self) -> np.ndarray:
        return (self.positions * self.masses[:, None]).sum(axis=0) / self.total_mass()

    def momentum(self) -> np.ndarray:
        return (self.velocities * self.masses[:, None]).sum(axis=0)
