"""
Initial conditions for galaxy simulations.

All generators are seeded so the same configuration always produces the
same population. Velocities are circular orbits around each galaxy's
center (clockwise about +z), plus the galaxy's bulk velocity.
"""

import numpy as np
from typing import Optional, Tuple

from config import galaxy as config
from .errors import ConfigurationError, PopulationError
from .particles import Population

DISTRIBUTIONS = {
    "spiral": "Two-armed spiral galaxies with central masses (one per galaxy)",
    "elliptical": "Central mass inside a flattened elliptical disk",
    "disk": "Bulge and arm disk without a central mass",
}

# Mass used in the orbital speed estimate v = sqrt(G * ORBITAL_MASS / r)
ORBITAL_MASS = 1000.0


def _orbital_velocities(offsets: np.ndarray, G: float) -> np.ndarray:
    """Circular speed around +z for offsets from a galaxy center."""
    r = np.linalg.norm(offsets, axis=1)
    r = np.maximum(r, 1e-12)
    speed = np.sqrt(G * ORBITAL_MASS / r)

    # offset x z_hat = (y, -x, 0)
    tangent = np.zeros_like(offsets)
    tangent[:, 0] = offsets[:, 1]
    tangent[:, 1] = -offsets[:, 0]
    norm = np.linalg.norm(tangent, axis=1)
    norm = np.maximum(norm, 1e-12)
    return tangent / norm[:, None] * speed[:, None]


def _sample_annulus(rng: np.random.Generator, count: int, sampler,
                    r_min: float, r_max: float) -> np.ndarray:
    """Rejection-sample `count` offsets with r_min <= |offset| <= r_max."""
    out = np.zeros((count, 3), dtype=np.float64)
    filled = 0
    while filled < count:
        batch = sampler(rng, max(2 * (count - filled), 16))
        r = np.linalg.norm(batch, axis=1)
        keep = batch[(r >= r_min) & (r <= r_max)]
        take = min(len(keep), count - filled)
        out[filled:filled + take] = keep[:take]
        filled += take
    return out


def create_elliptical_galaxy(n: int, G: float, central_mass: float,
                             rng: np.random.Generator) -> Population:
    """Central mass at the origin surrounded by n-1 unit masses."""
    positions = np.zeros((n, 3), dtype=np.float64)
    velocities = np.zeros((n, 3), dtype=np.float64)
    masses = np.ones(n, dtype=np.float64)
    if n == 0:
        return Population(positions, velocities, masses)

    masses[0] = central_mass

    def sampler(rng, m):
        pts = rng.random((m, 3)) * 2.0 - 1.0
        pts[:, 2] *= 0.1
        return pts

    offsets = _sample_annulus(rng, n - 1, sampler, 0.25, 1.0)
    # Concentrate toward the center
    offsets *= np.linalg.norm(offsets, axis=1)[:, None]

    positions[1:] = offsets
    velocities[1:] = _orbital_velocities(offsets, G)
    return Population(positions, velocities, masses)


def _galaxy_layout(num_galaxies: int, distance: float, speed: float):
    """Centers along x and bulk velocities pointing toward the middle."""
    if num_galaxies == 1:
        return np.zeros((1, 3)), np.zeros((1, 3))
    centers = np.zeros((num_galaxies, 3))
    centers[:, 0] = np.linspace(-distance, distance, num_galaxies)
    bulk = np.zeros((num_galaxies, 3))
    bulk[:, 0] = -np.sign(centers[:, 0]) * speed
    return centers, bulk


def _spiral_members(rng: np.random.Generator, count: int, total: int, G: float,
                    center: np.ndarray, bulk: np.ndarray, shape: dict) -> Tuple[np.ndarray, np.ndarray]:
    """Bulge and arm particles of one galaxy (excluding its central mass)."""
    bulge_std = shape["bulge_std"]
    width = shape["width"]
    spiral_width = shape["spiral_width"]

    index = np.arange(count, dtype=np.float64)
    in_bulge = rng.random(count) < shape["bulge_fraction"]
    offsets = np.zeros((count, 3), dtype=np.float64)

    n_bulge = int(in_bulge.sum())
    if n_bulge:
        def sampler(rng, m):
            pts = rng.normal(0.0, bulge_std, (m, 3))
            pts[:, 2] *= width
            return pts
        offsets[in_bulge] = _sample_annulus(rng, n_bulge, sampler, 0.02, 0.3)

    arm = ~in_bulge
    n_arm = int(arm.sum())
    if n_arm:
        i = index[arm]
        theta = i * (shape["spiral_length"] * np.pi / (total * 0.8))
        r = np.maximum(shape["spiral_size"] * np.sqrt(theta), bulge_std)
        # Alternate particles between the two arms
        arm_theta = theta + np.where(i % 2.0 == 0.0, 0.0, np.pi)
        deviation = rng.normal(0.0, spiral_width, n_arm)
        offsets[arm, 0] = (r + deviation) * np.cos(arm_theta)
        offsets[arm, 1] = (r + deviation) * np.sin(arm_theta)
        offsets[arm, 2] = rng.normal(0.0, spiral_width, n_arm) * width

    positions = offsets + center
    velocities = _orbital_velocities(offsets, G) + bulk
    return positions, velocities


def create_spiral_galaxies(n: int, num_galaxies: int, G: float, central_mass: float,
                           distance: float, galaxy_velocity: float,
                           rng: np.random.Generator, shape: Optional[dict] = None) -> Population:
    """
    One or more spiral galaxies, each tagged with its own galaxy id.

    Every galaxy starts with its central mass followed by bulge and arm
    particles; the n particles are split as evenly as possible.
    """
    if num_galaxies < 1:
        raise ConfigurationError(f"num_galaxies must be >= 1, got {num_galaxies}")
    if n < num_galaxies:
        raise PopulationError(f"need at least one particle per galaxy ({n} < {num_galaxies})")
    shape = config.GALAXY if shape is None else shape

    centers, bulks = _galaxy_layout(num_galaxies, distance, galaxy_velocity)
    counts = [n // num_galaxies + (1 if k < n % num_galaxies else 0) for k in range(num_galaxies)]

    positions, velocities, masses, galaxy_ids = [], [], [], []
    for k, count in enumerate(counts):
        positions.append(centers[k:k + 1])
        velocities.append(bulks[k:k + 1])
        masses.append(np.array([central_mass]))

        pos, vel = _spiral_members(rng, count - 1, n, G, centers[k], bulks[k], shape)
        positions.append(pos)
        velocities.append(vel)
        masses.append(np.ones(count - 1))
        galaxy_ids.append(np.full(count, k, dtype=np.int32))

    return Population(
        np.concatenate(positions), np.concatenate(velocities), np.concatenate(masses),
        galaxy_ids=np.concatenate(galaxy_ids),
    )


def create_disk_galaxy(n: int, rng: np.random.Generator, radius: float = 1.0,
                       arm_factor: float = 0.3, bulge_fraction: float = 0.2) -> Population:
    """Unit-mass disk: a thin bulge plus arm particles with a sqrt(r) rotation curve."""
    in_bulge = rng.random(n) < bulge_fraction
    positions = np.zeros((n, 3), dtype=np.float64)
    velocities = np.zeros((n, 3), dtype=np.float64)

    nb = int(in_bulge.sum())
    r = np.sqrt(rng.random(nb)) * radius * 0.1
    theta = rng.random(nb) * 2.0 * np.pi
    phi = (rng.random(nb) - 0.5) * np.pi
    positions[in_bulge, 0] = r * np.cos(theta) * np.cos(phi)
    positions[in_bulge, 1] = r * np.sin(theta) * np.cos(phi)
    positions[in_bulge, 2] = r * np.sin(phi) * 0.1
    speed = np.sqrt(r / radius) * 0.1
    velocities[in_bulge, 0] = -speed * np.sin(theta)
    velocities[in_bulge, 1] = speed * np.cos(theta)

    arm = ~in_bulge
    na = int(arm.sum())
    r = np.sqrt(rng.random(na)) * radius
    theta = rng.random(na) * 2.0 * np.pi
    angle = theta + np.exp(r * arm_factor) + rng.random(na) * 0.3
    positions[arm, 0] = r * np.cos(angle)
    positions[arm, 1] = r * np.sin(angle)
    positions[arm, 2] = (rng.random(na) - 0.5) * 0.1 * r
    speed = np.sqrt(r / radius) * 0.1
    velocities[arm, 0] = -speed * np.sin(angle)
    velocities[arm, 1] = speed * np.cos(angle)

    return Population(positions, velocities, np.ones(n, dtype=np.float64))


def generate_population(distribution: Optional[str] = None, n: Optional[int] = None,
                        num_galaxies: Optional[int] = None, G: Optional[float] = None,
                        seed: Optional[int] = None, cfg: Optional[dict] = None) -> Population:
    """
    Build the initial population for a named distribution.

    Arguments left as None fall back to the GALAXY / SIMULATION config.
    """
    cfg = config.GALAXY if cfg is None else cfg
    distribution = distribution or cfg.get("distribution", "spiral")
    n = int(cfg["count"] if n is None else n)
    num_galaxies = int(cfg.get("num_galaxies", 1) if num_galaxies is None else num_galaxies)
    G = float(config.SIMULATION["gravity"] if G is None else G)
    seed = cfg.get("seed", 42) if seed is None else seed
    rng = np.random.default_rng(seed)

    if distribution == "spiral":
        return create_spiral_galaxies(
            n, num_galaxies, G, float(cfg["central_mass"]),
            float(cfg["distance_between_galaxies"]), float(cfg["galaxy_velocity"]),
            rng, shape=cfg,
        )
    elif distribution == "elliptical":
        return create_elliptical_galaxy(n, G, float(cfg["central_mass"]), rng)
    elif distribution == "disk":
        return create_disk_galaxy(n, rng)

    names = ", ".join(sorted(DISTRIBUTIONS))
    raise ConfigurationError(f"Unknown distribution '{distribution}' (expected one of: {names})")
