"""Tests for initial-condition generators."""

import pytest
import numpy as np

from config import galaxy as config
from galaxy import ConfigurationError, PopulationError, generate_population
from galaxy.initialize import DISTRIBUTIONS, create_spiral_galaxies

G = 1e-6


class TestGeneratePopulation:
    @pytest.mark.parametrize("distribution", sorted(DISTRIBUTIONS))
    def test_size_and_validity(self, distribution):
        pop = generate_population(distribution, n=300, G=G)
        assert len(pop) == 300
        assert np.all(np.isfinite(pop.positions))
        assert np.all(np.isfinite(pop.velocities))
        assert np.all(pop.masses > 0)

    @pytest.mark.parametrize("distribution", sorted(DISTRIBUTIONS))
    def test_seeded_runs_are_reproducible(self, distribution):
        a = generate_population(distribution, n=200, G=G, seed=3)
        b = generate_population(distribution, n=200, G=G, seed=3)
        c = generate_population(distribution, n=200, G=G, seed=4)
        np.testing.assert_array_equal(a.positions, b.positions)
        np.testing.assert_array_equal(a.velocities, b.velocities)
        assert not np.array_equal(a.positions, c.positions)

    def test_unknown_distribution(self):
        with pytest.raises(ConfigurationError):
            generate_population("plummer_sphere", n=10)

    def test_defaults_come_from_config(self):
        pop = generate_population(n=100)
        assert pop.num_galaxies == config.GALAXY["num_galaxies"]


class TestSpiral:
    def test_single_galaxy_centered_at_origin(self):
        pop = generate_population("spiral", n=500, num_galaxies=1, G=G)
        np.testing.assert_array_equal(pop.positions[0], [0.0, 0.0, 0.0])
        assert pop.masses[0] == config.GALAXY["central_mass"]
        assert np.all(pop.masses[1:] == 1.0)
        assert np.all(pop.galaxy_ids == 0)

    def test_orbits_are_tangential(self):
        pop = generate_population("spiral", n=500, num_galaxies=1, G=G)
        offsets = pop.positions[1:]
        radial = np.einsum("ij,ij->i", offsets, pop.velocities[1:])
        np.testing.assert_allclose(radial, 0.0, atol=1e-12)
        # Clockwise about +z
        assert np.all(np.cross(offsets, pop.velocities[1:])[:, 2] <= 0.0)

    def test_two_galaxies_layout(self):
        rng = np.random.default_rng(42)
        pop = create_spiral_galaxies(
            1000, 2, G, central_mass=1e6, distance=0.5, galaxy_velocity=0.01, rng=rng
        )
        assert pop.num_galaxies == 2
        assert np.count_nonzero(pop.galaxy_ids == 0) == 500
        assert np.count_nonzero(pop.galaxy_ids == 1) == 500

        np.testing.assert_array_equal(pop.positions[0], [-0.5, 0.0, 0.0])
        np.testing.assert_array_equal(pop.positions[500], [0.5, 0.0, 0.0])
        assert pop.masses[0] == pop.masses[500] == 1e6

        # Bulk velocities point toward each other
        np.testing.assert_allclose(pop.velocities[0], [0.01, 0.0, 0.0])
        np.testing.assert_allclose(pop.velocities[500], [-0.01, 0.0, 0.0])

    def test_uneven_split(self):
        rng = np.random.default_rng(0)
        pop = create_spiral_galaxies(10, 3, G, 1e6, 0.5, 0.0, rng)
        assert [int(np.count_nonzero(pop.galaxy_ids == k)) for k in range(3)] == [4, 3, 3]

    def test_invalid_counts(self):
        rng = np.random.default_rng(0)
        with pytest.raises(ConfigurationError):
            create_spiral_galaxies(10, 0, G, 1e6, 0.5, 0.0, rng)
        with pytest.raises(PopulationError):
            create_spiral_galaxies(2, 3, G, 1e6, 0.5, 0.0, rng)


class TestElliptical:
    def test_central_mass_and_annulus(self):
        pop = generate_population("elliptical", n=400, G=G)
        assert pop.masses[0] == config.GALAXY["central_mass"]
        r = np.linalg.norm(pop.positions[1:], axis=1)
        assert np.all(r >= 0.25 ** 2 - 1e-12)
        assert np.all(r <= 1.0 + 1e-12)

    def test_orbital_speed(self):
        pop = generate_population("elliptical", n=100, G=G)
        r = np.linalg.norm(pop.positions[1:], axis=1)
        speed = np.linalg.norm(pop.velocities[1:], axis=1)
        np.testing.assert_allclose(speed, np.sqrt(G * 1000.0 / r), rtol=1e-9)


class TestDisk:
    def test_unit_masses_without_center(self):
        pop = generate_population("disk", n=300)
        assert np.all(pop.masses == 1.0)
        assert np.all(np.linalg.norm(pop.positions[:, :2], axis=1) <= 1.0 + 1e-12)
        assert pop.num_galaxies == 1
