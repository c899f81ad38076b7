"""Tests for the force evaluator."""

import math
import pytest
import numpy as np

from galaxy import ConfigurationError, ForceLaw, Population, SimParams, evaluate
from galaxy.forces import softened_bound, smoothstep

ALL_LAWS = list(ForceLaw)
SOFTENED_LAWS = [ForceLaw.PLUMMER, ForceLaw.HALO, ForceLaw.MULTI_GALAXY]


class TestForceLaw:
    def test_parse_names(self):
        assert ForceLaw.parse("plummer") == ForceLaw.PLUMMER
        assert ForceLaw.parse("Multi-Galaxy") == ForceLaw.MULTI_GALAXY
        assert ForceLaw.parse(2) == ForceLaw.HALO
        assert ForceLaw.parse(ForceLaw.NEWTONIAN) is ForceLaw.NEWTONIAN

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError):
            ForceLaw.parse("mond")

    def test_only_newtonian_is_unstable(self):
        assert ForceLaw.NEWTONIAN.unstable
        assert "unstable" in ForceLaw.NEWTONIAN.label
        assert not any(law.unstable for law in SOFTENED_LAWS)


class TestSmoothstep:
    def test_edges_and_midpoint(self):
        assert smoothstep(0.0, 2.0, -1.0) == 0.0
        assert smoothstep(0.0, 2.0, 0.0) == 0.0
        assert smoothstep(0.0, 2.0, 1.0) == pytest.approx(0.5)
        assert smoothstep(0.0, 2.0, 2.0) == 1.0
        assert smoothstep(0.0, 2.0, 5.0) == 1.0


class TestEvaluate:
    @pytest.mark.parametrize("law", ALL_LAWS)
    def test_lone_particle_has_zero_acceleration(self, lone_particle, unit_params, law):
        acc = evaluate(lone_particle, unit_params, law)
        np.testing.assert_array_equal(acc, np.zeros((1, 3)))

    @pytest.mark.parametrize("law", [ForceLaw.NEWTONIAN, ForceLaw.PLUMMER])
    def test_two_body_forces_are_equal_and_opposite(self, unit_params, law):
        pop = Population([[0.2, -0.1, 0.3], [1.1, 0.4, -0.2]], np.zeros((2, 3)), [2.0, 3.0])
        acc = evaluate(pop, unit_params, law)
        force_0 = acc[0] * pop.masses[0]
        force_1 = acc[1] * pop.masses[1]
        np.testing.assert_allclose(force_0, -force_1, rtol=1e-12)

    @pytest.mark.parametrize("law", ALL_LAWS)
    def test_attraction_points_toward_the_other_body(self, two_body, unit_params, law):
        acc = evaluate(two_body, unit_params, law)
        assert acc[0, 0] > 0
        assert acc[1, 0] < 0
        np.testing.assert_allclose(acc[:, 1:], 0.0)

    def test_plummer_magnitude(self, two_body, unit_params):
        acc = evaluate(two_body, unit_params, ForceLaw.PLUMMER, index=0)
        expected = 1.0 / (1.0 + 0.01) ** 1.5
        assert acc[0] == pytest.approx(expected, rel=1e-12)

    def test_halo_term_dominates_beyond_radius(self):
        params = SimParams(dt=0.1, g=0.0, e=0.01, halo_scale=2.0, halo_radius=2.0)
        pop = Population([[0.0, 0.0, 0.0], [3.0, 0.0, 0.0]], np.zeros((2, 3)), [1.0, 1.0])
        acc = evaluate(pop, params, ForceLaw.HALO)
        np.testing.assert_allclose(acc[0], [2.0, 0.0, 0.0])
        np.testing.assert_allclose(acc[1], [-2.0, 0.0, 0.0])

    @pytest.mark.parametrize("law", ALL_LAWS)
    def test_coincident_particles_contribute_nothing(self, law):
        params = SimParams(dt=0.1, g=1.0, e=0.0)
        pop = Population([[0.5, 0.5, 0.5], [0.5, 0.5, 0.5]], np.zeros((2, 3)), [1.0, 1.0])
        acc = evaluate(pop, params, law)
        assert np.all(np.isfinite(acc))
        np.testing.assert_array_equal(acc, 0.0)

    @pytest.mark.parametrize("law", SOFTENED_LAWS)
    @pytest.mark.parametrize("r", [1e-12, 1e-9, 1e-6, 1e-3, 0.05, 0.5])
    def test_softened_acceleration_is_bounded(self, unit_params, law, r):
        pop = Population([[0.0, 0.0, 0.0], [r, 0.0, 0.0]], np.zeros((2, 3)), [1.0, 1.0])
        acc = evaluate(pop, unit_params, law)
        bound = softened_bound(unit_params, 1.0, 2, law)
        assert np.all(np.isfinite(acc))
        assert np.linalg.norm(acc[0]) <= bound * (1 + 1e-12)

    def test_newtonian_bound_is_infinite(self, unit_params):
        assert softened_bound(unit_params, 1.0, 2, ForceLaw.NEWTONIAN) == math.inf

    def test_single_index_matches_full_evaluation(self, mirrored_cloud, unit_params):
        full = evaluate(mirrored_cloud, unit_params, ForceLaw.MULTI_GALAXY)
        single = evaluate(mirrored_cloud, unit_params, ForceLaw.MULTI_GALAXY, index=5)
        np.testing.assert_allclose(single, full[5], rtol=1e-12, atol=1e-15)

    def test_index_out_of_range(self, two_body, unit_params):
        with pytest.raises(IndexError):
            evaluate(two_body, unit_params, index=2)

    def test_empty_population(self, unit_params):
        pop = Population(np.zeros((0, 3)), np.zeros((0, 3)), [])
        assert evaluate(pop, unit_params).shape == (0, 3)
