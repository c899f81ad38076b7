"""Tests for double-buffered generation updates."""

import pytest
import numpy as np

from galaxy import ForceLaw, Integrator, ParticleBuffers, step
from config import galaxy as config
from galaxy.buffers import PARTICLES_PER_GROUP, workgroup_count


class TestWorkgroups:
    def test_group_size_comes_from_config(self):
        assert PARTICLES_PER_GROUP == config.SIMULATION["particles_per_group"] == 64

    @pytest.mark.parametrize("n,groups", [(0, 0), (1, 1), (64, 1), (65, 2), (10_000, 157)])
    def test_every_particle_is_covered(self, n, groups):
        assert workgroup_count(n) == groups
        assert workgroup_count(n) * PARTICLES_PER_GROUP >= n


class TestParticleBuffers:
    def test_step_swaps_active_buffer(self, two_body, unit_params):
        buffers = ParticleBuffers(two_body)
        assert buffers.active_index == 0
        buffers.step(unit_params)
        assert buffers.active_index == 1
        assert buffers.generation == 1
        buffers.step(unit_params)
        assert buffers.active_index == 0
        assert buffers.generation == 2

    def test_destination_is_fully_written(self, mirrored_cloud, unit_params):
        buffers = ParticleBuffers(mirrored_cloud, ForceLaw.MULTI_GALAXY)
        dst = buffers.next
        dst.positions[:] = np.nan
        dst.velocities[:] = np.nan
        dst.accelerations[:] = np.nan
        dst.masses[:] = np.nan
        dst.galaxy_ids[:] = -1

        current = buffers.step(unit_params)
        assert current is dst
        assert np.all(np.isfinite(current.positions))
        assert np.all(np.isfinite(current.velocities))
        assert np.all(np.isfinite(current.accelerations))
        np.testing.assert_array_equal(current.masses, mirrored_cloud.masses)
        np.testing.assert_array_equal(current.galaxy_ids, mirrored_cloud.galaxy_ids)

    def test_source_is_not_written_during_step(self, mirrored_cloud, unit_params):
        buffers = ParticleBuffers(mirrored_cloud)
        src = buffers.current
        before = src.positions.copy()
        buffers.step(unit_params)
        np.testing.assert_array_equal(src.positions, before)

    @pytest.mark.parametrize("integrator", list(Integrator))
    def test_matches_pure_step(self, mirrored_cloud, unit_params, integrator):
        buffers = ParticleBuffers(mirrored_cloud, ForceLaw.PLUMMER, integrator)
        expected = mirrored_cloud
        for _ in range(3):
            buffers.step(unit_params)
            expected = step(expected, unit_params, ForceLaw.PLUMMER, integrator)
        np.testing.assert_allclose(buffers.current.positions, expected.positions, rtol=1e-12, atol=1e-15)
        np.testing.assert_allclose(buffers.current.velocities, expected.velocities, rtol=1e-12, atol=1e-15)

    def test_two_body_example(self, two_body, unit_params):
        buffers = ParticleBuffers(two_body)
        current = buffers.step(unit_params)
        assert current.positions[0, 0] > 0.0
        assert current.positions[1, 0] < 1.0
        assert current.positions[0, 0] == pytest.approx(1.0 - current.positions[1, 0], rel=1e-9)

    def test_run_and_snapshot(self, two_body, unit_params):
        buffers = ParticleBuffers(two_body)
        buffers.run(unit_params, 4)
        assert buffers.generation == 4
        snap = buffers.snapshot()
        snap.positions[:] = 0.0
        assert buffers.current.positions[1, 0] != 0.0

    def test_reset_accepts_a_new_size(self, two_body, mirrored_cloud, unit_params):
        buffers = ParticleBuffers(two_body)
        buffers.step(unit_params)
        buffers.reset(mirrored_cloud)
        assert buffers.generation == 0
        assert buffers.active_index == 0
        assert buffers.num_bodies == len(mirrored_cloud)
        buffers.step(unit_params)
        assert len(buffers.current) == len(mirrored_cloud)

    def test_input_population_is_copied(self, two_body, unit_params):
        buffers = ParticleBuffers(two_body)
        buffers.run(unit_params, 2)
        assert two_body.positions[0, 0] == 0.0
        assert two_body.accelerations is None
