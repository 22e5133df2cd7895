"""Tests for the simulation engine: ordering, conservation, snapshots."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from pic1d.config import SimulationConfig
from pic1d.core.bases import StepResult
from pic1d.engine import SimulationEngine
from pic1d.errors import ConfigurationError, InjectionError
from pic1d.solvers import PSATDSolver, SolverKind

ALL_KINDS = ["fdtd", "pstd", "psatd"]


@pytest.fixture
def thermal_config_dict(sample_config_dict):
    """Warm electrons with a fixed seed."""
    sample_config_dict["seed"] = 42
    sample_config_dict["species"][0]["uth"] = [0.05, 0.05, 0.05]
    return sample_config_dict


class TestInitialization:
    def test_from_config(self, small_config, nx):
        engine = SimulationEngine(small_config)
        assert engine.iteration == 0
        assert engine.time == 0.0
        assert engine.solver_kind is SolverKind.FDTD
        assert len(engine.species) == 1
        assert engine.species[0].n_particles == nx * 4

    def test_from_mapping(self, sample_config_dict):
        engine = SimulationEngine(sample_config_dict)
        assert isinstance(engine.config, SimulationConfig)

    def test_initialize(self):
        engine = SimulationEngine.initialize(
            nx=16, box=1.6, dt=0.05,
            species=[{"name": "e", "m_q": -1.0, "ppc": 2}],
            solver="psatd",
        )
        assert isinstance(engine.solver, PSATDSolver)
        assert engine.dx == pytest.approx(0.1)
        assert engine.species[0].n_particles == 32

    def test_shared_geometry(self, small_config):
        engine = SimulationEngine(small_config)
        for sp in engine.species:
            assert (sp.nx, sp.dx, sp.dt) == (engine.nx, engine.dx, engine.dt)
        assert engine.fields.E.shape == (3, engine.nx)

    @pytest.mark.parametrize("override", [
        {"nx": 0},
        {"box": -1.0},
        {"dt": 0.0},
        {"solver": "yee"},
        {"boundary": "absorbing"},
    ])
    def test_invalid_configuration(self, sample_config_dict, override):
        sample_config_dict.update(override)
        with pytest.raises(ConfigurationError):
            SimulationEngine(sample_config_dict)

    def test_invalid_species(self):
        with pytest.raises(ConfigurationError):
            SimulationEngine.initialize(
                nx=16, box=1.6, dt=0.05, species=[{"name": "e", "m_q": -1.0, "ppc": 0}],
            )

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            SimulationEngine.initialize(nx=16, box=1.6, dt=-0.05)

    def test_custom_density_error(self):
        species = [{
            "name": "e", "m_q": -1.0, "ppc": 2,
            "density": {"type": "custom", "custom": lambda x: -1.0},
        }]
        with pytest.raises(InjectionError):
            SimulationEngine.initialize(nx=16, box=1.6, dt=0.05, species=species)

    def test_stability_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pic1d.engine"):
            SimulationEngine.initialize(nx=16, box=1.6, dt=0.2, solver="fdtd")
        assert "stability limit" in caplog.text

    def test_no_warning_for_psatd(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pic1d.engine"):
            SimulationEngine.initialize(nx=16, box=1.6, dt=0.2, solver="psatd")
        assert "stability limit" not in caplog.text


class TestIterate:
    def test_counters(self, small_config):
        engine = SimulationEngine(small_config)
        result = engine.iterate()
        assert isinstance(result, StepResult)
        assert result.iteration == 1
        assert engine.iteration == 1
        for _ in range(9):
            engine.iterate()
        assert engine.iteration == 10
        assert engine.time == pytest.approx(10 * small_config.dt)

    def test_step_result(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        result = engine.iterate()
        assert result.dt == engine.dt
        assert result.n_particles == engine.species[0].n_particles
        assert result.kinetic_energy > 0.0
        assert result.total_energy == pytest.approx(result.kinetic_energy + result.field_energy)

    @pytest.mark.parametrize("kind", ALL_KINDS)
    def test_zero_field_stasis(self, sample_config_dict, kind):
        sample_config_dict["solver"] = kind
        engine = SimulationEngine(sample_config_dict)
        before = engine.species[0].positions().copy()
        engine.run(30)
        np.testing.assert_allclose(engine.species[0].positions(), before, atol=1e-14)
        np.testing.assert_array_equal(engine.fields.E, 0.0)
        np.testing.assert_array_equal(engine.fields.B, 0.0)

    def test_deposit_ignores_field_mutation(self, thermal_config_dict, rng):
        """Changing E/B between deposit and field advance leaves the sources alone."""
        engine = SimulationEngine(thermal_config_dict)
        twin = SimulationEngine(thermal_config_dict)

        engine.deposit()
        twin.deposit()
        rho = engine.fields.rho.copy()
        J = engine.fields.J.copy()

        engine.solver.set_component("Ex", rng.standard_normal(engine.nx))
        engine.solver.set_component("Bz", rng.standard_normal(engine.nx))

        np.testing.assert_array_equal(engine.fields.rho, rho)
        np.testing.assert_array_equal(engine.fields.J, J)
        np.testing.assert_array_equal(engine.fields.rho, twin.fields.rho)

        engine.advance_fields()
        engine.push()
        np.testing.assert_array_equal(engine.fields.rho, rho)

    def test_deposit_zeroes_accumulators(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        engine.deposit()
        rho = engine.fields.rho.copy()
        engine.deposit()
        np.testing.assert_allclose(engine.fields.rho, rho)

    def test_seeded_runs_are_identical(self, thermal_config_dict):
        a = SimulationEngine(thermal_config_dict)
        b = SimulationEngine(thermal_config_dict)
        a.run(10)
        b.run(10)
        np.testing.assert_array_equal(a.fields.E, b.fields.E)
        np.testing.assert_array_equal(a.species[0].velocities(), b.species[0].velocities())

    def test_run_records_component(self, small_config, nx):
        engine = SimulationEngine(small_config)
        series = engine.run(5, record="Ey")
        assert series.shape == (5, nx)
        assert engine.run(2) is None
        assert engine.iteration == 7

    def test_run_rejects_unknown_component(self, small_config):
        engine = SimulationEngine(small_config)
        with pytest.raises(ValueError, match="component"):
            engine.run(1, record="Ew")
        assert engine.iteration == 0


class TestConservation:
    def test_total_charge(self, nx):
        engine = SimulationEngine.initialize(
            nx=nx, box=3.2, dt=0.05,
            species=[{"name": "e", "m_q": -1.0, "ppc": 8, "density": {"n": 2.0}}],
        )
        sp = engine.species[0]
        total = engine.charge_density().sum()
        assert total == pytest.approx(sp.q * sp.n_particles, rel=1e-12)
        assert total == pytest.approx(-2.0 * nx, rel=1e-12)

    @pytest.mark.parametrize("kind", ["fdtd", "psatd"])
    def test_gauss_law_residual_is_invariant(self, thermal_config_dict, kind):
        thermal_config_dict["solver"] = kind
        engine = SimulationEngine(thermal_config_dict)
        engine.iterate()
        first = engine.gauss_residual()
        engine.run(30)
        assert engine.gauss_residual() == pytest.approx(first, abs=1e-10)

    @pytest.mark.parametrize("kind", ["fdtd", "psatd"])
    def test_gauss_law_residual_with_reflective_walls(self, kind):
        engine = SimulationEngine.initialize(
            nx=16, box=1.6, dt=0.05, solver=kind, boundary="reflective",
            species=[{"name": "beam", "m_q": -1.0, "ppc": 4, "ufl": [0.5, 0.0, 0.0]}],
        )
        engine.iterate()
        first = engine.gauss_residual()
        engine.run(20)
        assert engine.species[0].n_particles == 64
        assert engine.gauss_residual() == pytest.approx(first, abs=1e-10)

    def test_open_boundary_leaves_uncompensated_charge(self):
        # Particles leaving through an open wall drop their last-step current
        engine = SimulationEngine.initialize(
            nx=16, box=1.6, dt=0.05, boundary="open",
            species=[{"name": "beam", "m_q": -1.0, "ppc": 4, "ufl": [0.5, 0.0, 0.0]}],
        )
        engine.iterate()
        first = engine.gauss_residual()
        engine.run(10)
        assert engine.species[0].n_particles < 64
        assert engine.gauss_residual() > first + 0.1

    def test_charge_is_preserved_by_periodic_push(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        n0 = engine.species[0].n_particles
        total0 = engine.charge_density().sum()
        engine.run(40)
        sp = engine.species[0]
        assert sp.n_particles == n0
        assert sp.particles.live_ix.min() >= 0
        assert sp.particles.live_ix.max() < engine.nx
        assert engine.charge_density().sum() == pytest.approx(total0, rel=1e-12)

    def test_neutral_plasma(self):
        engine = SimulationEngine.initialize(
            nx=16, box=1.6, dt=0.05,
            species=[
                {"name": "electrons", "m_q": -1.0, "ppc": 4},
                {"name": "ions", "m_q": 1836.0, "ppc": 4},
            ],
        )
        np.testing.assert_allclose(engine.charge_density(), 0.0, atol=1e-12)
        assert np.all(engine.charge_density("ions") > 0.0)
        assert np.all(engine.charge_density("electrons") < 0.0)


class TestBoundaries:
    def test_open_boundary_loses_particles(self):
        engine = SimulationEngine.initialize(
            nx=16, box=1.6, dt=0.05, boundary="open",
            species=[{"name": "beam", "m_q": -1.0, "ppc": 4, "ufl": [0.5, 0.0, 0.0]}],
        )
        n0 = engine.species[0].n_particles
        engine.run(10)
        sp = engine.species[0]
        assert 0 < sp.n_particles < n0
        assert sp.particles.capacity >= n0

    def test_reflective_boundary_keeps_particles(self):
        engine = SimulationEngine.initialize(
            nx=16, box=1.6, dt=0.05, boundary="reflective",
            species=[{"name": "beam", "m_q": -1.0, "ppc": 4, "ufl": [0.5, 0.0, 0.0]}],
        )
        n0 = engine.species[0].n_particles
        engine.run(10)
        sp = engine.species[0]
        assert sp.n_particles == n0
        assert np.any(sp.velocities()[:, 0] < 0.0)

    def test_ramp_injection(self):
        engine = SimulationEngine.initialize(
            nx=20, box=20.0, dt=0.5,
            species=[{
                "name": "e", "m_q": -1.0, "ppc": 20,
                "density": {"type": "ramp", "start": 0.0, "end": 20.0, "ramp": [1.0, 3.0]},
            }],
        )
        counts = np.bincount(engine.species[0].particles.live_ix, minlength=20)
        assert np.all(np.diff(counts) > 0)


class TestSnapshots:
    def test_field_is_a_copy(self, small_config):
        engine = SimulationEngine(small_config)
        ey = engine.field("Ey")
        ey[:] = 5.0
        np.testing.assert_array_equal(engine.field("Ey"), 0.0)

    def test_seed_mode_on_nodes(self, small_config, nx):
        engine = SimulationEngine(small_config)
        engine.seed_mode("Ey", 2, 1e-3)
        x = np.arange(nx) * engine.dx
        expected = 1e-3 * np.cos(2 * np.pi * 2 * x / engine.box)
        np.testing.assert_allclose(engine.field("Ey"), expected)
        assert engine.field_energy() > 0.0

    def test_seed_mode_on_half_nodes(self, small_config, nx):
        engine = SimulationEngine(small_config)
        engine.seed_mode("Bz", 1, 2.0)
        x = (np.arange(nx) + 0.5) * engine.dx
        np.testing.assert_allclose(engine.field("Bz"), 2.0 * np.cos(2 * np.pi * x / engine.box))

    def test_kinetic_energy_per_species(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        assert engine.kinetic_energy() == {"electrons": 0.0}
        engine.iterate()
        assert engine.kinetic_energy()["electrons"] > 0.0

    def test_phase_space(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        pha = engine.phase_space("electrons", nbins=(16, 16))
        assert pha.shape == (16, 16)

    def test_unknown_species(self, small_config):
        engine = SimulationEngine(small_config)
        with pytest.raises(KeyError):
            engine.phase_space("ions")
        with pytest.raises(KeyError):
            engine.charge_density("ions")


class TestSolverSwitch:
    def test_switch_keeps_fields(self, small_config):
        engine = SimulationEngine(small_config)
        engine.seed_mode("Ey", 1, 1e-3)
        ey = engine.field("Ey")

        engine.switch_solver("psatd")

        assert isinstance(engine.solver, PSATDSolver)
        assert engine.solver.fields is engine.fields
        np.testing.assert_array_equal(engine.field("Ey"), ey)
        engine.iterate()
        assert engine.iteration == 1

    def test_switch_rejects_unknown_kind(self, small_config):
        engine = SimulationEngine(small_config)
        with pytest.raises(ValueError):
            engine.switch_solver("yee")
        assert engine.solver_kind is SolverKind.FDTD


class TestCheckpoint:
    def test_restart_reproduces_run(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        engine.run(5)
        saved = engine.checkpoint()
        ey_first = engine.run(10, record="Ey")
        x_first = engine.species[0].positions()

        engine.restart(saved)
        assert engine.iteration == 5
        ey_second = engine.run(10, record="Ey")
        np.testing.assert_array_equal(ey_second, ey_first)
        np.testing.assert_array_equal(engine.species[0].positions(), x_first)
        assert engine.iteration == 15

    def test_snapshot_is_a_copy(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        engine.iterate()
        saved = engine.checkpoint()
        ix = saved["species"]["electrons"]["ix"].copy()
        ex = saved["fields"]["E"].copy()
        engine.run(10)
        np.testing.assert_array_equal(saved["species"]["electrons"]["ix"], ix)
        np.testing.assert_array_equal(saved["fields"]["E"], ex)

    def test_restart_into_fresh_engine(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        engine.switch_solver("psatd")
        engine.run(8)
        saved = engine.checkpoint()

        other = SimulationEngine(thermal_config_dict)
        other.restart(saved)
        assert other.solver_kind is SolverKind.PSATD
        assert other.time == pytest.approx(engine.time)
        engine.run(4)
        other.run(4)
        np.testing.assert_array_equal(other.field("Ex"), engine.field("Ex"))
        assert other.kinetic_energy() == engine.kinetic_energy()

    def test_restart_after_particle_loss(self):
        engine = SimulationEngine.initialize(
            nx=16, box=1.6, dt=0.05, boundary="open",
            species=[{"name": "beam", "m_q": -1.0, "ppc": 4, "ufl": [0.5, 0.0, 0.0]}],
        )
        saved = engine.checkpoint()
        engine.run(10)
        assert engine.species[0].n_particles < 64
        engine.restart(saved)
        assert engine.species[0].n_particles == 64
        assert engine.iteration == 0

    def test_missing_species(self, thermal_config_dict):
        engine = SimulationEngine(thermal_config_dict)
        saved = engine.checkpoint()
        saved["species"] = {}
        with pytest.raises(KeyError, match="electrons"):
            engine.restart(saved)
