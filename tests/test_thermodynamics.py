"""
Cycle State Generator Test Suite
Unit, boundary and adversarial tests for the thermodynamics module.

Author: Mohith Sai Gorla
Date:   16-10-2026

Test categories
---------------
TestIdealGasHelpers      : mass_from_state, theoretical Otto efficiency
TestWoschniHeatTransfer  : coefficient, per-degree heat flow
TestCycleShape           : record count, spacing, boundaries, phases
TestPhaseModels          : intake, compression, combustion, expansion, exhaust
TestHeatTransferPerStep  : rate and per-step heat transfer
TestHeatRelease          : rate window, cumulative total
TestRunControl           : progress, cancellation, determinism, step validation
"""

import math
import threading

import numpy as np
import pytest

from otto_cycle_simulator.engine_config import CycleCalibration, EngineParameters
from otto_cycle_simulator.exceptions import (
    ComputationError,
    SimulationCancelled,
    ValidationError,
)
from otto_cycle_simulator.kinematics import EngineGeometry, StrokePhase
from otto_cycle_simulator.thermodynamics import (
    FIELD_PRECISION,
    WIRE_KEYS,
    CycleStateGenerator,
    WoschniHeatTransfer,
    generate_cycle,
    mass_from_state,
    records_to_arrays,
    theoretical_otto_efficiency,
)

# ── Helpers ───────────────────────────────────────────────────────────────────

P_IN = 101_325.0
T_IN = 298.0
CR = 10.5
HAM_75 = 1.5 + 2.5 * 0.75


def index_of(angle: float, step: float = 0.1) -> int:
    return int(round(angle / step))


class TestIdealGasHelpers:
    def test_mass_from_state(self):
        m = mass_from_state(P_IN, 1.0e-3, 300.0)
        assert m == pytest.approx(P_IN * 1.0e-3 / (287.0 * 300.0), rel=1e-12)

    def test_mass_zero_for_non_positive_temperature(self):
        assert mass_from_state(P_IN, 1.0e-3, 0.0) == 0.0

    def test_theoretical_otto_efficiency(self):
        assert theoretical_otto_efficiency(CR) == pytest.approx(
            1.0 - 1.0 / CR**0.4, rel=1e-12
        )

    def test_efficiency_increases_with_compression_ratio(self):
        assert theoretical_otto_efficiency(16.5) > theoretical_otto_efficiency(8.0)


class TestWoschniHeatTransfer:
    def setup_method(self):
        self.ht = WoschniHeatTransfer(86.0)

    def test_coefficient_formula(self):
        h = self.ht.coefficient(101.325, 298.0, 10.0)
        expected = 3.26 * 0.086**-0.2 * 101.325**0.8 * 298.0**-0.55 * 10.0**0.8
        assert h == pytest.approx(expected, rel=1e-12)

    def test_minimum_velocity_applied(self):
        assert self.ht.coefficient(100.0, 500.0, 0.0) == pytest.approx(
            self.ht.coefficient(100.0, 500.0, 0.5)
        )

    def test_invalid_state_rejected(self):
        with pytest.raises(ValueError):
            self.ht.coefficient(0.0, 300.0, 5.0)
        with pytest.raises(ValueError):
            self.ht.coefficient(100.0, -1.0, 5.0)

    def test_invalid_bore_rejected(self):
        with pytest.raises(ValueError):
            WoschniHeatTransfer(0.0)

    def test_rate_sign_follows_wall_temperature(self):
        assert self.ht.rate_per_degree(500.0, 0.01, 1000.0, 2000.0) > 0.0
        assert self.ht.rate_per_degree(500.0, 0.01, 300.0, 2000.0) < 0.0

    def test_rate_per_degree_conversion(self):
        # h·A·ΔT over 1/(6·N) seconds
        rate = self.ht.rate_per_degree(500.0, 0.01, 1400.0, 2000.0)
        assert rate == pytest.approx(500.0 * 0.01 * 1000.0 / 12_000.0)


class TestCycleShape:
    """Structural properties of a default 0.1° cycle."""

    @classmethod
    def setup_class(cls):
        cls.params = EngineParameters()
        cls.geometry = EngineGeometry.from_parameters(cls.params)
        cls.cycle = CycleStateGenerator(cls.params).generate()

    def test_record_count(self):
        assert len(self.cycle) == 7201

    def test_cycle_is_immutable_tuple(self):
        assert isinstance(self.cycle, tuple)
        with pytest.raises(AttributeError):
            self.cycle[0].pressure = 0.0

    def test_endpoints(self):
        assert self.cycle[0].angle == 0.0
        assert self.cycle[-1].angle == 720.0
        assert self.cycle[0].cycle_progress == 0.0
        assert self.cycle[-1].cycle_progress == 100.0

    def test_angles_evenly_spaced(self):
        angles = np.array([r.angle for r in self.cycle])
        assert np.all(np.diff(angles) > 0.0)
        assert np.allclose(np.diff(angles), 0.1, atol=1e-6)

    def test_volume_floor(self):
        vc = round(self.geometry.clearance_volume, 3)
        assert all(r.volume >= vc for r in self.cycle)

    def test_volume_at_dead_centres(self):
        assert self.cycle[0].volume == pytest.approx(self.geometry.clearance_volume, abs=1e-3)
        assert self.cycle[index_of(180)].volume == pytest.approx(
            self.geometry.max_cylinder_volume, abs=1e-3
        )

    @pytest.mark.parametrize(
        "angle, phase",
        [
            (180.0, StrokePhase.INTAKE),
            (180.1, StrokePhase.COMPRESSION),
            (360.0, StrokePhase.COMPRESSION),
            (360.1, StrokePhase.POWER),
            (540.0, StrokePhase.POWER),
            (540.1, StrokePhase.EXHAUST),
            (720.0, StrokePhase.EXHAUST),
        ],
    )
    def test_phase_boundaries(self, angle, phase):
        assert self.cycle[index_of(angle)].stroke_phase is phase

    def test_flags_follow_phase(self):
        for r in self.cycle:
            assert r.intake_valve_open == (r.stroke_phase is StrokePhase.INTAKE)
            assert r.exhaust_valve_open == (r.stroke_phase is StrokePhase.EXHAUST)
            assert r.combustion_active == (360.0 < r.angle <= 370.0)

    def test_output_rounding(self):
        r = self.cycle[index_of(123.4)]
        for name, places in FIELD_PRECISION.items():
            value = getattr(r, name)
            assert value == round(value, places), name

    def test_to_dict_wire_keys(self):
        d = self.cycle[0].to_dict()
        assert list(d) == list(WIRE_KEYS.values())
        assert d["strokePhase"] == "Intake"
        assert d["intakeValveOpen"] is True

    def test_records_to_arrays(self):
        arrays = records_to_arrays(self.cycle)
        assert arrays["pressure"].shape == (7201,)
        assert arrays["angle"][-1] == 720.0
        assert "stroke_phase" not in arrays


class TestPhaseModels:
    """Closed-form values in each phase for the default spark engine."""

    @classmethod
    def setup_class(cls):
        cls.params = EngineParameters()
        cls.geometry = EngineGeometry.from_parameters(cls.params)
        cls.cycle = generate_cycle(cls.params)
        cls.p_c = P_IN * CR**1.4
        cls.t_c = T_IN * CR**0.4

    def record(self, angle):
        return self.cycle[index_of(angle)]

    def test_intake_isobaric(self):
        for angle in (0.0, 45.0, 180.0):
            r = self.record(angle)
            assert r.pressure == pytest.approx(P_IN / 1e5, abs=1e-3)
            assert r.temperature == pytest.approx(T_IN)

    def test_intake_mass_from_ideal_gas(self):
        r = self.record(90.0)
        expected = P_IN * r.volume * 1e-6 / (287.0 * T_IN)
        assert r.mass_in_cylinder == pytest.approx(expected, rel=1e-4)

    def test_trapped_mass_held_through_compression_and_power(self):
        trapped = self.record(180.0).mass_in_cylinder
        for angle in (200.0, 360.0, 365.0, 450.0, 540.0):
            assert self.record(angle).mass_in_cylinder == trapped

    def test_compression_end_state(self):
        r = self.record(360.0)
        assert r.pressure == pytest.approx(self.p_c / 1e5, abs=2e-3)
        assert r.temperature == pytest.approx(self.t_c, abs=0.1)
        assert r.compression_ratio == pytest.approx(CR, abs=1e-3)

    def test_compression_is_isentropic(self):
        r = self.record(270.0)
        ratio = self.geometry.max_cylinder_volume / self.geometry.cylinder_volume(270.0)
        assert r.pressure == pytest.approx(P_IN * ratio**1.4 / 1e5, abs=2e-3)

    def test_combustion_ramp(self):
        mid = self.record(365.0)
        k = 1.0 + (HAM_75 - 1.0) * 0.5
        assert mid.pressure == pytest.approx(self.p_c * k / 1e5, abs=2e-3)
        assert mid.temperature == pytest.approx(self.t_c * k, abs=0.1)

    def test_peak_at_end_of_combustion(self):
        peak = max(self.cycle, key=lambda r: r.pressure)
        assert 360.0 < peak.angle <= 370.0
        assert peak.pressure == pytest.approx(self.p_c * HAM_75 / 1e5, abs=2e-3)
        assert max(r.temperature for r in self.cycle) == pytest.approx(
            self.t_c * HAM_75, abs=0.1
        )

    def test_expansion_polytropic(self):
        r = self.record(450.0)
        e = self.geometry.cylinder_volume(450.0) / self.geometry.clearance_volume
        assert r.pressure == pytest.approx(self.p_c * HAM_75 / e**1.35 / 1e5, abs=2e-3)
        assert r.temperature == pytest.approx(self.t_c * HAM_75 / e**0.35, abs=0.1)

    def test_exhaust_state(self):
        trapped = self.record(180.0).mass_in_cylinder
        for angle in (540.1, 600.0, 720.0):
            r = self.record(angle)
            assert r.pressure == pytest.approx(1.05 * P_IN / 1e5, abs=1e-3)
            assert r.temperature >= 1.8 * T_IN - 0.05
            assert r.mass_in_cylinder == pytest.approx(0.95 * trapped, abs=1e-8)

    def test_exhaust_temperature_decays_to_floor(self):
        assert self.record(720.0).temperature == pytest.approx(1.8 * T_IN, abs=0.1)
        assert self.record(540.1).temperature > self.record(560.0).temperature

    def test_density_is_mass_over_volume(self):
        r = self.record(300.0)
        assert r.density == pytest.approx(
            r.mass_in_cylinder / (r.volume * 1e-6), rel=1e-3
        )

    def test_gas_velocity_proxy(self):
        r = self.record(90.0)
        assert r.gas_velocity == pytest.approx(2.28 * abs(r.piston_velocity), abs=2e-3)
        assert r.mean_piston_speed == pytest.approx(2 * 0.086 * 2000 / 60, abs=1e-3)

    def test_heat_transfer_sign(self):
        # Intake gas is cooler than the 400 K wall, burnt gas is hotter
        assert self.record(90.0).heat_transfer_rate < 0.0
        assert self.record(370.0).heat_transfer_rate > 0.0
        assert self.record(90.0).heat_transfer < 0.0
        assert self.record(370.0).heat_transfer > 0.0
        assert all(r.heat_transfer_coefficient > 0.0 for r in self.cycle)


class TestHeatTransferPerStep:
    """The record carries the J/° rate and the energy moved over its step."""

    @pytest.mark.parametrize("step", [0.1, 1.0, 4.0])
    def test_step_value_is_rate_times_step(self, step):
        cycle = generate_cycle(EngineParameters(), step_size=step)
        # Both fields are rounded to 4 decimals on output
        tolerance = 1e-4 * (step + 1.0)
        for r in cycle:
            assert r.heat_transfer == pytest.approx(
                r.heat_transfer_rate * step, abs=tolerance
            )

    def test_rate_matches_woschni_conversion(self):
        params = EngineParameters()
        geometry = EngineGeometry.from_parameters(params)
        r = generate_cycle(params, step_size=1.0)[370]
        ht = WoschniHeatTransfer(params.bore)
        h = ht.coefficient(
            r.pressure * 100.0, r.temperature, r.mean_piston_speed + r.gas_velocity
        )
        expected = h * geometry.surface_area(370.0) * 1e-4 * (r.temperature - 400.0) / (
            6.0 * params.engine_speed
        )
        assert r.heat_transfer_rate == pytest.approx(expected, rel=1e-3)

    def test_rate_independent_of_step(self):
        params = EngineParameters()
        fine = generate_cycle(params, step_size=0.1)
        coarse = generate_cycle(params, step_size=1.0)
        assert coarse[370].heat_transfer_rate == fine[3700].heat_transfer_rate
        assert coarse[370].heat_transfer == pytest.approx(
            10.0 * fine[3700].heat_transfer, rel=2e-3
        )


class TestHeatRelease:
    @classmethod
    def setup_class(cls):
        cls.cycle = generate_cycle(EngineParameters())

    def test_rate_only_in_window(self):
        for r in self.cycle:
            if r.combustion_active:
                assert r.heat_release == pytest.approx((HAM_75 - 1.0) * 1000.0)
            else:
                assert r.heat_release == 0.0

    def test_cumulative_non_decreasing(self):
        totals = [r.heat_release_total for r in self.cycle]
        assert all(b >= a for a, b in zip(totals, totals[1:]))

    def test_cumulative_constant_outside_window(self):
        before = {r.heat_release_total for r in self.cycle if r.angle <= 360.0}
        after = {r.heat_release_total for r in self.cycle if r.angle >= 370.0}
        assert before == {0.0}
        assert len(after) == 1

    def test_cumulative_total(self):
        # 100 steps of 0.1° at (HAM − 1)·1000 J/°
        assert self.cycle[-1].heat_release_total == pytest.approx(
            (HAM_75 - 1.0) * 1000.0 * 10.0, abs=0.01
        )


class TestRunControl:
    def setup_method(self):
        self.params = EngineParameters()
        self.generator = CycleStateGenerator(self.params)

    def test_deterministic(self):
        assert self.generator.generate() == CycleStateGenerator(self.params).generate()

    def test_coarse_step(self):
        cycle = self.generator.generate(step_size=1.0)
        assert len(cycle) == 721
        assert cycle[-1].angle == 720.0

    def test_coarse_step_matches_fine_on_shared_angles(self):
        fine = self.generator.generate(step_size=0.5)
        coarse = self.generator.generate(step_size=1.0)
        assert coarse[90].pressure == fine[180].pressure
        assert coarse[90].volume == fine[180].volume

    @pytest.mark.parametrize("step", [0.7, 0.0, -0.1, float("nan")])
    def test_invalid_step_rejected(self, step):
        with pytest.raises(ValidationError):
            self.generator.generate(step_size=step)

    def test_progress_reported_every_ten_degrees(self):
        reports = []
        self.generator.generate(step_size=1.0, progress_callback=reports.append)
        assert len(reports) == 73
        assert reports[0] == 0.0
        assert reports[-1] == 100.0
        assert reports == sorted(reports)

    def test_cancellation(self):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(SimulationCancelled):
            self.generator.generate(cancel_event=cancel)

    def test_cancellation_midway(self):
        cancel = threading.Event()

        def on_progress(pct):
            if pct >= 50.0:
                cancel.set()

        with pytest.raises(SimulationCancelled, match="crank angle"):
            self.generator.generate(
                step_size=1.0, progress_callback=on_progress, cancel_event=cancel
            )

    def test_non_finite_state_raises(self):
        calibration = CycleCalibration(heat_addition_base=1.0e308)
        with pytest.raises(ComputationError) as info:
            CycleStateGenerator(self.params, calibration).generate(step_size=1.0)
        assert 360.0 < info.value.angle <= 370.0
        assert not math.isfinite(info.value.value)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
