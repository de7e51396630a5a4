"""
Unit Tests for Kinematics Module
Tests slider-crank calculations, engine geometry and the stroke phase table.

Author: Mohith Sai Gorla
Date:   16-10-2026
"""

import pytest
import math
import numpy as np

from otto_cycle_simulator.exceptions import ValidationError
from otto_cycle_simulator.kinematics import (
    EngineGeometry,
    SliderCrank,
    StrokePhase,
    compression_ratio_from_volumes,
    is_combustion_active,
    is_exhaust_open,
    is_intake_open,
    stroke_phase,
)


class TestSliderCrank:
    """Test cases for SliderCrank class."""

    def setup_method(self):
        """Set up typical automotive engine dimensions (86 mm stroke)."""
        self.stroke = 0.086
        self.crank_radius = self.stroke / 2.0
        self.rod_length = 0.143
        self.sc = SliderCrank(self.crank_radius, self.rod_length)

    # ── Construction guards ───────────────────────────────────────────────

    def test_initialization(self):
        assert self.sc.r == self.crank_radius
        assert self.sc.l == self.rod_length
        assert self.sc.lambda_ratio == pytest.approx(
            self.crank_radius / self.rod_length, rel=1e-12
        )

    def test_invalid_zero_crank_radius(self):
        with pytest.raises(ValueError):
            SliderCrank(0.0, 0.143)

    def test_invalid_rod_shorter_than_crank(self):
        """Connecting rod shorter than crank radius causes lockup."""
        with pytest.raises(ValueError):
            SliderCrank(0.1, 0.05)

    def test_unusual_rod_ratio_warns(self):
        with pytest.warns(UserWarning, match="Rod ratio"):
            SliderCrank(0.043, 0.5)

    # ── Displacement ──────────────────────────────────────────────────────

    def test_displacement_at_tdc(self):
        assert abs(self.sc.displacement(0.0)) < 1e-12

    def test_displacement_at_bdc(self):
        y_bdc = self.sc.displacement(math.pi)
        assert abs(y_bdc - self.stroke) < 1e-10

    def test_displacement_range(self):
        for deg in range(0, 721):
            y = self.sc.displacement(math.radians(deg))
            assert (
                0.0 <= y <= self.stroke * 1.001
            ), f"Displacement {y*1e3:.4f} mm out of range at theta={deg} deg"

    def test_displacement_matches_manual_formula(self):
        """Spot-check exact formula at several angles."""
        lam = self.sc.lambda_ratio
        r = self.crank_radius
        for deg in [0, 45, 90, 135, 180, 270]:
            theta = math.radians(deg)
            D = max(0.0, 1.0 - lam**2 * math.sin(theta) ** 2)
            y_manual = r * ((1.0 - math.cos(theta)) + (1.0 / lam) * (1.0 - math.sqrt(D)))
            assert abs(self.sc.displacement(theta) - y_manual) < 1e-12

    # ── Velocity & acceleration ───────────────────────────────────────────

    def test_velocity_zero_at_dead_centres(self):
        assert abs(self.sc.velocity(0.0, 100.0)) < 1e-12
        assert abs(self.sc.velocity(math.pi, 100.0)) < 1e-8

    def test_velocity_near_max_at_90_degrees(self):
        omega = 100.0
        v_90 = self.sc.velocity(math.pi / 2.0, omega)
        assert v_90 > self.crank_radius * omega * 0.9

    def test_acceleration_at_tdc(self):
        """a(TDC) = r·omega^2·(1+lambda)."""
        omega = 314.16
        a_tdc = self.sc.acceleration(0.0, omega)
        a_theory = self.crank_radius * omega**2 * (1.0 + self.sc.lambda_ratio)
        assert a_tdc == pytest.approx(a_theory, rel=1e-9)

    def test_numerical_derivative_consistency(self):
        """Analytical velocity matches (dy/dtheta)*omega from finite differences."""
        omega = 100.0
        dtheta = 1.0e-6
        theta = math.pi / 4.0
        v_numerical = (
            self.sc.displacement(theta + dtheta) - self.sc.displacement(theta)
        ) / dtheta * omega
        v_analytical = self.sc.velocity(theta, omega)
        assert abs(v_numerical - v_analytical) < abs(v_analytical) * 0.001

    def test_acceleration_numerical_derivative(self):
        omega = 314.16
        dtheta = 1.0e-6
        theta = math.pi / 6.0
        a_numerical = (
            self.sc.velocity(theta + dtheta, omega) - self.sc.velocity(theta, omega)
        ) / dtheta * omega
        a_analytical = self.sc.acceleration(theta, omega)
        assert abs(a_numerical - a_analytical) < abs(a_analytical) * 0.005

    @pytest.mark.parametrize("degrees", [60.0, 90.0, 135.0, 270.0])
    def test_acceleration_central_difference(self, degrees):
        """Exact a(θ) matches dv/dθ·ω away from the dead centres."""
        sc = SliderCrank(0.043, 0.129)
        omega = 100.0
        dtheta = 1.0e-5
        theta = math.radians(degrees)
        a_numerical = (
            sc.velocity(theta + dtheta, omega) - sc.velocity(theta - dtheta, omega)
        ) / (2.0 * dtheta) * omega
        assert sc.acceleration(theta, omega) == pytest.approx(a_numerical, rel=1e-6)

    def test_acceleration_at_90_degrees(self):
        """a(90°) = −r·ω²·λ/√(1 − λ²) for the exact mechanism."""
        sc = SliderCrank(0.043, 0.129)
        lam = sc.lambda_ratio
        expected = -0.043 * 100.0**2 * lam / math.sqrt(1.0 - lam**2)
        assert sc.acceleration(math.pi / 2.0, 100.0) == pytest.approx(expected, rel=1e-9)

    def test_acceleration_at_bdc(self):
        omega = 314.16
        expected = self.crank_radius * omega**2 * (self.sc.lambda_ratio - 1.0)
        assert self.sc.acceleration(math.pi, omega) == pytest.approx(expected, rel=1e-9)


class TestEngineGeometry:
    """Derived volumes and per-angle queries for an 86 × 86 mm, 10.5:1 engine."""

    def setup_method(self):
        self.geo = EngineGeometry(86.0, 86.0, 10.5, cylinders=4)
        self.area = math.pi * 43.0**2  # mm²

    def test_displacement(self):
        assert self.geo.displacement == pytest.approx(self.area * 86.0 / 1000.0)
        assert self.geo.total_displacement == pytest.approx(4 * self.geo.displacement)
        assert self.geo.displacement_liters == pytest.approx(1.998, abs=1e-3)

    def test_clearance_and_max_volume(self):
        vd = self.geo.displacement
        assert self.geo.clearance_volume == pytest.approx(vd / 9.5)
        assert self.geo.max_cylinder_volume == pytest.approx(vd + vd / 9.5)
        ratio = compression_ratio_from_volumes(
            self.geo.max_cylinder_volume, self.geo.clearance_volume
        )
        assert ratio == pytest.approx(10.5)

    def test_default_rod_length(self):
        assert self.geo.connecting_rod_length == pytest.approx(129.0)

    def test_volume_at_tdc_is_clearance(self):
        assert self.geo.cylinder_volume(0.0) == pytest.approx(
            self.geo.clearance_volume, rel=1e-12
        )
        assert self.geo.cylinder_volume(360.0) == pytest.approx(
            self.geo.clearance_volume, rel=1e-9
        )

    def test_volume_at_bdc_is_max(self):
        assert self.geo.cylinder_volume(180.0) == pytest.approx(
            self.geo.max_cylinder_volume, rel=1e-9
        )

    def test_volume_never_below_clearance(self):
        for angle in np.arange(0.0, 720.5, 0.5):
            assert self.geo.cylinder_volume(float(angle)) >= self.geo.clearance_volume

    def test_piston_position_range(self):
        assert self.geo.piston_position(0.0) == pytest.approx(0.0, abs=1e-9)
        assert self.geo.piston_position(180.0) == pytest.approx(86.0, rel=1e-9)

    def test_surface_area_at_tdc(self):
        height = self.geo.clearance_volume * 1000.0 / self.area
        expected = (2.0 * self.area + math.pi * 86.0 * height) / 100.0
        assert self.geo.surface_area(0.0) == pytest.approx(expected, rel=1e-9)

    def test_surface_area_grows_with_volume(self):
        assert self.geo.surface_area(180.0) > self.geo.surface_area(90.0)
        assert self.geo.surface_area(90.0) > self.geo.surface_area(0.0)

    def test_mean_piston_speed(self):
        assert self.geo.mean_piston_speed(2000.0) == pytest.approx(2 * 0.086 * 2000 / 60)

    def test_velocity_sign_follows_stroke(self):
        assert self.geo.piston_velocity(90.0, 2000.0) > 0.0
        assert self.geo.piston_velocity(270.0, 2000.0) < 0.0

    def test_instantaneous_compression_ratio(self):
        assert self.geo.instantaneous_compression_ratio(0.0) == pytest.approx(10.5)
        assert self.geo.instantaneous_compression_ratio(180.0) == pytest.approx(1.0)

    def test_specifications(self):
        spec = self.geo.specifications()
        assert spec["displacement"] == 1998
        assert spec["bore_stroke_ratio"] == 1.0
        assert spec["cylinders"] == 4

    # ── Validation ────────────────────────────────────────────────────────

    def test_bore_out_of_range(self):
        with pytest.raises(ValidationError) as info:
            EngineGeometry(10.0, 86.0, 10.5)
        assert "bore" in info.value.fields
        assert "bore" in str(info.value)

    def test_all_violations_reported_together(self):
        with pytest.raises(ValidationError) as info:
            EngineGeometry(10.0, 500.0, 40.0, cylinders=20)
        assert set(info.value.fields) >= {
            "bore",
            "stroke",
            "compression_ratio",
            "cylinders",
        }

    def test_rod_shorter_than_stroke_rejected(self):
        with pytest.raises(ValidationError) as info:
            EngineGeometry(86.0, 86.0, 10.5, connecting_rod_length=80.0)
        assert info.value.fields == ["connecting_rod_length"]

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            EngineGeometry(float("nan"), 86.0, 10.5)


class TestStrokePhase:
    """Phase table boundaries are inclusive on the lower phase."""

    @pytest.mark.parametrize(
        "angle, phase",
        [
            (0.0, StrokePhase.INTAKE),
            (90.0, StrokePhase.INTAKE),
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
        assert stroke_phase(angle) is phase

    @pytest.mark.parametrize("angle", [-0.1, 720.1, 1000.0])
    def test_out_of_cycle_rejected(self, angle):
        with pytest.raises(ValueError):
            stroke_phase(angle)

    def test_valve_flags(self):
        assert is_intake_open(180.0)
        assert not is_intake_open(180.1)
        assert is_exhaust_open(540.1)
        assert not is_exhaust_open(540.0)

    def test_combustion_window(self):
        assert not is_combustion_active(360.0)
        assert is_combustion_active(360.1)
        assert is_combustion_active(370.0)
        assert not is_combustion_active(370.1)
        assert is_combustion_active(355.0, start_deg=350.0, duration_deg=20.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
