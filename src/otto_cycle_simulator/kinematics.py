"""
Kinematics Module
Engine geometry, slider-crank piston motion and the four-stroke phase table.

Author: Mohith Sai Gorla
Date:   16-10-2026

Mathematical Basis
------------------
Slider-crank notation
    r  = crank radius = stroke / 2              [m]
    l  = connecting rod length                  [m]
    λ  = r / l  (crank-to-rod ratio)
    θ  = crank angle from TDC                   [rad]
    ω  = dθ/dt  (angular velocity = 2π·N/60)    [rad/s]

Exact trigonometric relations
    y(θ)  = r [(1 − cos θ) + (1/λ)(1 − √(1 − λ² sin² θ))]
    v(θ)  = r ω sin θ · [1 + λ cos θ / √(1 − λ² sin² θ)]
    a(θ)  = r ω² [cos θ + λ (cos 2θ + λ² sin⁴ θ) / (1 − λ² sin² θ)^(3/2)]

Cylinder volume  V(θ) = Vc + (π B²/4) · y(θ),  floored at Vc.

Phase table (crank angle in degrees, 0° = TDC at start of intake)
    Intake       [0, 180]
    Compression  (180, 360]
    Power        (360, 540]   combustion sub-phase (360, 370]
    Exhaust      (540, 720]

References
----------
Heywood, J.B. (1988). Internal Combustion Engine Fundamentals, §2.2.
"""

import math
import warnings
from enum import Enum
from typing import Dict, List, Optional

from .exceptions import ValidationError

_MM_TO_M = 1.0e-3
_MM3_TO_CM3 = 1.0e-3
_MM2_TO_CM2 = 1.0e-2

# Bounds accepted for geometry-only use (wider than the simulation request)
GEOMETRY_RANGES = {
    "bore": (30.0, 200.0),  # mm
    "stroke": (30.0, 200.0),  # mm
    "compression_ratio": (6.0, 22.0),
    "cylinders": (1, 16),
}


class SliderCrank:
    """Exact slider-crank mechanism kinematics (SI units).

    Attributes
    ----------
    r            : float  Crank radius (= stroke / 2)  [m]
    l            : float  Connecting rod length         [m]
    lambda_ratio : float  λ = r / l                     [dimensionless]
    """

    def __init__(self, crank_radius: float, connecting_rod_length: float) -> None:
        """
        Raises
        ------
        ValueError
            If crank_radius ≤ 0 or connecting_rod_length ≤ crank_radius
            (mechanism would lock up).

        Warns
        -----
        UserWarning
            If λ is outside the typical automotive range [0.22, 0.40].
        """
        if crank_radius <= 0.0:
            raise ValueError(f"crank_radius must be > 0 m, got {crank_radius}")
        if connecting_rod_length <= crank_radius:
            raise ValueError(
                f"connecting_rod_length ({connecting_rod_length} m) must be > "
                f"crank_radius ({crank_radius} m); otherwise mechanism locks up."
            )

        self.r = crank_radius
        self.l = connecting_rod_length
        self.lambda_ratio = crank_radius / connecting_rod_length

        _LAMBDA_WARN_LOW = 0.22
        _LAMBDA_WARN_HIGH = 0.40
        if not (_LAMBDA_WARN_LOW <= self.lambda_ratio <= _LAMBDA_WARN_HIGH):
            warnings.warn(
                f"Rod ratio λ = {self.lambda_ratio:.4f} is outside the typical "
                f"automotive range [{_LAMBDA_WARN_LOW}, {_LAMBDA_WARN_HIGH}].",
                stacklevel=3,
            )

    def _discriminant(self, sin_theta: float) -> float:
        """D = 1 − λ² sin² θ, clamped to [0, 1] against rounding."""
        d = 1.0 - self.lambda_ratio**2 * sin_theta**2
        return max(0.0, min(1.0, d))

    def displacement(self, theta: float) -> float:
        """Piston displacement from TDC  y(θ)  [m],  y(0) = 0,  y(π) = stroke."""
        sin_theta = math.sin(theta)
        sqrt_D = math.sqrt(self._discriminant(sin_theta))

        # 1 − cos θ = 2 sin²(θ/2); (1 − √D)/λ rationalised to λ sin²θ / (1 + √D)
        term1 = 2.0 * math.sin(theta / 2.0) ** 2
        term2 = (self.lambda_ratio * sin_theta**2) / (1.0 + sqrt_D)
        return self.r * (term1 + term2)

    def velocity(self, theta: float, omega: float) -> float:
        """Piston velocity  v = dy/dθ · ω  [m/s]  (positive = away from TDC)."""
        sin_theta = math.sin(theta)
        D = self._discriminant(sin_theta)
        if D < 1e-14:
            return 0.0
        correction = 1.0 + (self.lambda_ratio * math.cos(theta)) / math.sqrt(D)
        return self.r * omega * sin_theta * correction

    def acceleration(self, theta: float, omega: float) -> float:
        """Piston acceleration at constant ω  [m/s²].

        Second derivative of y(θ) times ω².  Expanding the square root to first
        order in λ gives the familiar two-harmonic approximation.
        """
        sin_theta = math.sin(theta)
        D = self._discriminant(sin_theta)
        if D < 1e-14:
            return self.r * omega**2 * math.cos(theta)
        D_3_2 = D * math.sqrt(D)
        return self.r * omega**2 * (
            math.cos(theta)
            + self.lambda_ratio
            * (math.cos(2.0 * theta) + self.lambda_ratio**2 * sin_theta**4)
            / D_3_2
        )


# ── Engine geometry ───────────────────────────────────────────────────────────


class EngineGeometry:
    """Geometry model of one engine: derived volumes and per-angle queries.

    Inputs are in mm; volumes are reported in cm³, areas in cm², piston
    position in mm and kinematics in m/s, m/s².  Derived values are computed
    once; a parameter change builds a new EngineGeometry.

    Attributes
    ----------
    displacement        : cm³  swept volume of one cylinder
    total_displacement  : cm³  all cylinders
    clearance_volume    : cm³  Vc = Vd / (CR − 1)
    max_cylinder_volume : cm³  Vd + Vc
    """

    def __init__(
        self,
        bore: float,
        stroke: float,
        compression_ratio: float,
        connecting_rod_length: Optional[float] = None,
        cylinders: int = 1,
    ) -> None:
        """
        Raises
        ------
        ValidationError
            Listing every geometry bound that is violated.
        """
        if connecting_rod_length is None:
            connecting_rod_length = stroke * 1.5

        self.bore = bore
        self.stroke = stroke
        self.compression_ratio = compression_ratio
        self.connecting_rod_length = connecting_rod_length
        self.cylinders = cylinders
        self._validate()

        self.piston_area_mm2 = math.pi * (bore / 2.0) ** 2
        self.displacement = self.piston_area_mm2 * stroke * _MM3_TO_CM3
        self.total_displacement = self.displacement * cylinders
        self.clearance_volume = self.displacement / (compression_ratio - 1.0)
        self.max_cylinder_volume = self.displacement + self.clearance_volume

        self.slider_crank = SliderCrank(
            stroke / 2.0 * _MM_TO_M, connecting_rod_length * _MM_TO_M
        )

    @classmethod
    def from_parameters(cls, params) -> "EngineGeometry":
        """Build from an EngineParameters instance."""
        return cls(
            bore=params.bore,
            stroke=params.stroke,
            compression_ratio=params.compression_ratio,
            connecting_rod_length=params.connecting_rod_length,
            cylinders=params.cylinders,
        )

    def _validate(self) -> None:
        errors: List[str] = []
        fields: List[str] = []
        values = {
            "bore": self.bore,
            "stroke": self.stroke,
            "compression_ratio": self.compression_ratio,
            "cylinders": self.cylinders,
        }
        for name, value in values.items():
            low, high = GEOMETRY_RANGES[name]
            if not math.isfinite(value):
                errors.append(f"{name} must be finite, got {value}")
                fields.append(name)
            elif not (low <= value <= high):
                errors.append(f"{name} must be between {low:g}-{high:g}, got {value:g}")
                fields.append(name)

        rod = self.connecting_rod_length
        if not math.isfinite(rod):
            errors.append(f"connecting_rod_length must be finite, got {rod}")
            fields.append("connecting_rod_length")
        elif math.isfinite(self.stroke) and rod < self.stroke:
            errors.append(
                f"connecting_rod_length ({rod:g} mm) must be greater than "
                f"stroke ({self.stroke:g} mm)"
            )
            fields.append("connecting_rod_length")

        if errors:
            raise ValidationError(errors, fields, prefix="Geometry validation failed")

    # ── Per-angle queries ─────────────────────────────────────────────────

    def piston_position(self, crank_angle: float) -> float:
        """Piston distance from TDC  [mm]."""
        theta = math.radians(crank_angle)
        return self.slider_crank.displacement(theta) / _MM_TO_M

    def cylinder_volume(self, crank_angle: float) -> float:
        """Instantaneous cylinder volume  [cm³],  never below clearance."""
        swept = self.piston_area_mm2 * self.piston_position(crank_angle) * _MM3_TO_CM3
        return max(self.clearance_volume + swept, self.clearance_volume)

    def piston_velocity(self, crank_angle: float, engine_speed: float) -> float:
        """Piston velocity  [m/s]."""
        omega = 2.0 * math.pi * engine_speed / 60.0
        return self.slider_crank.velocity(math.radians(crank_angle), omega)

    def piston_acceleration(self, crank_angle: float, engine_speed: float) -> float:
        """Piston acceleration  [m/s²]."""
        omega = 2.0 * math.pi * engine_speed / 60.0
        return self.slider_crank.acceleration(math.radians(crank_angle), omega)

    def surface_area(self, crank_angle: float) -> float:
        """Heat-transfer area: head + piston crown + exposed liner  [cm²]."""
        volume_mm3 = self.cylinder_volume(crank_angle) / _MM3_TO_CM3
        height = volume_mm3 / self.piston_area_mm2  # mm
        wall = math.pi * self.bore * height
        return (2.0 * self.piston_area_mm2 + wall) * _MM2_TO_CM2

    def mean_piston_speed(self, engine_speed: float) -> float:
        """Mean piston speed  Sp = 2·stroke·N/60  [m/s]."""
        return 2.0 * self.stroke * _MM_TO_M * engine_speed / 60.0

    def instantaneous_compression_ratio(self, crank_angle: float) -> float:
        """Vmax / V(θ)."""
        return self.max_cylinder_volume / self.cylinder_volume(crank_angle)

    # ── Summary helpers ───────────────────────────────────────────────────

    @property
    def bore_stroke_ratio(self) -> float:
        return self.bore / self.stroke

    @property
    def displacement_liters(self) -> float:
        """Total displacement  [L]."""
        return self.total_displacement / 1000.0

    def specifications(self) -> Dict[str, float]:
        """Rounded summary of the engine for display."""
        return {
            "bore": self.bore,
            "stroke": self.stroke,
            "displacement": round(self.total_displacement),
            "compression_ratio": self.compression_ratio,
            "cylinders": self.cylinders,
            "clearance_volume": round(self.clearance_volume, 1),
            "bore_stroke_ratio": round(self.bore_stroke_ratio, 2),
            "connecting_rod_length": self.connecting_rod_length,
        }


def compression_ratio_from_volumes(max_volume: float, min_volume: float) -> float:
    """Geometric compression ratio  Vmax / Vmin."""
    if min_volume <= 0.0:
        raise ValueError(f"min_volume must be > 0, got {min_volume}")
    return max_volume / min_volume


# ── Stroke phase table ────────────────────────────────────────────────────────


class StrokePhase(Enum):
    """Four-stroke phases; boundaries are inclusive on the lower phase."""

    INTAKE = "Intake"
    COMPRESSION = "Compression"
    POWER = "Power"
    EXHAUST = "Exhaust"


def stroke_phase(crank_angle: float) -> StrokePhase:
    """Phase active at ``crank_angle``  [deg, 0–720].

    Raises
    ------
    ValueError
        If the angle is outside [0°, 720°].
    """
    if not (0.0 <= crank_angle <= 720.0):
        raise ValueError(f"crank_angle must be within [0, 720]°, got {crank_angle}")
    if crank_angle <= 180.0:
        return StrokePhase.INTAKE
    if crank_angle <= 360.0:
        return StrokePhase.COMPRESSION
    if crank_angle <= 540.0:
        return StrokePhase.POWER
    return StrokePhase.EXHAUST


def is_intake_open(crank_angle: float) -> bool:
    return stroke_phase(crank_angle) is StrokePhase.INTAKE


def is_exhaust_open(crank_angle: float) -> bool:
    return stroke_phase(crank_angle) is StrokePhase.EXHAUST


def is_combustion_active(
    crank_angle: float, start_deg: float = 360.0, duration_deg: float = 10.0
) -> bool:
    """True within the combustion window (start, start + duration]."""
    return start_deg < crank_angle <= start_deg + duration_deg
