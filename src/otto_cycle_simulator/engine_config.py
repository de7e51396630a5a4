"""
Engine Configuration Module
Defines engine parameters, calibration constants and simulation settings.

Author: Mohith Sai Gorla
Date:   16-10-2026

Units follow the simulation request contract: geometry in mm, speed in rpm,
load in percent, temperatures in K and pressures in Pa.  Every range check is
collected before raising, so one ValidationError names all offending fields.
"""

import json
import math
import warnings
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .exceptions import ValidationError

# ── Enumerations ──────────────────────────────────────────────────────────────


class EngineVariant(Enum):
    """Engine family; selects the admissible compression-ratio window."""

    SPARK = "spark"
    DIESEL = "diesel"


# ── Documented physical ranges (inclusive) ────────────────────────────────────

PARAMETER_RANGES: Dict[str, Tuple[float, float]] = {
    "bore": (50.0, 150.0),  # mm
    "stroke": (50.0, 150.0),  # mm
    "cylinders": (1, 12),
    "engine_speed": (500.0, 8000.0),  # rpm
    "load": (0.0, 100.0),  # %
    "intake_temperature": (253.15, 333.15),  # K  (−20 … 60 °C)
    "intake_pressure": (50_000.0, 300_000.0),  # Pa (0.5 … 3 bar)
}

COMPRESSION_RATIO_RANGES: Dict[EngineVariant, Tuple[float, float]] = {
    EngineVariant.SPARK: (8.0, 15.0),
    EngineVariant.DIESEL: (12.0, 22.0),
}

# Request key → EngineParameters attribute
REQUEST_KEYS: Dict[str, str] = {
    "bore": "bore",
    "stroke": "stroke",
    "compressionRatio": "compression_ratio",
    "cylinders": "cylinders",
    "engineSpeed": "engine_speed",
    "load": "load",
    "intakeTemp": "intake_temperature",
    "connectingRodLength": "connecting_rod_length",
    "intakePressure": "intake_pressure",
}

REQUEST_DEFAULTS: Dict[str, float] = {
    "bore": 86.0,
    "stroke": 86.0,
    "compressionRatio": 10.5,
    "cylinders": 4,
    "engineSpeed": 2000.0,
    "load": 75.0,
    "intakeTemp": 298.0,
}

DEFAULT_ROD_TO_STROKE = 1.5


def estimate_rod_length(stroke: float, ratio: float = DEFAULT_ROD_TO_STROKE) -> float:
    """Typical connecting-rod length for a given stroke  [mm]."""
    return stroke * ratio


def infer_variant(compression_ratio: float) -> EngineVariant:
    """Engine family implied by a compression ratio.

    Ratios above the spark-ignition maximum can only be compression-ignition.
    """
    if compression_ratio > COMPRESSION_RATIO_RANGES[EngineVariant.SPARK][1]:
        return EngineVariant.DIESEL
    return EngineVariant.SPARK


def _check_range(
    errors: List[str],
    fields: List[str],
    name: str,
    value: float,
    bounds: Tuple[float, float],
    unit: str = "",
) -> None:
    low, high = bounds
    if not (low <= value <= high):
        suffix = f" {unit}" if unit else ""
        errors.append(f"{name} must be between {low:g}-{high:g}{suffix}, got {value:g}")
        fields.append(name)


# ── Engine parameters ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EngineParameters:
    """Inputs of one simulation run (immutable).

    Attributes
    ----------
    bore                  : mm
    stroke                : mm
    compression_ratio     : dimensionless  (> 1)
    cylinders             : int            (≥ 1)
    engine_speed          : rpm
    load                  : percent        (0–100)
    intake_temperature    : K
    intake_pressure       : Pa
    connecting_rod_length : mm  (defaults to 1.5 × stroke)
    variant               : EngineVariant
    """

    bore: float = 86.0
    stroke: float = 86.0
    compression_ratio: float = 10.5
    cylinders: int = 4
    engine_speed: float = 2000.0
    load: float = 75.0
    intake_temperature: float = 298.0
    intake_pressure: float = 101_325.0
    connecting_rod_length: Optional[float] = None
    variant: EngineVariant = EngineVariant.SPARK

    def __post_init__(self) -> None:
        if self.connecting_rod_length is None and isinstance(self.stroke, (int, float)):
            object.__setattr__(
                self, "connecting_rod_length", estimate_rod_length(self.stroke)
            )
        self._validate()

    def _validate(self) -> None:
        errors: List[str] = []
        fields: List[str] = []

        numeric = {
            "bore": self.bore,
            "stroke": self.stroke,
            "compression_ratio": self.compression_ratio,
            "cylinders": self.cylinders,
            "engine_speed": self.engine_speed,
            "load": self.load,
            "intake_temperature": self.intake_temperature,
            "intake_pressure": self.intake_pressure,
            "connecting_rod_length": self.connecting_rod_length,
        }
        if self.connecting_rod_length is None:
            # Unset only when the stroke itself was unusable
            del numeric["connecting_rod_length"]
        finite = {}
        for name, value in numeric.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{name} must be a number, got {value!r}")
                fields.append(name)
            elif not math.isfinite(value):
                errors.append(f"{name} must be finite, got {value}")
                fields.append(name)
            else:
                finite[name] = value

        for name, bounds in PARAMETER_RANGES.items():
            if name in finite:
                unit = {
                    "bore": "mm",
                    "stroke": "mm",
                    "engine_speed": "rpm",
                    "load": "%",
                    "intake_temperature": "K",
                    "intake_pressure": "Pa",
                }.get(name, "")
                _check_range(errors, fields, name, finite[name], bounds, unit)

        if "cylinders" in finite and int(finite["cylinders"]) != finite["cylinders"]:
            errors.append(f"cylinders must be an integer, got {self.cylinders}")
            fields.append("cylinders")

        if "compression_ratio" in finite:
            _check_range(
                errors,
                fields,
                "compression_ratio",
                finite["compression_ratio"],
                COMPRESSION_RATIO_RANGES[self.variant],
            )

        if "connecting_rod_length" in finite and "stroke" in finite:
            rod = finite["connecting_rod_length"]
            stroke = finite["stroke"]
            if rod <= stroke / 2.0:
                errors.append(
                    f"connecting_rod_length ({rod:g} mm) must exceed crank radius "
                    f"({stroke / 2.0:g} mm); otherwise the slider-crank locks up"
                )
                fields.append("connecting_rod_length")
            elif rod < stroke:
                errors.append(
                    f"connecting_rod_length ({rod:g} mm) must be greater than "
                    f"stroke ({stroke:g} mm)"
                )
                fields.append("connecting_rod_length")

        if errors:
            raise ValidationError(errors, fields)

    # ── Derived properties ────────────────────────────────────────────────

    @property
    def load_fraction(self) -> float:
        """Load as a fraction  [0, 1]."""
        return self.load / 100.0

    @property
    def intake_temperature_celsius(self) -> float:
        return self.intake_temperature - 273.15

    @property
    def rod_ratio(self) -> float:
        """Rod ratio  L/r  [dimensionless]."""
        return self.connecting_rod_length / (self.stroke / 2.0)

    # ── Request mapping ───────────────────────────────────────────────────

    @classmethod
    def from_request(
        cls, request: Mapping[str, Any], variant: Optional[EngineVariant] = None
    ) -> "EngineParameters":
        """Build parameters from a camelCase simulation request.

        Missing required keys fall back to REQUEST_DEFAULTS.  ``intakeTemp``
        must already be in Kelvin.  Unknown keys are ignored.  Without a
        ``variant`` key or argument the family follows the compression ratio
        (see ``infer_variant``).

        Raises
        ------
        ValidationError
            If any value is non-numeric or outside its documented range.
        """
        merged: Dict[str, Any] = dict(REQUEST_DEFAULTS)
        merged.update({k: v for k, v in request.items() if v is not None})

        errors: List[str] = []
        fields: List[str] = []
        kwargs: Dict[str, Any] = {}
        for key, attr in REQUEST_KEYS.items():
            if key not in merged:
                continue
            raw = merged[key]
            try:
                value = float(raw)
            except (TypeError, ValueError):
                errors.append(f"{attr} must be a number, got {raw!r}")
                fields.append(attr)
                continue
            if attr == "cylinders" and value.is_integer():
                value = int(value)
            kwargs[attr] = value

        if errors:
            raise ValidationError(errors, fields)

        raw_variant = request.get("variant")
        if raw_variant is not None:
            try:
                variant = EngineVariant(raw_variant)
            except ValueError as exc:
                raise ValidationError(
                    [f"variant must be one of {[v.value for v in EngineVariant]}"],
                    ["variant"],
                ) from exc
        elif variant is None:
            variant = infer_variant(kwargs["compression_ratio"])

        return cls(variant=variant, **kwargs)

    def to_request(self) -> Dict[str, Any]:
        """Inverse of from_request (camelCase keys)."""
        out = {key: getattr(self, attr) for key, attr in REQUEST_KEYS.items()}
        out["variant"] = self.variant.value
        return out


# ── Calibration constants ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class CycleCalibration:
    """Empirical constants of the closed-form cycle model.

    These are calibration choices, not physical law.  The exhaust temperature
    model, the mechanical efficiency and the residual-mass retention in
    particular were tuned against a target power figure.
    """

    gas_constant: float = 287.0  # J/(kg·K)
    gamma_air: float = 1.4  # compression exponent
    gamma_products: float = 1.35  # expansion exponent

    combustion_start_deg: float = 360.0
    combustion_duration_deg: float = 10.0
    heat_addition_base: float = 1.5  # multiplier at zero load
    heat_addition_load_slope: float = 2.5  # added per unit load fraction
    heat_release_scale: float = 1000.0  # J/° per unit of (multiplier − 1)

    exhaust_back_pressure_factor: float = 1.05
    exhaust_temperature_floor_factor: float = 1.8  # × intake temperature
    exhaust_temperature_decay: float = 0.95  # × previous temperature
    residual_mass_retention: float = 0.95  # trapped mass kept during exhaust

    wall_temperature: float = 400.0  # K
    woschni_constant: float = 3.26
    gas_velocity_factor: float = 2.28  # × |piston velocity|

    mechanical_efficiency: float = 0.85
    fuel_flow_factor: float = 0.3  # fuel flow per kW of brake power
    fuel_heating_value: float = 43.5  # MJ/kg

    def __post_init__(self) -> None:
        errors: List[str] = []
        fields: List[str] = []
        for name in ("gamma_air", "gamma_products"):
            if not getattr(self, name) > 1.0:
                errors.append(f"{name} must be > 1, got {getattr(self, name)}")
                fields.append(name)
        positive = (
            "gas_constant",
            "combustion_duration_deg",
            "heat_addition_base",
            "heat_release_scale",
            "exhaust_back_pressure_factor",
            "wall_temperature",
            "woschni_constant",
            "fuel_flow_factor",
            "fuel_heating_value",
        )
        for name in positive:
            if not getattr(self, name) > 0.0:
                errors.append(f"{name} must be > 0, got {getattr(self, name)}")
                fields.append(name)
        for name in (
            "mechanical_efficiency",
            "residual_mass_retention",
            "exhaust_temperature_decay",
        ):
            if not (0.0 < getattr(self, name) <= 1.0):
                errors.append(f"{name} must be in (0, 1], got {getattr(self, name)}")
                fields.append(name)
        if self.gas_velocity_factor < 0.0:
            errors.append(
                f"gas_velocity_factor must be ≥ 0, got {self.gas_velocity_factor}"
            )
            fields.append("gas_velocity_factor")
        if errors:
            raise ValidationError(errors, fields, prefix="Calibration errors")

    @property
    def combustion_end_deg(self) -> float:
        return self.combustion_start_deg + self.combustion_duration_deg

    def heat_addition_multiplier(self, load_fraction: float) -> float:
        """Peak pressure/temperature multiplier  1.5 + 2.5·load."""
        return self.heat_addition_base + self.heat_addition_load_slope * load_fraction


# ── Simulation settings ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class SimulationSettings:
    """Runtime settings of the angle sweep."""

    step_size: float = 0.1  # degrees per record
    progress_interval_deg: float = 10.0

    def __post_init__(self) -> None:
        errors: List[str] = []
        fields: List[str] = []
        if not (math.isfinite(self.step_size) and self.step_size > 0.0):
            errors.append(f"step_size must be > 0°, got {self.step_size}")
            fields.append("step_size")
        elif abs(720.0 / self.step_size - round(720.0 / self.step_size)) > 1e-6:
            errors.append(
                f"step_size {self.step_size}° must divide 720° into whole steps"
            )
            fields.append("step_size")
        if not self.progress_interval_deg > 0.0:
            errors.append(
                f"progress_interval_deg must be > 0°, got {self.progress_interval_deg}"
            )
            fields.append("progress_interval_deg")
        if errors:
            raise ValidationError(errors, fields, prefix="Simulation settings errors")

    @property
    def num_steps(self) -> int:
        """Number of intervals across 720°."""
        return int(round(720.0 / self.step_size))

    @property
    def num_records(self) -> int:
        """Records per cycle  720/step + 1  (both endpoints included)."""
        return self.num_steps + 1


# ── Top-level configuration ───────────────────────────────────────────────────


@dataclass
class EngineConfiguration:
    """Complete configuration of a simulation session."""

    parameters: EngineParameters = field(default_factory=EngineParameters)
    calibration: CycleCalibration = field(default_factory=CycleCalibration)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)

    def __post_init__(self) -> None:
        self._check_notices()

    def _check_notices(self) -> None:
        """Advisory warnings for values that are legal but unusual."""
        notices: List[str] = []

        rr = self.parameters.rod_ratio
        if not (2.0 <= rr <= 10.0):
            notices.append(f"Rod ratio {rr:.2f} outside typical range [2, 10]")

        bs = self.parameters.bore / self.parameters.stroke
        if bs > 1.3:
            notices.append(f"Oversquare engine (B/S={bs:.2f}): high rpm bias")
        elif bs < 0.8:
            notices.append(f"Undersquare engine (B/S={bs:.2f}): high torque bias")

        for msg in notices:
            warnings.warn(msg, stacklevel=3)

    # ── Serialisation ─────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Serialise configuration to a plain dictionary."""
        params = asdict(self.parameters)
        params["variant"] = self.parameters.variant.value
        return {
            "parameters": params,
            "calibration": asdict(self.calibration),
            "simulation": asdict(self.simulation),
        }

    def to_json(self, filepath: str) -> None:
        """Persist configuration to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineConfiguration":
        """Inverse of to_dict.  Missing sections fall back to defaults.

        Raises
        ------
        ValidationError
            If a value is out of range or a key is unknown.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(
                [f"Configuration must be a JSON object, got {type(data).__name__}"]
            )
        params = dict(data.get("parameters", {}))
        if "variant" in params:
            try:
                params["variant"] = EngineVariant(params["variant"])
            except ValueError as exc:
                raise ValidationError(
                    [
                        f"variant must be one of {[v.value for v in EngineVariant]}, "
                        f"got {params['variant']!r}"
                    ],
                    ["variant"],
                ) from exc
        elif isinstance(params.get("compression_ratio"), (int, float)):
            params["variant"] = infer_variant(params["compression_ratio"])
        if isinstance(params.get("cylinders"), float) and params["cylinders"].is_integer():
            params["cylinders"] = int(params["cylinders"])
        try:
            return cls(
                parameters=EngineParameters(**params),
                calibration=CycleCalibration(**data.get("calibration", {})),
                simulation=SimulationSettings(**data.get("simulation", {})),
            )
        except TypeError as exc:
            raise ValidationError([f"Unknown configuration key: {exc}"]) from exc

    @classmethod
    def from_json(cls, filepath: str) -> "EngineConfiguration":
        """Load configuration from a JSON file.

        Raises
        ------
        FileNotFoundError
            If filepath does not exist.
        ValidationError
            If a field has an invalid value or the file is not valid JSON.
        """
        with open(filepath, "r", encoding="utf-8") as fh:
            try:
                data = json.load(fh)
            except json.JSONDecodeError as exc:
                raise ValidationError(
                    [f"{filepath} is not valid JSON: {exc.msg} (line {exc.lineno})"]
                ) from exc
        return cls.from_dict(data)


# ── Factory functions ─────────────────────────────────────────────────────────


def create_default_inline_4() -> EngineConfiguration:
    """Default naturally-aspirated spark-ignition inline-4.

        Bore × Stroke : 86 mm × 86 mm
        CR            : 10.5 : 1
        Rod length    : 129 mm  (1.5 × stroke)
        Operating     : 2000 rpm, 75 % load, 298 K intake
    """
    return EngineConfiguration(parameters=EngineParameters())


def create_default_diesel_inline_6() -> EngineConfiguration:
    """Heavy-duty diesel inline-6 used as the reference calibration case.

        Bore × Stroke : 137 mm × 150 mm
        CR            : 16.5 : 1
        Operating     : 1800 rpm, full load, 298.15 K intake
    """
    return EngineConfiguration(
        parameters=EngineParameters(
            bore=137.0,
            stroke=150.0,
            compression_ratio=16.5,
            cylinders=6,
            engine_speed=1800.0,
            load=100.0,
            intake_temperature=298.15,
            variant=EngineVariant.DIESEL,
        )
    )


PRESETS = {
    "inline4": create_default_inline_4,
    "diesel6": create_default_diesel_inline_6,
}
