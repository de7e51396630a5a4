"""
Performance Module
Cycle-level performance and emissions aggregation.

Author: Mohith Sai Gorla
Date:   16-10-2026

Mathematical Basis
------------------
Indicated work       W = ∮ P dV                       (trapezoidal rule)
                     bar·cm³ → J  :  × 0.1
IMEP                 W / V_d                           [bar]
Indicated power      W · (N / 120) · n_cyl / 1000      [kW]   (4-stroke)
Brake power          η_m · P_ind                       [kW]
Torque               P · 1000 · 60 / (2π · N)          [N·m]
BMEP                 η_m · IMEP                        [bar]
Thermal efficiency   P_ind / (ṁ_f · LHV) · 100         [%]
                     ṁ_f = 0.3 · P_brake  (simplified fuel-flow assumption)

The emissions figures are closed-form indices of peak temperature and load.
They are not the output of a kinetic model and should only be compared with
each other.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Sequence

import numpy as np
from scipy.integrate import trapezoid

from .engine_config import CycleCalibration, EngineParameters
from .kinematics import EngineGeometry
from .thermodynamics import (
    CycleStateRecord,
    records_to_arrays,
    theoretical_otto_efficiency,
)

logger = logging.getLogger(__name__)

_BAR_CM3_TO_J: float = 0.1
_CM3_TO_M3: float = 1.0e-6
_PA_TO_BAR: float = 1.0e-5

NOX_THRESHOLD_K: float = 2000.0


# ── Data classes ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PerformanceSummary:
    """Aggregate performance of one cycle.

    Attributes
    ----------
    indicated_work         : J per cylinder per cycle
    indicated_power        : kW  (all cylinders)
    brake_power            : kW
    indicated_torque       : N·m
    brake_torque           : N·m
    imep                   : bar
    bmep                   : bar
    thermal_efficiency     : %
    theoretical_efficiency : %    air-standard Otto value
    peak_pressure          : bar
    peak_temperature       : K
    peak_pressure_angle    : deg
    """

    indicated_work: float
    indicated_power: float
    brake_power: float
    indicated_torque: float
    brake_torque: float
    imep: float
    bmep: float
    thermal_efficiency: float
    theoretical_efficiency: float
    peak_pressure: float
    peak_temperature: float
    peak_pressure_angle: float

    def to_dict(self) -> Dict[str, float]:
        """camelCase mapping with the result payload's rounding."""
        return {
            "indicatedWork": round(self.indicated_work, 2),
            "indicatedPower": round(self.indicated_power, 2),
            "brakePower": round(self.brake_power, 2),
            "power": round(self.brake_power, 2),
            "indicatedTorque": round(self.indicated_torque, 1),
            "torque": round(self.brake_torque, 1),
            "imep": round(self.imep, 2),
            "bmep": round(self.bmep, 2),
            "efficiency": round(self.thermal_efficiency, 2),
            "theoreticalEfficiency": round(self.theoretical_efficiency, 2),
            "peakPressure": round(self.peak_pressure, 2),
            "peakTemperature": round(self.peak_temperature, 1),
            "peakPressureAngle": round(self.peak_pressure_angle, 1),
        }


@dataclass(frozen=True)
class EmissionsSummary:
    """Approximate emission indices  [g/kWh-style]."""

    nox: float
    co: float
    hc: float
    pm: float

    def to_dict(self) -> Dict[str, float]:
        return {key: round(value, 3) for key, value in asdict(self).items()}


# ── Work integration ─────────────────────────────────────────────────────────


def calculate_work_pdv(pressure_bar: np.ndarray, volume_cm3: np.ndarray) -> float:
    """Net indicated work from the ordered P-V trace  W = ∮ P dV  [J].

    W > 0 means the cycle delivers work.

    Raises
    ------
    ValueError
        If arrays have different lengths or fewer than 2 elements.
    """
    pressure_bar = np.asarray(pressure_bar, dtype=float)
    volume_cm3 = np.asarray(volume_cm3, dtype=float)
    if len(pressure_bar) != len(volume_cm3):
        raise ValueError(
            f"pressure and volume must have the same length, "
            f"got {len(pressure_bar)} and {len(volume_cm3)}"
        )
    if len(pressure_bar) < 2:
        raise ValueError("At least 2 samples are required for integration")
    return float(trapezoid(pressure_bar, volume_cm3)) * _BAR_CM3_TO_J


def torque_from_power(power_kw: float, engine_speed: float) -> float:
    """Shaft torque  T = P / ω  [N·m]."""
    return power_kw * 1000.0 * 60.0 / (2.0 * math.pi * engine_speed)


# ── Aggregation ──────────────────────────────────────────────────────────────


def compute_performance(
    cycle: Sequence[CycleStateRecord],
    params: EngineParameters,
    calibration: Optional[CycleCalibration] = None,
    geometry: Optional[EngineGeometry] = None,
) -> PerformanceSummary:
    """Derive the performance summary from a completed cycle.

    Parameters
    ----------
    cycle       : ordered records of one 0–720° run
    params      : the parameters that produced ``cycle``
    calibration : mechanical efficiency and fuel-flow constants

    Raises
    ------
    ValueError
        If the cycle has fewer than 2 records.
    """
    cal = calibration if calibration is not None else CycleCalibration()
    geo = geometry if geometry is not None else EngineGeometry.from_parameters(params)

    arrays = records_to_arrays(cycle)
    pressure = arrays["pressure"]
    volume = arrays["volume"]
    temperature = arrays["temperature"]

    work = calculate_work_pdv(pressure, volume)
    imep = work / (geo.displacement * _CM3_TO_M3) * _PA_TO_BAR

    cycles_per_second = params.engine_speed / 120.0
    indicated_power = work * cycles_per_second * params.cylinders / 1000.0
    brake_power = indicated_power * cal.mechanical_efficiency

    if indicated_power > 0.0 and brake_power > 0.0:
        fuel_flow = cal.fuel_flow_factor * brake_power
        thermal_efficiency = indicated_power / (fuel_flow * cal.fuel_heating_value) * 100.0
    else:
        thermal_efficiency = 0.0

    peak_index = int(np.argmax(pressure))
    summary = PerformanceSummary(
        indicated_work=work,
        indicated_power=indicated_power,
        brake_power=brake_power,
        indicated_torque=torque_from_power(indicated_power, params.engine_speed),
        brake_torque=torque_from_power(brake_power, params.engine_speed),
        imep=imep,
        bmep=imep * cal.mechanical_efficiency,
        thermal_efficiency=thermal_efficiency,
        theoretical_efficiency=theoretical_otto_efficiency(
            params.compression_ratio, cal.gamma_air
        )
        * 100.0,
        peak_pressure=float(pressure[peak_index]),
        peak_temperature=float(np.max(temperature)),
        peak_pressure_angle=cycle[peak_index].angle,
    )
    logger.debug(
        "Performance: W=%.1f J, brake %.1f kW, IMEP %.2f bar",
        work,
        brake_power,
        imep,
    )
    return summary


def compute_emissions(
    cycle: Sequence[CycleStateRecord], params: EngineParameters
) -> EmissionsSummary:
    """Closed-form emission indices from peak temperature and load.

    NOx rises linearly above 2000 K; CO and HC fall with load; PM is constant.
    """
    if not cycle:
        raise ValueError("cycle must contain at least one record")
    peak_temperature = max(r.temperature for r in cycle)
    if peak_temperature > NOX_THRESHOLD_K:
        nox = 0.005 * (peak_temperature - NOX_THRESHOLD_K)
    else:
        nox = 0.1
    return EmissionsSummary(
        nox=nox,
        co=2.5 - params.load / 50.0,
        hc=1.0 - params.load / 100.0,
        pm=0.05,
    )
