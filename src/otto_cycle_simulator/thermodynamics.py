"""
Thermodynamics Module
Per-angle Otto-cycle state generation with closed-form phase models.

Author: Mohith Sai Gorla
Date:   16-10-2026

Mathematical Basis
------------------
Ideal gas:             m = P·V / (R·T)

Intake      [0, 180]     P = P_in,  T = T_in,  m from the ideal gas law
Compression (180, 360]   r = V_max/V,  P = P_in·r^γa,  T = T_in·r^(γa−1)
Combustion  (360, 370]   x = (θ − 360)/10,  k = 1 + (H − 1)·x,
                         P = P_c·k,  T = T_c·k,  H = 1.5 + 2.5·load
Expansion   (370, 540]   e = V/V_c,  P = P_c·H / e^γ,  T = T_c·H / e^(γ−1)
Exhaust     (540, 720]   P = 1.05·P_in,  T = max(1.8·T_in, 0.95·T_prev),
                         m = 0.95·m_trapped

P_c, T_c are the end-of-compression values (r = geometric compression ratio).

Woschni heat-transfer correlation (simplified form):
    h = 3.26 · B^{-0.2} · P^{0.8} · T^{-0.55} · (S_p + w_gas)^{0.8}  [W/(m²·K)]
    with B in m, P in kPa, T in K, velocities in m/s.

Heat transfer to the wall (T_wall = 400 K, one degree lasts 1/(6·N) s):
    rate  q = h·A·(T − T_wall) / (6·N)   [J/deg]
    step  Q = q·Δθ                       [J]

Reference: Woschni, G. (1967). SAE Technical Paper 670931.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple

import numpy as np

from .engine_config import CycleCalibration, EngineParameters, SimulationSettings
from .exceptions import ComputationError, SimulationCancelled
from .kinematics import (
    EngineGeometry,
    StrokePhase,
    is_combustion_active,
    stroke_phase,
)

logger = logging.getLogger(__name__)

_WOSCHNI_MIN_VELOCITY: float = 0.5  # m/s
_CM3_TO_M3: float = 1.0e-6
_CM2_TO_M2: float = 1.0e-4
_PA_TO_BAR: float = 1.0e-5

# Decimal places kept on output.  Internal accumulation is never rounded.
FIELD_PRECISION: Dict[str, int] = {
    "angle": 6,
    "volume": 3,
    "pressure": 3,
    "temperature": 1,
    "piston_position": 3,
    "piston_velocity": 3,
    "piston_acceleration": 1,
    "mass_in_cylinder": 8,
    "density": 4,
    "compression_ratio": 3,
    "heat_release": 3,
    "heat_release_total": 2,
    "heat_transfer_rate": 4,
    "heat_transfer": 4,
    "heat_transfer_coefficient": 2,
    "surface_area": 2,
    "mean_piston_speed": 3,
    "gas_velocity": 3,
    "cycle_progress": 2,
}

# Attribute → wire key of the per-angle record
WIRE_KEYS: Dict[str, str] = {
    "angle": "angle",
    "volume": "volume",
    "pressure": "pressure",
    "temperature": "temperature",
    "piston_position": "pistonPosition",
    "piston_velocity": "pistonVelocity",
    "piston_acceleration": "pistonAcceleration",
    "mass_in_cylinder": "massInCylinder",
    "density": "density",
    "heat_release": "heatRelease",
    "heat_release_total": "heatReleaseTotal",
    "heat_transfer_rate": "heatTransferRate",
    "heat_transfer": "heatTransfer",
    "heat_transfer_coefficient": "heatTransferCoeff",
    "surface_area": "surfaceArea",
    "mean_piston_speed": "meanPistonSpeed",
    "gas_velocity": "gasVelocity",
    "compression_ratio": "compressionRatio",
    "stroke_phase": "strokePhase",
    "intake_valve_open": "intakeValveOpen",
    "exhaust_valve_open": "exhaustValveOpen",
    "combustion_active": "combustionActive",
    "cycle_progress": "cycleProgress",
}


# ── Data classes ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CycleStateRecord:
    """Snapshot of the cylinder at one crank angle.

    Attributes
    ----------
    angle                     : deg   0–720
    volume                    : cm³
    pressure                  : bar
    temperature               : K
    piston_position           : mm from TDC
    piston_velocity           : m/s
    piston_acceleration       : m/s²
    mass_in_cylinder          : kg
    density                   : kg/m³
    compression_ratio         : V_max / V
    heat_release              : J/deg  (rate)
    heat_release_total        : J      (cumulative)
    heat_transfer_rate        : J/deg  (gas → wall, rate)
    heat_transfer             : J      (gas → wall over this step)
    heat_transfer_coefficient : W/(m²·K)
    surface_area              : cm²
    mean_piston_speed         : m/s
    gas_velocity              : m/s
    stroke_phase              : StrokePhase
    cycle_progress            : %
    """

    angle: float
    volume: float
    pressure: float
    temperature: float
    piston_position: float
    piston_velocity: float
    piston_acceleration: float
    mass_in_cylinder: float
    density: float
    compression_ratio: float
    heat_release: float
    heat_release_total: float
    heat_transfer_rate: float
    heat_transfer: float
    heat_transfer_coefficient: float
    surface_area: float
    mean_piston_speed: float
    gas_velocity: float
    stroke_phase: StrokePhase
    intake_valve_open: bool
    exhaust_valve_open: bool
    combustion_active: bool
    cycle_progress: float

    def to_dict(self) -> Dict[str, object]:
        """camelCase mapping used by the JSON/CSV exports."""
        out: Dict[str, object] = {}
        for attr, key in WIRE_KEYS.items():
            value = getattr(self, attr)
            out[key] = value.value if isinstance(value, StrokePhase) else value
        return out


NUMERIC_FIELDS: Tuple[str, ...] = tuple(FIELD_PRECISION)


def records_to_arrays(cycle: Sequence[CycleStateRecord]) -> Dict[str, np.ndarray]:
    """Column view of a cycle: one float array per numeric field."""
    return {
        name: np.fromiter((getattr(r, name) for r in cycle), dtype=float, count=len(cycle))
        for name in NUMERIC_FIELDS
    }


# ── Ideal gas helpers ────────────────────────────────────────────────────────


def mass_from_state(
    pressure: float, volume: float, temperature: float, gas_constant: float = 287.0
) -> float:
    """Ideal-gas mass  m = P·V / (R·T)  [kg]  (P in Pa, V in m³)."""
    if temperature <= 0.0:
        return 0.0
    return pressure * volume / (gas_constant * temperature)


def theoretical_otto_efficiency(compression_ratio: float, gamma: float = 1.4) -> float:
    """Air-standard Otto efficiency  1 − 1/r^(γ−1)  [fraction]."""
    return 1.0 - 1.0 / compression_ratio ** (gamma - 1.0)


# ── Heat transfer ────────────────────────────────────────────────────────────


class WoschniHeatTransfer:
    """Convective gas-to-wall heat transfer from the simplified Woschni form.

    The characteristic velocity is the mean piston speed plus a gas-velocity
    proxy derived from the instantaneous piston velocity.  The pressure-rise
    term of the full correlation is omitted.
    """

    def __init__(
        self,
        bore_mm: float,
        wall_temperature: float = 400.0,
        constant: float = 3.26,
        min_velocity: float = _WOSCHNI_MIN_VELOCITY,
    ) -> None:
        if bore_mm <= 0.0:
            raise ValueError(f"bore must be > 0 mm, got {bore_mm}")
        if wall_temperature <= 0.0:
            raise ValueError(f"wall_temperature must be > 0 K, got {wall_temperature}")
        self.bore = bore_mm * 1.0e-3  # m
        self.wall_temperature = wall_temperature
        self.constant = constant
        self.min_velocity = max(min_velocity, 0.0)

    def coefficient(
        self, pressure_kpa: float, temperature_k: float, velocity: float
    ) -> float:
        """Heat transfer coefficient  h  [W/(m²·K)].

        Raises
        ------
        ValueError
            If pressure or temperature is not positive.
        """
        if pressure_kpa <= 0.0:
            raise ValueError(f"pressure_kpa must be > 0, got {pressure_kpa}")
        if temperature_k <= 0.0:
            raise ValueError(f"temperature_k must be > 0, got {temperature_k}")
        w = max(abs(velocity), self.min_velocity)
        return (
            self.constant
            * (self.bore**-0.2)
            * (pressure_kpa**0.8)
            * (temperature_k**-0.55)
            * (w**0.8)
        )

    def rate_per_degree(
        self,
        coefficient: float,
        surface_area_m2: float,
        temperature: float,
        engine_speed: float,
    ) -> float:
        """Heat flow per crank degree  h·A·(T − T_wall)·Δt/deg  [J/deg].

        One crank degree lasts 1/(6·N) s.  Positive when the gas loses heat.
        """
        q_dot = coefficient * surface_area_m2 * (temperature - self.wall_temperature)
        return q_dot / (6.0 * engine_speed)


# ── Cycle generation ─────────────────────────────────────────────────────────


ProgressCallback = Callable[[float], None]


class CycleStateGenerator:
    """Produces the ordered per-angle records of one 720° cycle.

    The phase model is driven purely by crank angle.  A generator holds no
    state between runs: every call to ``iter_states`` / ``generate`` starts
    from the intake stroke and is a deterministic function of its inputs.
    """

    def __init__(
        self,
        params: EngineParameters,
        calibration: Optional[CycleCalibration] = None,
        geometry: Optional[EngineGeometry] = None,
    ) -> None:
        self.params = params
        self.calibration = calibration if calibration is not None else CycleCalibration()
        self.geometry = geometry if geometry is not None else EngineGeometry.from_parameters(params)
        self.heat_transfer = WoschniHeatTransfer(
            params.bore,
            wall_temperature=self.calibration.wall_temperature,
            constant=self.calibration.woschni_constant,
        )

        cal = self.calibration
        p_in = params.intake_pressure
        t_in = params.intake_temperature
        cr = self.geometry.max_cylinder_volume / self.geometry.clearance_volume

        # End-of-compression state and peak multiplier
        self.compression_end_pressure = p_in * cr**cal.gamma_air
        self.compression_end_temperature = t_in * cr ** (cal.gamma_air - 1.0)
        self.heat_addition_multiplier = cal.heat_addition_multiplier(params.load_fraction)
        self.heat_release_rate = (self.heat_addition_multiplier - 1.0) * cal.heat_release_scale

    # ── Public API ────────────────────────────────────────────────────────

    def iter_states(self, step_size: float = 0.1) -> Iterator[CycleStateRecord]:
        """Yield records in append-only order from 0° to 720° inclusive.

        Raises
        ------
        ValidationError
            If step_size does not divide 720° into whole steps.
        ComputationError
            If a field becomes non-finite.
        """
        settings = SimulationSettings(step_size=step_size)
        cal = self.calibration
        geo = self.geometry
        params = self.params

        mean_speed = geo.mean_piston_speed(params.engine_speed)
        trapped_mass = 0.0
        previous_temperature = params.intake_temperature
        cumulative_heat = 0.0

        for index in range(settings.num_records):
            angle = round(index * step_size, 9)
            phase = stroke_phase(angle)
            combustion = is_combustion_active(
                angle, cal.combustion_start_deg, cal.combustion_duration_deg
            )

            volume = geo.cylinder_volume(angle)  # cm³
            volume_m3 = volume * _CM3_TO_M3

            pressure, temperature, mass = self._phase_state(
                angle, phase, combustion, volume, previous_temperature, trapped_mass
            )
            if phase is StrokePhase.INTAKE:
                trapped_mass = mass

            heat_release = self.heat_release_rate if combustion else 0.0
            cumulative_heat += heat_release * step_size

            piston_velocity = geo.piston_velocity(angle, params.engine_speed)
            gas_velocity = cal.gas_velocity_factor * abs(piston_velocity)
            surface_area = geo.surface_area(angle)  # cm²
            h = self.heat_transfer.coefficient(
                pressure / 1000.0, temperature, mean_speed + gas_velocity
            )
            heat_transfer_rate = self.heat_transfer.rate_per_degree(
                h, surface_area * _CM2_TO_M2, temperature, params.engine_speed
            )

            raw = {
                "angle": angle,
                "volume": volume,
                "pressure": pressure * _PA_TO_BAR,
                "temperature": temperature,
                "piston_position": geo.piston_position(angle),
                "piston_velocity": piston_velocity,
                "piston_acceleration": geo.piston_acceleration(angle, params.engine_speed),
                "mass_in_cylinder": mass,
                "density": mass / volume_m3,
                "compression_ratio": geo.max_cylinder_volume / volume,
                "heat_release": heat_release,
                "heat_release_total": cumulative_heat,
                "heat_transfer_rate": heat_transfer_rate,
                "heat_transfer": heat_transfer_rate * step_size,
                "heat_transfer_coefficient": h,
                "surface_area": surface_area,
                "mean_piston_speed": mean_speed,
                "gas_velocity": gas_velocity,
                "cycle_progress": angle / 720.0 * 100.0,
            }
            previous_temperature = temperature

            yield self._make_record(raw, phase, combustion)

    def generate(
        self,
        step_size: float = 0.1,
        progress_callback: Optional[ProgressCallback] = None,
        progress_interval_deg: float = 10.0,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[CycleStateRecord, ...]:
        """Run the full sweep and return the completed, immutable cycle.

        Parameters
        ----------
        step_size             : float  degrees per record
        progress_callback     : called with cycle progress [%] every
                                ``progress_interval_deg`` degrees
        cancel_event          : checked between steps; when set the run
                                stops with SimulationCancelled

        Raises
        ------
        ValidationError
            If the step size or progress interval is invalid.
        SimulationCancelled
            If ``cancel_event`` was set before the sweep completed.
        """
        settings = SimulationSettings(step_size, progress_interval_deg)
        steps_per_report = max(1, int(round(settings.progress_interval_deg / step_size)))
        cycle = []
        for index, record in enumerate(self.iter_states(step_size)):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Cycle generation cancelled at %.1f°", record.angle)
                raise SimulationCancelled(
                    f"Simulation cancelled at crank angle {record.angle:.1f}°"
                )
            cycle.append(record)
            if progress_callback is not None and index % steps_per_report == 0:
                progress_callback(record.cycle_progress)

        logger.debug(
            "Generated %d records (step %.3g°, peak %.2f bar)",
            len(cycle),
            step_size,
            max(r.pressure for r in cycle),
        )
        return tuple(cycle)

    # ── Phase models ──────────────────────────────────────────────────────

    def _phase_state(
        self,
        angle: float,
        phase: StrokePhase,
        combustion: bool,
        volume: float,
        previous_temperature: float,
        trapped_mass: float,
    ) -> Tuple[float, float, float]:
        """(pressure [Pa], temperature [K], mass [kg]) at one angle."""
        cal = self.calibration
        p_in = self.params.intake_pressure
        t_in = self.params.intake_temperature
        geo = self.geometry

        if phase is StrokePhase.INTAKE:
            # Isobaric fill; mass follows the swept volume
            mass = mass_from_state(p_in, volume * _CM3_TO_M3, t_in, cal.gas_constant)
            return p_in, t_in, mass

        if phase is StrokePhase.COMPRESSION:
            r = geo.max_cylinder_volume / volume
            return (
                p_in * r**cal.gamma_air,
                t_in * r ** (cal.gamma_air - 1.0),
                trapped_mass,
            )

        if phase is StrokePhase.POWER:
            if combustion:
                progress = (angle - cal.combustion_start_deg) / cal.combustion_duration_deg
                k = 1.0 + (self.heat_addition_multiplier - 1.0) * progress
                return (
                    self.compression_end_pressure * k,
                    self.compression_end_temperature * k,
                    trapped_mass,
                )
            if angle <= cal.combustion_start_deg:
                # Only reachable when the combustion window starts after TDC
                r = geo.max_cylinder_volume / volume
                return (
                    p_in * r**cal.gamma_air,
                    t_in * r ** (cal.gamma_air - 1.0),
                    trapped_mass,
                )
            e = volume / geo.clearance_volume
            h = self.heat_addition_multiplier
            return (
                self.compression_end_pressure * h / e**cal.gamma_products,
                self.compression_end_temperature * h / e ** (cal.gamma_products - 1.0),
                trapped_mass,
            )

        # Exhaust: blow-down held above intake conditions
        temperature = max(
            cal.exhaust_temperature_floor_factor * t_in,
            cal.exhaust_temperature_decay * previous_temperature,
        )
        return (
            cal.exhaust_back_pressure_factor * p_in,
            temperature,
            cal.residual_mass_retention * trapped_mass,
        )

    @staticmethod
    def _make_record(
        raw: Dict[str, float], phase: StrokePhase, combustion: bool
    ) -> CycleStateRecord:
        for name, value in raw.items():
            if not math.isfinite(value):
                raise ComputationError(name, raw["angle"], value)
        rounded = {name: round(value, FIELD_PRECISION[name]) for name, value in raw.items()}
        return CycleStateRecord(
            stroke_phase=phase,
            intake_valve_open=phase is StrokePhase.INTAKE,
            exhaust_valve_open=phase is StrokePhase.EXHAUST,
            combustion_active=combustion,
            **rounded,
        )


def generate_cycle(
    params: EngineParameters,
    calibration: Optional[CycleCalibration] = None,
    step_size: float = 0.1,
) -> Tuple[CycleStateRecord, ...]:
    """Convenience wrapper: one full cycle for ``params``."""
    return CycleStateGenerator(params, calibration).generate(step_size)
