"""
Visualization Module
Chart-ready series, the sampled data table and matplotlib rendering.

Author: Mohith Sai Gorla
Date:   16-10-2026

The transform functions are pure: they turn a cycle into plain sequences and
never touch matplotlib.  EnginePlotter renders those sequences.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
from matplotlib.gridspec import GridSpec
import numpy as np

from .kinematics import StrokePhase
from .performance import PerformanceSummary
from .thermodynamics import NUMERIC_FIELDS, WIRE_KEYS, CycleStateRecord

logger = logging.getLogger(__name__)

# Y-axis labels of every chartable field
PARAMETER_LABELS: Dict[str, str] = {
    "pressure": "Pressure (bar)",
    "temperature": "Temperature (K)",
    "volume": "Volume (cm³)",
    "piston_position": "Piston Position (mm)",
    "piston_velocity": "Piston Velocity (m/s)",
    "piston_acceleration": "Piston Acceleration (m/s²)",
    "mass_in_cylinder": "Mass in Cylinder (kg)",
    "density": "Gas Density (kg/m³)",
    "heat_release": "Heat Release Rate (J/°)",
    "heat_release_total": "Cumulative Heat Release (J)",
    "heat_transfer_rate": "Heat Transfer Rate (J/°)",
    "heat_transfer": "Heat Transfer per Step (J)",
    "heat_transfer_coefficient": "Heat Transfer Coeff (W/m²K)",
    "surface_area": "Surface Area (cm²)",
    "mean_piston_speed": "Mean Piston Speed (m/s)",
    "gas_velocity": "Gas Velocity (m/s)",
    "compression_ratio": "Instantaneous Compression Ratio",
}

TABLE_HEADERS: Tuple[str, ...] = (
    "Angle°",
    "Volume cm³",
    "Pressure bar",
    "Temperature K",
    "Piston Pos mm",
    "Piston Vel m/s",
    "Piston Acc m/s²",
    "Mass kg",
    "Density kg/m³",
    "Heat Release J/°",
    "Heat Total J",
    "Heat Transfer J/°",
    "HT Coeff W/m²K",
    "Surface cm²",
    "Gas Vel m/s",
    "Comp Ratio",
    "Phase",
    "Intake",
    "Exhaust",
    "Combustion",
    "Progress %",
)

PHASE_COLORS: Dict[StrokePhase, str] = {
    StrokePhase.INTAKE: "#4299e1",
    StrokePhase.COMPRESSION: "#ed8936",
    StrokePhase.POWER: "#48bb78",
    StrokePhase.EXHAUST: "#ed64a6",
}

STROKE_BOUNDARIES: Tuple[float, ...] = (180.0, 360.0, 540.0)

_WIRE_TO_ATTR = {wire: attr for attr, wire in WIRE_KEYS.items()}


# ── Pure transforms ──────────────────────────────────────────────────────────


def _resolve_parameter(parameter: str) -> str:
    """Accept snake_case attributes or camelCase wire keys."""
    attr = _WIRE_TO_ATTR.get(parameter, parameter)
    if attr not in NUMERIC_FIELDS:
        raise ValueError(
            f"Unknown parameter {parameter!r}; expected one of {sorted(PARAMETER_LABELS)}"
        )
    return attr


def parameter_label(parameter: str) -> str:
    """Axis label for ``parameter``; falls back to the name itself."""
    attr = _WIRE_TO_ATTR.get(parameter, parameter)
    return PARAMETER_LABELS.get(attr, parameter)


def pv_series(cycle: Sequence[CycleStateRecord]) -> Tuple[np.ndarray, np.ndarray]:
    """(volume [cm³], pressure [bar]) in cycle order."""
    volume = np.array([r.volume for r in cycle], dtype=float)
    pressure = np.array([r.pressure for r in cycle], dtype=float)
    return volume, pressure


def angle_series(
    cycle: Sequence[CycleStateRecord], parameter: str
) -> Tuple[np.ndarray, np.ndarray]:
    """(crank angle [deg], values of ``parameter``).

    Raises
    ------
    ValueError
        If ``parameter`` is not a numeric record field.
    """
    attr = _resolve_parameter(parameter)
    angles = np.array([r.angle for r in cycle], dtype=float)
    values = np.array([getattr(r, attr) for r in cycle], dtype=float)
    return angles, values


@dataclass(frozen=True)
class PhaseSegment:
    """Run of consecutive records sharing one stroke phase  [start, stop)."""

    phase: StrokePhase
    start: int
    stop: int

    @property
    def color(self) -> str:
        return PHASE_COLORS[self.phase]


def phase_segments(cycle: Sequence[CycleStateRecord]) -> List[PhaseSegment]:
    """Split the cycle into contiguous same-phase index ranges."""
    segments: List[PhaseSegment] = []
    start = 0
    for i in range(1, len(cycle) + 1):
        if i == len(cycle) or cycle[i].stroke_phase is not cycle[start].stroke_phase:
            segments.append(PhaseSegment(cycle[start].stroke_phase, start, i))
            start = i
    return segments


def _flag(value: bool) -> str:
    return "●" if value else "○"


def table_rows(
    cycle: Sequence[CycleStateRecord], sample_every: int = 10
) -> List[List[object]]:
    """Rows matching TABLE_HEADERS, one for every ``sample_every``-th record."""
    if sample_every < 1:
        raise ValueError(f"sample_every must be ≥ 1, got {sample_every}")
    rows = []
    for r in cycle[::sample_every]:
        rows.append(
            [
                r.angle,
                r.volume,
                r.pressure,
                r.temperature,
                r.piston_position,
                r.piston_velocity,
                r.piston_acceleration,
                r.mass_in_cylinder,
                round(r.density, 2),
                r.heat_release,
                r.heat_release_total,
                r.heat_transfer_rate,
                r.heat_transfer_coefficient,
                r.surface_area,
                r.gas_velocity,
                r.compression_ratio,
                r.stroke_phase.value,
                _flag(r.intake_valve_open),
                _flag(r.exhaust_valve_open),
                _flag(r.combustion_active),
                r.cycle_progress,
            ]
        )
    return rows


# ── Rendering ────────────────────────────────────────────────────────────────


class EnginePlotter:
    """
    Renders cycle data with matplotlib.

    Supports:
    - P-V diagram coloured by stroke phase
    - Any record field against crank angle
    - A four-panel summary

    Every method returns the Figure.  Images are written when ``save_path``
    is given; the format follows its extension (.png, .svg, ...).
    """

    def __init__(self, style: str = "default", dpi: int = 300):
        if style != "default":
            try:
                plt.style.use(style)
            except OSError as e:
                logger.warning("Style '%s' not found, using default (%s)", style, e)
        self.dpi = dpi

    def _finish(self, fig, save_path: Optional[str], show: bool, what: str):
        fig.tight_layout()
        if save_path:
            fig.savefig(save_path, dpi=self.dpi, bbox_inches="tight")
            logger.info("%s saved to %s", what, save_path)
        if show:
            plt.show()
        return fig

    @staticmethod
    def _draw_pv(ax, cycle: Sequence[CycleStateRecord], color_phases: bool) -> None:
        volume, pressure = pv_series(cycle)
        if not color_phases:
            ax.plot(volume, pressure, "b-", linewidth=2, label="Otto Cycle")
            return
        for seg in phase_segments(cycle):
            # Include the next record so adjacent segments join up
            stop = min(seg.stop + 1, len(cycle))
            ax.plot(
                volume[seg.start : stop],
                pressure[seg.start : stop],
                color=seg.color,
                linewidth=2,
                label=seg.phase.value,
            )

    @staticmethod
    def _draw_stroke_boundaries(ax) -> None:
        for angle in STROKE_BOUNDARIES:
            ax.axvline(angle, color="k", linestyle="--", alpha=0.3)

    def plot_pv_diagram(
        self,
        cycle: Sequence[CycleStateRecord],
        performance: Optional[PerformanceSummary] = None,
        save_path: Optional[str] = None,
        show: bool = False,
        color_phases: bool = True,
    ):
        """
        Create P-V (Pressure-Volume) diagram.

        Args:
            cycle: Records of one complete cycle
            performance: Optional summary; adds an IMEP annotation
            save_path: Optional path to save figure
            show: Open an interactive window
            color_phases: Colour each stroke separately
        """
        fig, ax = plt.subplots(figsize=(10, 8))
        self._draw_pv(ax, cycle, color_phases)

        volume, pressure = pv_series(cycle)
        tdc_idx = int(np.argmax(pressure))
        ax.plot(volume[tdc_idx], pressure[tdc_idx], "ro", markersize=10, label="Peak")

        ax.set_xlabel("Volume (cm³)", fontsize=12, fontweight="bold")
        ax.set_ylabel("Pressure (bar)", fontsize=12, fontweight="bold")
        ax.set_title("P-V Diagram (Indicator Diagram)", fontsize=14, fontweight="bold")
        ax.grid(True, alpha=0.3)
        ax.legend(fontsize=10)

        if performance is not None:
            ax.text(
                0.05,
                0.95,
                f"IMEP = {performance.imep:.2f} bar",
                transform=ax.transAxes,
                fontsize=11,
                verticalalignment="top",
                bbox=dict(boxstyle="round", facecolor="wheat", alpha=0.5),
            )

        return self._finish(fig, save_path, show, "P-V diagram")

    def plot_angle_parameter(
        self,
        cycle: Sequence[CycleStateRecord],
        parameter: str = "pressure",
        save_path: Optional[str] = None,
        show: bool = False,
    ):
        """
        Plot any numeric record field against crank angle.

        Raises:
            ValueError: If ``parameter`` is not a numeric record field.
        """
        angles, values = angle_series(cycle, parameter)
        label = parameter_label(parameter)

        fig, ax = plt.subplots(figsize=(12, 6))
        ax.plot(angles, values, "b-", linewidth=2)
        self._draw_stroke_boundaries(ax)

        ax.set_xlabel("Crank Angle (degrees)", fontsize=12, fontweight="bold")
        ax.set_ylabel(label, fontsize=12, fontweight="bold")
        ax.set_title(f"{label} vs Crank Angle", fontsize=14, fontweight="bold")
        ax.set_xlim(0, 720)
        ax.grid(True, alpha=0.3)

        return self._finish(fig, save_path, show, f"{label} plot")

    def plot_comprehensive_analysis(
        self,
        cycle: Sequence[CycleStateRecord],
        performance: Optional[PerformanceSummary] = None,
        save_path: Optional[str] = None,
        show: bool = False,
    ):
        """
        Create comprehensive 4-panel analysis plot.

        Args:
            cycle: Records of one complete cycle
            performance: Optional summary shown in the title
            save_path: Optional path to save figure
            show: Open an interactive window
        """
        fig = plt.figure(figsize=(16, 12))
        gs = GridSpec(2, 2, figure=fig, hspace=0.3, wspace=0.3)

        ax1 = fig.add_subplot(gs[0, 0])
        self._draw_pv(ax1, cycle, color_phases=True)
        ax1.set_xlabel("Volume (cm³)", fontweight="bold")
        ax1.set_ylabel("Pressure (bar)", fontweight="bold")
        ax1.set_title("P-V Diagram", fontweight="bold")
        ax1.legend(fontsize=9)
        ax1.grid(True, alpha=0.3)

        panels = (
            (gs[0, 1], "pressure", "b-"),
            (gs[1, 0], "temperature", "r-"),
            (gs[1, 1], "heat_release_total", "g-"),
        )
        for slot, parameter, style in panels:
            ax = fig.add_subplot(slot)
            angles, values = angle_series(cycle, parameter)
            ax.plot(angles, values, style, linewidth=2)
            self._draw_stroke_boundaries(ax)
            ax.set_xlabel("Crank Angle (deg)", fontweight="bold")
            ax.set_ylabel(PARAMETER_LABELS[parameter], fontweight="bold")
            ax.set_title(f"{PARAMETER_LABELS[parameter]} vs Crank Angle", fontweight="bold")
            ax.grid(True, alpha=0.3)

        title = "Comprehensive Engine Cycle Analysis"
        if performance is not None:
            title += (
                f"\nBrake {performance.brake_power:.1f} kW · "
                f"Torque {performance.brake_torque:.0f} N·m · "
                f"IMEP {performance.imep:.2f} bar"
            )
        fig.suptitle(title, fontsize=16, fontweight="bold")

        return self._finish(fig, save_path, show, "Comprehensive analysis")
