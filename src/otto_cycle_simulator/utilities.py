"""
Utilities Module
Unit conversion, result export and text reporting.

Author: Mohith Sai Gorla
Date:   16-10-2026
"""

import csv
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .engine_config import EngineParameters
from .kinematics import EngineGeometry
from .performance import EmissionsSummary, PerformanceSummary
from .thermodynamics import WIRE_KEYS, CycleStateRecord

logger = logging.getLogger(__name__)


class UnitConverter:
    """
    Unit conversions used at the input and report boundaries.

    Temperatures are entered in °C and simulated in K; pressures are
    reported in bar and simulated in Pa.
    """

    CONVERSIONS = {
        "celsius_offset": 273.15,
        "bar_to_pa": 1.0e5,
        "pa_to_bar": 1.0e-5,
        # 1 hp = 550 ft·lbf/s
        "kw_to_hp": 1.0 / 0.74569987158227022,
        "hp_to_kw": 0.74569987158227022,
    }

    @staticmethod
    def celsius_to_kelvin(temp_c: float) -> float:
        return temp_c + UnitConverter.CONVERSIONS["celsius_offset"]

    @staticmethod
    def kelvin_to_celsius(temp_k: float) -> float:
        return temp_k - UnitConverter.CONVERSIONS["celsius_offset"]

    @staticmethod
    def bar_to_pa(value: float) -> float:
        return value * UnitConverter.CONVERSIONS["bar_to_pa"]

    @staticmethod
    def pa_to_bar(value: float) -> float:
        return value * UnitConverter.CONVERSIONS["pa_to_bar"]

    @staticmethod
    def kw_to_hp(value: float) -> float:
        return value * UnitConverter.CONVERSIONS["kw_to_hp"]

    @staticmethod
    def hp_to_kw(value: float) -> float:
        return value * UnitConverter.CONVERSIONS["hp_to_kw"]


class DataExporter:
    """
    Export simulation results to files.

    Supports: JSON (full result payload), CSV (one row per record), text report
    """

    @staticmethod
    def export_result_to_json(result: Any, filepath: str) -> None:
        """
        Write a result payload to JSON.

        Args:
            result: SimulationResult (anything with ``to_dict``) or a dict
            filepath: Output file path
        """
        data = result.to_dict() if hasattr(result, "to_dict") else result
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        logger.info("Result exported to %s", filepath)

    @staticmethod
    def export_cycle_to_csv(
        cycle: Sequence[CycleStateRecord],
        filepath: str,
        variables: Optional[List[str]] = None,
    ) -> None:
        """
        Export cycle records to CSV with a camelCase header row.

        Args:
            cycle: Records of one complete cycle
            filepath: Output file path
            variables: camelCase columns to export (None = all)

        Raises:
            ValueError: If no records are given or ``variables`` names an
                unknown column.
        """
        if not cycle:
            raise ValueError("No data to export")

        columns = list(WIRE_KEYS.values())
        if variables:
            unknown = [v for v in variables if v not in columns]
            if unknown:
                raise ValueError(f"Unknown CSV columns: {unknown}")
            columns = [c for c in columns if c in variables]

        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=columns, extrasaction="ignore")
            writer.writeheader()
            for record in cycle:
                writer.writerow(record.to_dict())

        logger.info("%d records exported to %s", len(cycle), filepath)

    @staticmethod
    def create_performance_report(
        params: EngineParameters,
        performance: PerformanceSummary,
        emissions: Optional[EmissionsSummary] = None,
        cycle: Optional[Sequence[CycleStateRecord]] = None,
    ) -> str:
        """
        Create formatted performance report string.

        Args:
            params: Parameters of the run
            performance: Cycle performance summary
            emissions: Optional emission indices
            cycle: Optional cycle records for the statistics section

        Returns:
            Formatted report string
        """
        geometry = EngineGeometry.from_parameters(params)

        report = []
        report.append("=" * 60)
        report.append("ENGINE PERFORMANCE REPORT")
        report.append("=" * 60)
        report.append("")

        report.append("ENGINE:")
        report.append("-" * 60)
        report.append(
            f"  Bore × Stroke:          {params.bore:.1f} × {params.stroke:.1f} mm "
            f"(B/S {geometry.bore_stroke_ratio:.2f})"
        )
        report.append(
            f"  Displacement:           {geometry.displacement_liters:.3f} L "
            f"({params.cylinders} cyl)"
        )
        report.append(f"  Compression Ratio:      {params.compression_ratio:.1f} : 1")
        report.append(
            f"  Operating Point:        {params.engine_speed:.0f} rpm, "
            f"{params.load:.0f} % load, "
            f"{UnitConverter.kelvin_to_celsius(params.intake_temperature):.1f} °C intake"
        )
        report.append("")

        report.append("POWER & EFFICIENCY:")
        report.append("-" * 60)
        report.append(
            f"  Indicated Power:        {performance.indicated_power:.2f} kW "
            f"({UnitConverter.kw_to_hp(performance.indicated_power):.2f} HP)"
        )
        report.append(
            f"  Brake Power:            {performance.brake_power:.2f} kW "
            f"({UnitConverter.kw_to_hp(performance.brake_power):.2f} HP)"
        )
        report.append(f"  Brake Torque:           {performance.brake_torque:.1f} N·m")
        report.append(f"  Thermal Efficiency:     {performance.thermal_efficiency:.2f}%")
        report.append(
            f"  Theoretical Efficiency: {performance.theoretical_efficiency:.2f}%"
        )
        report.append("")

        report.append("PEAK VALUES:")
        report.append("-" * 60)
        report.append(
            f"  Peak Pressure:          {performance.peak_pressure:.2f} bar "
            f"at {performance.peak_pressure_angle:.1f}°"
        )
        report.append(
            f"  Peak Temperature:       {performance.peak_temperature:.0f} K "
            f"({UnitConverter.kelvin_to_celsius(performance.peak_temperature):.0f} °C)"
        )
        report.append("")

        report.append("MEAN EFFECTIVE PRESSURE:")
        report.append("-" * 60)
        report.append(f"  IMEP:                   {performance.imep:.2f} bar")
        report.append(f"  BMEP:                   {performance.bmep:.2f} bar")
        report.append("")

        if emissions is not None:
            report.append("EMISSIONS (approximate indices):")
            report.append("-" * 60)
            report.append(f"  NOx:                    {emissions.nox:.3f}")
            report.append(f"  CO:                     {emissions.co:.3f}")
            report.append(f"  HC:                     {emissions.hc:.3f}")
            report.append(f"  PM:                     {emissions.pm:.3f}")
            report.append("")

        if cycle:
            report.append("CYCLE STATISTICS (mean / min / max):")
            report.append("-" * 60)
            for attr, label, unit in (
                ("pressure", "Pressure", "bar"),
                ("temperature", "Temperature", "K"),
                ("heat_transfer_coefficient", "Heat Transfer Coeff", "W/m²K"),
            ):
                stats = calculate_statistics([getattr(r, attr) for r in cycle])
                report.append(
                    f"  {label + ':':<23} {stats['mean']:.2f} / "
                    f"{stats['min']:.2f} / {stats['max']:.2f} {unit}"
                )
            report.append("")

        report.append("=" * 60)

        return "\n".join(report)


def calculate_statistics(data: Sequence[float]) -> Dict[str, float]:
    """
    Calculate basic statistics for a data series.

    Args:
        data: List or array of numerical data

    Returns:
        Dictionary of statistics

    Raises:
        ValueError: If ``data`` is empty.
    """
    data_array = np.asarray(data, dtype=float)
    if data_array.size == 0:
        raise ValueError("Cannot compute statistics of an empty series")

    return {
        "mean": float(np.mean(data_array)),
        "std": float(np.std(data_array, ddof=0)),
        "min": float(np.min(data_array)),
        "max": float(np.max(data_array)),
        "median": float(np.median(data_array)),
        "range": float(np.ptp(data_array)),
    }
