"""
Basic Otto-Cycle Simulation Examples
Demonstrates simple usage of the simulation framework.

Author: Mohith Sai Gorla
Date:   16-10-2026
"""

import logging
import os

import matplotlib

# Headless environment check for plot exports
if "DISPLAY" not in os.environ and os.name != "nt":
    matplotlib.use("Agg")

import matplotlib.pyplot as plt

from otto_cycle_simulator.engine_config import (
    EngineParameters,
    SimulationSettings,
    create_default_diesel_inline_6,
)
from otto_cycle_simulator.performance import compute_performance
from otto_cycle_simulator.simulator import SimulationWorker, run_simulation
from otto_cycle_simulator.thermodynamics import generate_cycle
from otto_cycle_simulator.utilities import DataExporter
from otto_cycle_simulator.visualization import EnginePlotter, table_rows, TABLE_HEADERS


def example_1_default_engine():
    """Example 1: Default spark-ignition engine at 0.1° resolution"""

    print("=" * 70)
    print("EXAMPLE 1: Default Spark-Ignition Engine")
    print("=" * 70)
    print()

    result = run_simulation({"bore": 86, "stroke": 86, "compressionRatio": 10.5})
    print(
        DataExporter.create_performance_report(
            result.parameters, result.performance, result.emissions
        )
    )

    plotter = EnginePlotter()
    plotter.plot_pv_diagram(
        result.cycle, result.performance, save_path="./example1_pv_diagram.png"
    )
    plotter.plot_angle_parameter(
        result.cycle, "pressure", save_path="./example1_pressure.png"
    )

    DataExporter.export_cycle_to_csv(result.cycle, "./example1_cycle_data.csv")
    DataExporter.export_result_to_json(result, "./example1_result.json")

    return result


def example_2_diesel_reference():
    """Example 2: Heavy-duty diesel inline-6 at full load"""

    print("=" * 70)
    print("EXAMPLE 2: Heavy-Duty Diesel Inline-6")
    print("=" * 70)
    print()

    config = create_default_diesel_inline_6()
    result = run_simulation(config.parameters, config.simulation, config.calibration)
    perf = result.performance

    print(f"  Brake Power:       {perf.brake_power:.1f} kW")
    print(f"  Brake Torque:      {perf.brake_torque:.0f} N·m")
    print(f"  Peak Pressure:     {perf.peak_pressure:.1f} bar at {perf.peak_pressure_angle:.1f}°")
    print(f"  Peak Temperature:  {perf.peak_temperature:.0f} K")
    print()

    # Every 10th record, as shown in the data table
    rows = table_rows(result.cycle)
    print("  " + " | ".join(TABLE_HEADERS[:4]))
    for row in rows[360:372]:
        print("  " + " | ".join(str(v) for v in row[:4]))
    print()

    EnginePlotter().plot_comprehensive_analysis(
        result.cycle, perf, save_path="./example2_comprehensive.png"
    )
    return result


def example_3_worker_protocol():
    """Example 3: Message-driven run as a front end would issue it"""

    print("=" * 70)
    print("EXAMPLE 3: Worker Message Protocol")
    print("=" * 70)
    print()

    def post(message):
        if message["type"] == "simulation_progress":
            return
        print(f"  ← {message['type']}")

    worker = SimulationWorker(post)
    try:
        future = worker.handle_message(
            {"type": "simulate", "data": {"engineSpeed": 4500, "load": 90, "intakeTemp": 303.15}}
        )
        result = future.result()
        print(f"  Brake Power: {result.performance.brake_power:.1f} kW")
        worker.handle_message({"type": "simulate", "data": {"bore": 10}})
    finally:
        worker.close()


def example_4_load_sweep():
    """Example 4: Brake power and peak pressure across load"""

    print("=" * 70)
    print("EXAMPLE 4: Load Sweep")
    print("=" * 70)
    print()

    loads = [0, 25, 50, 75, 100]
    powers = []
    peaks = []
    settings = SimulationSettings(step_size=0.5)
    for load in loads:
        params = EngineParameters(load=float(load))
        cycle = generate_cycle(params, step_size=settings.step_size)
        perf = compute_performance(cycle, params)
        powers.append(perf.brake_power)
        peaks.append(perf.peak_pressure)
        print(f"  Load {load:3d} %: {perf.brake_power:6.1f} kW, peak {perf.peak_pressure:6.1f} bar")

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 5))
    ax1.plot(loads, powers, "bo-", linewidth=2)
    ax1.set_xlabel("Load (%)", fontweight="bold")
    ax1.set_ylabel("Brake Power (kW)", fontweight="bold")
    ax1.set_title("Power vs Load", fontweight="bold")
    ax1.grid(True, alpha=0.3)

    ax2.plot(loads, peaks, "ro-", linewidth=2)
    ax2.set_xlabel("Load (%)", fontweight="bold")
    ax2.set_ylabel("Peak Pressure (bar)", fontweight="bold")
    ax2.set_title("Peak Pressure vs Load", fontweight="bold")
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig("./example4_load_sweep.png", dpi=300)
    plt.close(fig)

    print("\nLoad sweep complete!")


def main():
    """Run all examples"""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("\n")
    print("╔" + "═" * 68 + "╗")
    print("║" + " " * 18 + "OTTO CYCLE SIMULATION EXAMPLES" + " " * 20 + "║")
    print("╚" + "═" * 68 + "╝")
    print("\n")

    example_1_default_engine()
    print("\n" + "─" * 70 + "\n")

    example_2_diesel_reference()
    print("\n" + "─" * 70 + "\n")

    example_3_worker_protocol()
    print("\n" + "─" * 70 + "\n")

    example_4_load_sweep()

    print("\n" + "═" * 70)
    print("All examples completed successfully!")
    print("═" * 70 + "\n")


if __name__ == "__main__":
    main()
