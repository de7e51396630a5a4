"""
CLI entry point for otto_cycle_simulator.
"""
import argparse
import logging
import sys

from .engine_config import PRESETS, EngineConfiguration, SimulationSettings
from .exceptions import EngineSimulationError
from .simulator import run_simulation
from .utilities import DataExporter, UnitConverter

logger = logging.getLogger("otto_cycle_simulator")

# CLI option → request key
OVERRIDES = {
    "bore": "bore",
    "stroke": "stroke",
    "compression_ratio": "compressionRatio",
    "cylinders": "cylinders",
    "rpm": "engineSpeed",
    "load": "load",
    "rod_length": "connectingRodLength",
}


def build_request(config: EngineConfiguration, args: argparse.Namespace) -> dict:
    """Preset parameters with command-line overrides applied."""
    request = config.parameters.to_request()
    if args.stroke is not None and args.rod_length is None:
        # Re-derive the rod length from the new stroke
        del request["connectingRodLength"]
    if args.compression_ratio is not None:
        # Let the new ratio select the engine family
        del request["variant"]
    for option, key in OVERRIDES.items():
        value = getattr(args, option)
        if value is not None:
            request[key] = value
    if args.intake_temp is not None:
        request["intakeTemp"] = UnitConverter.celsius_to_kelvin(args.intake_temp)
    return request


def run(args: argparse.Namespace) -> int:
    if args.config:
        config = EngineConfiguration.from_json(args.config)
    else:
        config = PRESETS[args.preset]()

    request = build_request(config, args)
    settings = config.simulation
    if args.step is not None:
        settings = SimulationSettings(
            step_size=args.step, progress_interval_deg=settings.progress_interval_deg
        )

    result = run_simulation(request, settings, config.calibration)

    print(
        DataExporter.create_performance_report(
            result.parameters, result.performance, result.emissions, result.cycle
        )
    )

    if args.json:
        DataExporter.export_result_to_json(result, args.json)
    if args.csv:
        DataExporter.export_cycle_to_csv(result.cycle, args.csv)
    if args.plot:
        # Imported lazily so that text-only runs never load matplotlib
        from .visualization import EnginePlotter

        EnginePlotter().plot_comprehensive_analysis(
            result.cycle, result.performance, save_path=args.plot
        )
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Otto-cycle crank-angle simulator")
    parser.add_argument("--preset", choices=sorted(PRESETS), default="inline4", help="Engine preset to run (default: inline4)")
    parser.add_argument("--config", help="JSON configuration file (overrides --preset)")
    parser.add_argument("--bore", type=float, help="Bore in mm")
    parser.add_argument("--stroke", type=float, help="Stroke in mm")
    parser.add_argument("--compression-ratio", type=float, help="Geometric compression ratio")
    parser.add_argument("--cylinders", type=int, help="Number of cylinders")
    parser.add_argument("--rpm", type=float, help="Engine speed in RPM")
    parser.add_argument("--load", type=float, help="Load in percent (0-100)")
    parser.add_argument("--intake-temp", type=float, help="Intake temperature in °C")
    parser.add_argument("--rod-length", type=float, help="Connecting rod length in mm")
    parser.add_argument("--step", type=float, help="Crank-angle step in degrees (default: 0.1)")
    parser.add_argument("--json", help="Write the full result to this JSON file")
    parser.add_argument("--csv", help="Write the cycle records to this CSV file")
    parser.add_argument("--plot", help="Save the four-panel analysis chart (.png/.svg)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return run(args)
    except (EngineSimulationError, OSError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
