"""
Simulator Module
Simulation runs, session ownership and the message-based worker protocol.

Author: Mohith Sai Gorla
Date:   16-10-2026

A run is validate → generate → aggregate, executed synchronously.  The
session moves runs onto a single background thread so that a caller can keep
accepting input, and guarantees that at most one run is active: submitting a
new request cancels the previous one between steps.

Worker protocol
---------------
Incoming  {"type": "simulate", "data": {request}}   start a run
          {"type": "stop"}                           cancel the active run
Outgoing  {"type": "simulation_started",   "data": {"timestamp": iso}}
          {"type": "simulation_progress",  "data": {"progress": pct}}
          {"type": "simulation_complete",  "data": result.to_dict()}
          {"type": "simulation_error",     "data": {"error": message}}
          {"type": "simulation_cancelled", "data": {"timestamp": iso}}
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .engine_config import (
    CycleCalibration,
    EngineConfiguration,
    EngineParameters,
    SimulationSettings,
)
from .exceptions import EngineSimulationError, SimulationCancelled
from .kinematics import EngineGeometry
from .performance import (
    EmissionsSummary,
    PerformanceSummary,
    compute_emissions,
    compute_performance,
)
from .thermodynamics import CycleStateGenerator, CycleStateRecord

logger = logging.getLogger(__name__)

Request = Union[Mapping[str, Any], EngineParameters]
ProgressCallback = Callable[[float], None]
PostMessage = Callable[[Dict[str, Any]], None]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SimulationResult:
    """Everything one run produced.  Immutable once returned."""

    parameters: EngineParameters
    cycle: Tuple[CycleStateRecord, ...]
    performance: PerformanceSummary
    emissions: EmissionsSummary
    timestamp: str = field(default_factory=_utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Result payload  {cycle, performance, emissions, timestamp}."""
        return {
            "cycle": [record.to_dict() for record in self.cycle],
            "performance": self.performance.to_dict(),
            "emissions": self.emissions.to_dict(),
            "timestamp": self.timestamp,
        }


def resolve_parameters(request: Request) -> EngineParameters:
    """Accept either a camelCase request mapping or ready parameters.

    Raises
    ------
    ValidationError
        If the request mapping holds invalid values.
    """
    if isinstance(request, EngineParameters):
        return request
    return EngineParameters.from_request(request)


def run_simulation(
    request: Request,
    settings: Optional[SimulationSettings] = None,
    calibration: Optional[CycleCalibration] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SimulationResult:
    """Run one complete simulation.

    Parameters
    ----------
    request      : camelCase request mapping or EngineParameters
    settings     : step size and progress interval
    calibration  : empirical model constants
    on_progress  : called with the cycle progress [%]
    cancel_event : set from another thread to stop the run between steps

    Returns
    -------
    SimulationResult

    Raises
    ------
    ValidationError
        Before any computation if a parameter is invalid.
    ComputationError
        If a cycle quantity becomes non-finite.
    SimulationCancelled
        If ``cancel_event`` is set while the cycle is being generated.
    """
    settings = settings if settings is not None else SimulationSettings()
    calibration = calibration if calibration is not None else CycleCalibration()

    params = resolve_parameters(request)
    geometry = EngineGeometry.from_parameters(params)
    logger.info(
        "Simulating %.0f×%.0f mm, CR %.1f, %d cyl at %.0f rpm, %.0f %% load",
        params.bore,
        params.stroke,
        params.compression_ratio,
        params.cylinders,
        params.engine_speed,
        params.load,
    )

    generator = CycleStateGenerator(params, calibration, geometry)
    cycle = generator.generate(
        settings.step_size,
        progress_callback=on_progress,
        progress_interval_deg=settings.progress_interval_deg,
        cancel_event=cancel_event,
    )
    performance = compute_performance(cycle, params, calibration, geometry)
    emissions = compute_emissions(cycle, params)

    logger.info(
        "Simulation complete: %.1f kW brake, peak %.1f bar",
        performance.brake_power,
        performance.peak_pressure,
    )
    return SimulationResult(params, cycle, performance, emissions)


# ── Session ──────────────────────────────────────────────────────────────────


class SimulationSession:
    """Owns the current parameters and last result of an interactive session.

    Runs execute on a single background thread.  ``submit`` supersedes any
    active run: its cancel event is set and its future resolves with
    SimulationCancelled.  Only the newest run may update ``last_result``.
    """

    def __init__(
        self,
        configuration: Optional[EngineConfiguration] = None,
    ) -> None:
        configuration = configuration if configuration is not None else EngineConfiguration()
        self.settings = configuration.simulation
        self.calibration = configuration.calibration
        self._parameters = configuration.parameters
        self._last_result: Optional[SimulationResult] = None

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="otto-sim")
        self._lock = threading.Lock()
        self._active_future: Optional[Future] = None
        self._active_cancel: Optional[threading.Event] = None

    # ── State ─────────────────────────────────────────────────────────────

    @property
    def parameters(self) -> EngineParameters:
        return self._parameters

    @property
    def last_result(self) -> Optional[SimulationResult]:
        return self._last_result

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._active_future is not None and not self._active_future.done()

    def update_parameters(self, changes: Mapping[str, Any]) -> EngineParameters:
        """Merge camelCase ``changes`` into the current parameters.

        The current parameters are only replaced if the merged set validates.
        A new ``compressionRatio`` without a ``variant`` re-selects the family.
        """
        request = self._parameters.to_request()
        if "compressionRatio" in changes and "variant" not in changes:
            del request["variant"]
        request.update(changes)
        self._parameters = EngineParameters.from_request(request)
        return self._parameters

    # ── Runs ──────────────────────────────────────────────────────────────

    def submit(
        self,
        request: Optional[Request] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "Future[SimulationResult]":
        """Start a run in the background, cancelling any active one.

        ``request`` defaults to the session's current parameters; when given
        it becomes the current parameters once it validates.

        Raises
        ------
        ValidationError
            Synchronously, if ``request`` is invalid.  The active run is then
            left untouched.
        """
        params = self._parameters if request is None else resolve_parameters(request)
        self._parameters = params

        cancel_event = threading.Event()
        with self._lock:
            if self._active_future is not None and not self._active_future.done():
                self._active_cancel.set()
                logger.debug("Superseding active simulation run")
            future = self._executor.submit(self._execute, params, on_progress, cancel_event)
            self._active_future = future
            self._active_cancel = cancel_event
        return future

    def run(
        self,
        request: Optional[Request] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SimulationResult:
        """Submit and wait for the result."""
        return self.submit(request, on_progress).result()

    def cancel(self) -> bool:
        """Signal the active run to stop.  Returns False if none is active."""
        with self._lock:
            if self._active_future is None or self._active_future.done():
                return False
            self._active_cancel.set()
            return True

    def _execute(
        self,
        params: EngineParameters,
        on_progress: Optional[ProgressCallback],
        cancel_event: threading.Event,
    ) -> SimulationResult:
        if cancel_event.is_set():
            raise SimulationCancelled("Simulation superseded before it started")
        result = run_simulation(
            params, self.settings, self.calibration, on_progress, cancel_event
        )
        with self._lock:
            # A run superseded after its last step must not overwrite newer state
            if cancel_event is self._active_cancel:
                self._last_result = result
        return result

    def close(self) -> None:
        """Cancel the active run and release the worker thread."""
        self.cancel()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "SimulationSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ── Worker protocol ──────────────────────────────────────────────────────────


class SimulationWorker:
    """Message adapter between a transport and a SimulationSession.

    ``post_message`` receives every outgoing message as a plain dict and may
    be called from the session's worker thread.
    """

    def __init__(
        self,
        post_message: PostMessage,
        session: Optional[SimulationSession] = None,
    ) -> None:
        self.post_message = post_message
        self.session = session if session is not None else SimulationSession()

    def handle_message(self, message: Mapping[str, Any]) -> Optional[Future]:
        """Dispatch one incoming message.

        Returns the run's future for ``simulate`` and None otherwise.
        """
        msg_type = message.get("type")
        if msg_type == "simulate":
            return self._simulate(message.get("data") or {})
        if msg_type == "stop":
            if not self.session.cancel():
                logger.debug("Stop requested with no active simulation")
            return None
        logger.warning("Unknown worker message type: %r", msg_type)
        return None

    def _post(self, msg_type: str, data: Dict[str, Any]) -> None:
        self.post_message({"type": msg_type, "data": data})

    def _simulate(self, request: Mapping[str, Any]) -> Optional[Future]:
        self._post("simulation_started", {"timestamp": _utc_timestamp()})
        try:
            future = self.session.submit(
                request,
                on_progress=lambda pct: self._post(
                    "simulation_progress", {"progress": pct}
                ),
            )
        except EngineSimulationError as exc:
            logger.warning("Simulation rejected: %s", exc)
            self._post("simulation_error", {"error": str(exc)})
            return None
        future.add_done_callback(self._report)
        return future

    def _report(self, future: Future) -> None:
        exc = future.exception()
        if exc is None:
            self._post("simulation_complete", future.result().to_dict())
        elif isinstance(exc, SimulationCancelled):
            self._post("simulation_cancelled", {"timestamp": _utc_timestamp()})
        else:
            logger.error("Simulation failed: %s", exc)
            self._post("simulation_error", {"error": str(exc)})

    def close(self) -> None:
        self.session.close()
