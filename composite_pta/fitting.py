"""Weighted Levenberg-Marquardt fitting of model curves to observed data.

The residual compares observed and model curves on a log scale:

    r_p = (ln p_obs - ln p_model) * w
    r_d = (ln d_obs - ln d_model) * (1 - w)

with ``w`` in [0, 1] balancing pressure against derivative. Samples where
either side is not positive contribute zero.

Fit lifecycle:

    IDLE -> RUNNING -> {CONVERGED | CANCELLED | MAX_ITER_REACHED | STALLED} -> IDLE

Cancellation is cooperative: the cancel flag is checked once per outer
iteration, so an iteration in flight always completes.
"""

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Union

import numpy as np
from joblib import Parallel, delayed

from .config import AnalysisDefaults, FitConfig
from .logging_config import get_logger
from .observed import ObservedSeries
from .parameters import FitParameter, ParameterSet, parameter_map, preprocess_parameters
from .sampling import SamplingInterval, log_sample
from .solver import CurveResult, ModelSolver
from .variants import ModelVariant

logger = get_logger(__name__)

LINEAR_STEP_PARAMETERS = ("S", "nf")
POSITIVE_EPS = 1e-10


class FitState(str, Enum):
    """Fit session state."""

    IDLE = "idle"
    RUNNING = "running"
    CONVERGED = "converged"
    CANCELLED = "cancelled"
    MAX_ITER_REACHED = "max_iter_reached"
    STALLED = "stalled"


@dataclass
class FitResult:
    """Outcome of a fit.

    Attributes:
        parameters: Final parameter values (name -> value)
        error: Final mean squared residual
        iterations: Completed outer iterations
        state: Terminal state
        message: Status message
        curve: Model curve at the full observed time resolution
        fit_parameters: Final FitParameter list (values updated)
    """

    parameters: Dict[str, float]
    error: float
    iterations: int
    state: FitState
    message: str = ""
    curve: Optional[CurveResult] = None
    fit_parameters: List[FitParameter] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.state is FitState.CONVERGED


@dataclass(frozen=True)
class IterationUpdate:
    """Emitted for the initial guess, every accepted step and the final curve."""

    error: float
    parameters: Dict[str, float]
    curve: CurveResult
    iteration: int


@dataclass(frozen=True)
class Progress:
    percent: int


@dataclass(frozen=True)
class Finished:
    result: FitResult


FitEvent = Union[IterationUpdate, Progress, Finished]
EventCallback = Callable[[FitEvent], None]


@dataclass
class FitSession:
    """Mutable state of one running fit; discarded when the fit ends."""

    parameters: ParameterSet
    error: float = float("inf")
    damping: float = 0.01
    iteration: int = 0
    cancel_event: threading.Event = field(default_factory=threading.Event)
    state: FitState = FitState.IDLE


def compute_residuals(
    observed_pressure,
    observed_derivative,
    model_pressure,
    model_derivative,
    weight: float,
) -> np.ndarray:
    """Weighted log-ratio residuals: pressure block followed by derivative block."""
    obs_p = np.asarray(observed_pressure, dtype=float)
    obs_d = np.asarray(observed_derivative, dtype=float)
    mod_p = np.asarray(model_pressure, dtype=float)
    mod_d = np.asarray(model_derivative, dtype=float)

    n_p = min(len(obs_p), len(mod_p))
    n_d = min(len(obs_d), len(mod_d), n_p)

    def block(obs: np.ndarray, mod: np.ndarray, w: float) -> np.ndarray:
        ok = (obs > POSITIVE_EPS) & (mod > POSITIVE_EPS)
        with np.errstate(divide="ignore", invalid="ignore"):
            r = (np.log(np.where(ok, obs, 1.0)) - np.log(np.where(ok, mod, 1.0))) * w
        return np.where(ok, r, 0.0)

    return np.concatenate(
        [
            block(obs_p[:n_p], mod_p[:n_p], weight),
            block(obs_d[:n_d], mod_d[:n_d], 1.0 - weight),
        ]
    )


def sum_squared_error(residuals) -> float:
    r = np.asarray(residuals, dtype=float)
    return float(np.dot(r, r))


def _mean_squared(sse: float, n: int) -> float:
    return sse / n if n else 0.0


def _uses_log_step(name: str, value: float) -> bool:
    return value > 1e-12 and name not in LINEAR_STEP_PARAMETERS


class LevenbergMarquardtFitter:
    """Fits FitParameter lists to an observed series.

    Args:
        observed: Observed series (may be set later with :meth:`set_observed`)
        solver: Model solver (default: ModelSolver())
        config: LM controls (default: FitConfig())
        defaults: Session defaults for parameter preprocessing
        intervals: Custom sampling intervals; None uses the point budget

    Example:
        >>> fitter = LevenbergMarquardtFitter(observed)
        >>> result = fitter.fit(variant, default_fit_parameters(variant), weight=0.5)
        >>> result.state, result.parameters["kf"]
    """

    def __init__(
        self,
        observed: Optional[ObservedSeries] = None,
        solver: Optional[ModelSolver] = None,
        config: Optional[FitConfig] = None,
        defaults: Optional[AnalysisDefaults] = None,
        intervals: Optional[Sequence[SamplingInterval]] = None,
    ):
        self.observed = observed if observed is not None else ObservedSeries([], [], [])
        self.solver = solver or ModelSolver()
        self.config = config or FitConfig()
        self.defaults = defaults or AnalysisDefaults()
        self.intervals = list(intervals) if intervals is not None else None
        self._session: Optional[FitSession] = None
        self._task: Optional["FitTask"] = None

    @property
    def session(self) -> Optional[FitSession]:
        return self._session

    def set_observed(self, time, pressure, derivative) -> None:
        self.observed = ObservedSeries(time, pressure, derivative)

    def sampled_observations(self):
        """Log-sampled (time, pressure, derivative) used inside the fit loop."""
        return log_sample(
            self.observed.time,
            self.observed.pressure,
            self.observed.derivative,
            intervals=self.intervals,
            target_count=self.config.target_count,
        )

    def model_curve(
        self,
        variant: ModelVariant,
        params: ParameterSet,
        time=None,
        n_jobs: Optional[int] = None,
    ) -> CurveResult:
        """Curve for raw parameters (preprocessed first)."""
        solver_params = preprocess_parameters(params, variant, self.defaults)
        return self.solver.calculate_theoretical_curve(variant, solver_params, time, n_jobs)

    def residuals(
        self,
        variant: ModelVariant,
        params: ParameterSet,
        weight: float,
        t: np.ndarray,
        obs_p: np.ndarray,
        obs_d: np.ndarray,
        n_jobs: Optional[int] = None,
    ) -> np.ndarray:
        if len(t) == 0:
            return np.zeros(0)
        curve = self.model_curve(variant, params, t, n_jobs)
        return compute_residuals(obs_p, obs_d, curve.pressure, curve.derivative, weight)

    def _jacobian_column(
        self,
        name: str,
        variant: ModelVariant,
        params: ParameterSet,
        weight: float,
        t: np.ndarray,
        obs_p: np.ndarray,
        obs_d: np.ndarray,
        n_res: int,
    ) -> np.ndarray:
        value = params[name]
        plus, minus = dict(params), dict(params)
        if _uses_log_step(name, value):
            h = self.config.log_step
            plus[name] = 10.0 ** (np.log10(value) + h)
            minus[name] = 10.0 ** (np.log10(value) - h)
        else:
            h = self.config.linear_step
            plus[name] = value + h
            minus[name] = value - h

        r_plus = self.residuals(variant, plus, weight, t, obs_p, obs_d, n_jobs=1)
        r_minus = self.residuals(variant, minus, weight, t, obs_p, obs_d, n_jobs=1)
        if len(r_plus) != n_res or len(r_minus) != n_res:
            return np.zeros(n_res)
        return (r_plus - r_minus) / (2.0 * h)

    def jacobian(
        self,
        variant: ModelVariant,
        params: ParameterSet,
        names: Sequence[str],
        weight: float,
        t: np.ndarray,
        obs_p: np.ndarray,
        obs_d: np.ndarray,
        n_res: int,
    ) -> np.ndarray:
        """Central-difference Jacobian, one column per free parameter.

        Steps are 0.01 in log10 space for positive parameters and an absolute
        1e-4 for skin, fracture count and non-positive values.
        """
        args = (variant, params, weight, t, obs_p, obs_d, n_res)
        if self.config.n_jobs == 1 or len(names) == 1:
            columns = [self._jacobian_column(name, *args) for name in names]
        else:
            columns = Parallel(n_jobs=self.config.n_jobs, prefer="threads")(
                delayed(self._jacobian_column)(name, *args) for name in names
            )
        return np.column_stack(columns) if columns else np.zeros((n_res, 0))

    def _apply_step(
        self, params: ParameterSet, free: Sequence[FitParameter], delta: np.ndarray
    ) -> ParameterSet:
        trial = dict(params)
        for p, step in zip(free, delta):
            old = params[p.name]
            new = 10.0 ** (np.log10(old) + step) if _uses_log_step(p.name, old) else old + step
            trial[p.name] = p.clamped(float(new))
        return trial

    def fit(
        self,
        variant: ModelVariant,
        fit_parameters: Sequence[FitParameter],
        weight: float = 0.5,
        on_event: Optional[EventCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> FitResult:
        """Run the fit synchronously.

        Args:
            variant: Model variant
            fit_parameters: Starting parameters; ``is_fit`` marks free ones
            weight: Pressure weight w in [0, 1]; derivative gets 1 - w
            on_event: Callback receiving IterationUpdate/Progress/Finished
            cancel_event: Set to request cancellation between iterations

        Returns:
            FitResult in a terminal state
        """
        if not 0.0 <= weight <= 1.0:
            raise ValueError(f"weight must be in [0, 1], got {weight}")

        cfg = self.config
        emit = on_event or (lambda event: None)
        params = [replace(p) for p in fit_parameters]
        for i, p in enumerate(params):
            if p.is_free and not p.min <= p.value <= p.max:
                logger.warning(
                    f"Parameter {p.name}={p.value} outside [{p.min}, {p.max}]; clamping"
                )
                params[i] = replace(p, value=p.clamped(p.value))
        free = [p for p in params if p.is_free]
        names = [p.name for p in free]

        session = FitSession(
            parameters=parameter_map(params),
            damping=cfg.initial_lambda,
            cancel_event=cancel_event or threading.Event(),
            state=FitState.RUNNING,
        )
        self._session = session
        logger.info(f"Starting fit of {variant} ({len(free)} free parameters, w={weight})")

        try:
            if self.observed.is_empty:
                logger.warning("No observed data; nothing to fit")
                result = self._finish(
                    variant, session, params, FitState.STALLED, "No observed data", None
                )
                emit(Finished(result))
                return result

            t, obs_p, obs_d = self.sampled_observations()
            residuals = self.residuals(variant, session.parameters, weight, t, obs_p, obs_d)
            n_res = len(residuals)
            sse = sum_squared_error(residuals)
            session.error = _mean_squared(sse, n_res)
            emit(
                IterationUpdate(
                    session.error,
                    dict(session.parameters),
                    self.model_curve(variant, session.parameters, t),
                    0,
                )
            )

            if not free:
                state, message = FitState.STALLED, "No free parameters"
            else:
                state, message = self._iterate(
                    variant, session, free, names, weight, t, obs_p, obs_d, residuals, emit
                )

            result = self._finish(
                variant, session, params, state, message, self.observed.time
            )
            emit(
                IterationUpdate(
                    result.error, dict(result.parameters), result.curve, result.iterations
                )
            )
            emit(Finished(result))
            return result
        finally:
            session.state = FitState.IDLE
            self._session = None

    def _iterate(
        self,
        variant: ModelVariant,
        session: FitSession,
        free: List[FitParameter],
        names: List[str],
        weight: float,
        t: np.ndarray,
        obs_p: np.ndarray,
        obs_d: np.ndarray,
        residuals: np.ndarray,
        emit: EventCallback,
    ):
        cfg = self.config
        n_res = len(residuals)
        sse = sum_squared_error(residuals)
        lam = session.damping

        for iteration in range(cfg.max_iterations):
            session.iteration = iteration
            if session.cancel_event.is_set():
                return FitState.CANCELLED, "Fit cancelled"
            if _mean_squared(sse, n_res) < cfg.tolerance:
                return FitState.CONVERGED, "Error below tolerance"

            emit(Progress(iteration * 100 // cfg.max_iterations))

            jac = self.jacobian(
                variant, session.parameters, names, weight, t, obs_p, obs_d, n_res
            )
            hessian = jac.T @ jac
            gradient = jac.T @ residuals
            diag = np.abs(np.diag(hessian))

            accepted = False
            for _ in range(cfg.max_trials):
                damped = hessian + np.diag(lam * (1.0 + diag))
                try:
                    delta = np.linalg.solve(damped, -gradient)
                except np.linalg.LinAlgError:
                    lam *= 10.0
                    continue
                if not np.all(np.isfinite(delta)):
                    lam *= 10.0
                    continue

                trial = self._apply_step(session.parameters, free, delta)
                trial_res = self.residuals(variant, trial, weight, t, obs_p, obs_d)
                trial_sse = sum_squared_error(trial_res)

                if len(trial_res) == n_res and trial_sse < sse:
                    sse, residuals = trial_sse, trial_res
                    session.parameters = trial
                    session.error = _mean_squared(sse, n_res)
                    lam /= 10.0
                    accepted = True
                    logger.debug(
                        f"Iteration {iteration + 1}: mse={session.error:.6g}, lambda={lam:.3g}"
                    )
                    emit(
                        IterationUpdate(
                            session.error,
                            dict(trial),
                            self.model_curve(variant, trial, t),
                            iteration + 1,
                        )
                    )
                    break
                lam *= 10.0

            session.damping = lam
            session.iteration = iteration + 1
            if not accepted and lam > cfg.max_lambda:
                return FitState.STALLED, f"No improving step (lambda={lam:.3g})"

        if _mean_squared(sse, n_res) < cfg.tolerance:
            return FitState.CONVERGED, "Error below tolerance"
        return FitState.MAX_ITER_REACHED, f"Stopped after {cfg.max_iterations} iterations"

    def _finish(
        self,
        variant: ModelVariant,
        session: FitSession,
        params: List[FitParameter],
        state: FitState,
        message: str,
        full_time,
    ) -> FitResult:
        final = dict(session.parameters)
        if "Lf" in final and final.get("L", 0.0) > 1e-9:
            final["LfD"] = final["Lf"] / final["L"]
        curve = (
            self.model_curve(variant, final, full_time)
            if full_time is not None
            else CurveResult.zeros([])
        )
        fitted = [replace(p, value=final.get(p.name, p.value)) for p in params]
        error = 0.0 if session.error == float("inf") else session.error
        log = logger.info if state in (FitState.CONVERGED, FitState.CANCELLED) else logger.warning
        log(f"Fit finished: {state.value} after {session.iteration} iterations, mse={error:.6g}")
        return FitResult(
            parameters=final,
            error=error,
            iterations=session.iteration,
            state=state,
            message=message,
            curve=curve,
            fit_parameters=fitted,
        )

    def start_fit(
        self,
        variant: ModelVariant,
        fit_parameters: Sequence[FitParameter],
        weight: float = 0.5,
    ) -> "FitTask":
        """Run the fit on a background worker and return its task handle."""
        if self._task is not None and not self._task.done():
            raise RuntimeError("A fit is already running")
        self._task = FitTask(self, variant, fit_parameters, weight)
        return self._task

    def stop_fit(self) -> None:
        """Request cancellation of the running fit."""
        if self._task is not None:
            self._task.cancel()
        if self._session is not None:
            self._session.cancel_event.set()


class FitTask:
    """Handle of a fit running on a single background worker thread.

    Events are queued as they are emitted; :meth:`events` yields them until
    the Finished event.
    """

    def __init__(
        self,
        fitter: LevenbergMarquardtFitter,
        variant: ModelVariant,
        fit_parameters: Sequence[FitParameter],
        weight: float,
    ):
        self._events: "queue.Queue[FitEvent]" = queue.Queue()
        self._cancel = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fit")
        self._future = self._executor.submit(
            fitter.fit,
            variant,
            list(fit_parameters),
            weight,
            self._events.put,
            self._cancel,
        )
        self._executor.shutdown(wait=False)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> FitResult:
        return self._future.result(timeout)

    def events(self, poll_interval: float = 0.1) -> Iterator[FitEvent]:
        """Yield events in emission order, ending after Finished.

        Re-raises the worker's exception if the fit failed.
        """
        while True:
            try:
                event = self._events.get(timeout=poll_interval)
            except queue.Empty:
                if self._future.done() and self._events.empty():
                    self._future.result()
                    return
                continue
            yield event
            if isinstance(event, Finished):
                return
