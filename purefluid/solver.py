import logging

import numpy as np
import equinox as eqx
import pysolver_view as psv
from scipy.optimize import brentq

from . import utils
from .helpers_props import (
    FluidState,
    PropertyPair,
    PRESSURE_PAIRS,
    VOLUME_PAIRS,
    TEMPERATURE_PAIRS,
    EXTENSIVE_PROPERTIES,
)
from .exceptions import InvalidTarget, ConvergenceFailure, OracleEvaluationError
from .substance import FINITE_DIFFERENCE_STEP, lever_rule_fraction, mix_saturation_states

logger = logging.getLogger(__name__)

# Default convergence settings
SOLVER_TOLERANCE = 1e-8
SOLVER_MAX_ITERATIONS = 50
SOLVER_MAX_RETRIES = 8

# Determinant of the reduced Jacobian below which the Newton step is not attempted
SINGULAR_JACOBIAN_THRESHOLD = 1e-14

# Largest factor by which temperature or density may change in one Newton step
MAX_STEP_RATIO = 10.0

# Number of points used to search for a bracket of the one-dimensional problems
BRACKET_SAMPLES = 24

# Root-finding methods. Methods other than 'newton' are delegated to pysolver_view
SOLVER_METHODS = ("newton", "hybr", "lm")


class SolverOptions(eqx.Module):
    """Settings of the state solver"""

    tolerance: float = SOLVER_TOLERANCE
    max_iterations: int = SOLVER_MAX_ITERATIONS
    max_retries: int = SOLVER_MAX_RETRIES
    method: str = "newton"
    print_convergence: bool = False

    def __check_init__(self):
        if not (utils.is_finite_float(self.tolerance) and self.tolerance > 0.0):
            raise ValueError(f"Solver tolerance must be a positive number. Received {self.tolerance}")
        if int(self.max_iterations) < 1:
            raise ValueError(f"max_iterations must be at least 1. Received {self.max_iterations}")
        if int(self.max_retries) < 0:
            raise ValueError(f"max_retries cannot be negative. Received {self.max_retries}")
        if self.method not in SOLVER_METHODS:
            raise ValueError(f"Invalid solver method '{self.method}'. Valid options are: {SOLVER_METHODS}")


class SolverResult(eqx.Module):
    """
    Outcome of a state calculation.

    Attributes
    ----------
    state : FluidState
        Converged state.
    iterations : int or None
        Number of iterations of the path that converged. None when the
        iterations are not reported by the external solver.
    path : str
        Strategy that produced the state: ``'direct'``, ``'saturation'``,
        ``'temperature'``, ``'pressure'``, ``'volume'``, ``'newton'`` or the
        name of the external solver method.
    residual : float
        Largest normalized residual at the converged state.
    phase_switch : bool
        True if the Newton iteration continued with the vapor fraction as
        unknown after entering the two-phase region.
    """

    state: FluidState
    iterations: int | None
    path: str
    residual: float
    phase_switch: bool = False


class _FlashCalculationResidual(psv.NonlinearSystemProblem):
    """Class to compute the residual of property calculations"""

    def __init__(self, solver, targets):
        self.solver = solver
        self.targets = targets

    def residual(self, x):
        # Ensure x can be indexed and contains exactly two elements
        if not hasattr(x, "__getitem__") or len(x) != 2:
            msg = f"Input x={x} must be a list, tuple or numpy array containing exactly two elements: density and temperature."
            raise ValueError(msg)

        # Unscale rho-T and compute properties
        rho = x[0] * self.solver.rho_scale
        T = x[1] * self.solver.T_scale
        state = self.solver.substance.properties_at(T, rho)
        return self.solver.residuals(state, self.targets)


class StateSolver:
    r"""
    Find the temperature-density point of a substance that matches two properties.

    Each property pair is first reduced to the cheapest formulation available:

    - pairs containing the temperature are solved along the isotherm in density
    - pairs containing the specific volume are solved along the isochore in temperature
    - pairs containing the pressure are solved along the isobar in temperature,
      computing the density from temperature and pressure at each trial point
    - the entropy-enthalpy pair is solved with a damped Newton method in
      temperature and density

    Inside the two-phase region the temperature (or the saturation temperature)
    is known and the vapor fraction follows from the lever rule, so the state is
    obtained without iterating. When a one-dimensional path cannot find a
    bracket of the root, the Newton method is used as fallback.

    The residuals are normalized as

    .. math::

        r_i = \frac{y_i(T, \rho) - y_i^*}{\max(|y_i^*|, \hat{y}_i)}

    where the scales :math:`\hat{y}_i` are built from the critical point of the
    substance (:math:`R T_c` for energies, :math:`R` for the entropy,
    :math:`p_c`, :math:`1/\rho_c` and :math:`T_c`).

    Parameters
    ----------
    substance : Substance
        Equation-of-state oracle.
    options : SolverOptions, optional
        Convergence settings.
    """

    def __init__(self, substance, options=None):
        self.substance = substance
        self.options = SolverOptions() if options is None else options
        scales = substance.scales
        self.T_scale = scales.T
        self.rho_scale = scales.rho
        energy_scale = substance.specific_gas_constant * scales.T
        self.property_scales = {
            "temperature": scales.T,
            "pressure": scales.p,
            "density": scales.rho,
            "specific_volume": 1.0 / scales.rho,
            "internal_energy": energy_scale,
            "enthalpy": energy_scale,
            "entropy": substance.specific_gas_constant,
        }

    # ------------------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------------------ #

    def solve(self, pair, value_1, value_2, initial_state, tol=None):
        """
        Compute the state that matches a pair of property values.

        Parameters
        ----------
        pair : PropertyPair or str
            Property pair, e.g. ``PropertyPair.HP`` or ``"HP"``.
        value_1, value_2 : float
            Target values in the order given by ``pair.properties``.
        initial_state : FluidState
            State used as initial guess (usually the last committed state).
        tol : float, optional
            Convergence tolerance of the normalized residuals.

        Returns
        -------
        SolverResult
            Converged state and convergence information.

        Raises
        ------
        InvalidTarget
            If the target values cannot correspond to a physical state.
        ConvergenceFailure
            If no state matching the targets was found.
        """
        pair = PropertyPair.from_name(pair)
        tol = self._check_tolerance(tol)
        targets = self._validate_targets(pair, value_1, value_2)
        logger.debug(
            "Solving %s state of '%s' for %s",
            pair.name,
            self.substance.fluid_name,
            ", ".join(f"{k}={v:0.6e}" for k, v in targets.items()),
        )

        if pair in TEMPERATURE_PAIRS:
            return self._solve_temperature_pair(pair, targets, initial_state, tol)
        if pair in PRESSURE_PAIRS:
            return self._solve_pressure_pair(pair, targets, initial_state, tol)
        if pair in VOLUME_PAIRS:
            return self._solve_volume_pair(pair, targets, initial_state, tol)
        return self._solve_general(pair, targets, initial_state, tol)

    def solve_TP(self, T, p, phase_hint=None, tol=None):
        """Compute the state at given temperature and pressure"""
        tol = self._check_tolerance(tol)
        T = self._validate_temperature(T)
        p = self._validate_positive("pressure", p)
        rho = self.substance.density_from_TP(T, p, phase_hint=phase_hint)
        state = self.substance.properties_at(T, rho)
        targets = {"temperature": T, "pressure": p}
        return self._finish(state, 1, "pressure", targets, tol)

    def solve_saturation_T(self, T, x):
        """Compute the two-phase state at given temperature and vapor fraction"""
        T = self._validate_temperature(T)
        x = self._validate_vapor_fraction(x)
        if not self.substance.is_subcritical(T):
            raise InvalidTarget(
                f"Saturation state of '{self.substance.fluid_name}' requested at T={T} K, "
                f"outside the range between the triple point and the critical point",
                pair="TQ",
                values=(T, x),
            )
        liquid, vapor = self.substance.saturation_states(T)
        return SolverResult(state=mix_saturation_states(liquid, vapor, x), iterations=1, path="saturation", residual=0.0)

    def solve_saturation_p(self, p, x):
        """Compute the two-phase state at given pressure and vapor fraction"""
        p = self._validate_positive("pressure", p)
        x = self._validate_vapor_fraction(x)
        if not self.substance.is_subcritical_pressure(p):
            raise InvalidTarget(
                f"Saturation state of '{self.substance.fluid_name}' requested at p={p} Pa, "
                f"outside the range between the triple point and the critical point",
                pair="PQ",
                values=(p, x),
            )
        T = self.substance.saturation_temperature(p)
        liquid, vapor = self.substance.saturation_states(T)
        return SolverResult(state=mix_saturation_states(liquid, vapor, x), iterations=1, path="saturation", residual=0.0)

    def residuals(self, state, targets):
        """Normalized residuals of a state with respect to the target values"""
        return np.array([(state[name] - value) / self._scale(name, value) for name, value in targets.items()])

    # ------------------------------------------------------------------------------ #
    # One-dimensional paths
    # ------------------------------------------------------------------------------ #

    def _solve_temperature_pair(self, pair, targets, initial_state, tol):
        sub = self.substance
        T = targets["temperature"]
        name, value = self._other_target(targets, "temperature")

        # Temperature and volume define the state directly
        if name == "specific_volume":
            state = sub.properties_at(T, 1.0 / value)
            return self._finish(state, 1, "direct", targets, tol)

        def residual(log_rho):
            return self._residual_1d(sub.properties_at(T, np.exp(log_rho)), name, value)

        guess = np.log(initial_state.density)
        rho_min, rho_max = sub.density_limits
        if sub.is_subcritical(T):
            liquid, vapor = sub.saturation_states(T)
            x = lever_rule_fraction(value, liquid[name], vapor[name])
            if 0.0 <= x <= 1.0:
                mixture = mix_saturation_states(liquid, vapor, x)
                if initial_state.is_two_phase:
                    return self._finish(mixture, 1, "saturation", targets, tol)

                # Compressed liquid can match the same target outside the dome
                root = self._find_root(residual, np.log(liquid.density), np.log(rho_max), guess)
                if root is not None and abs(root[0] - guess) < abs(np.log(mixture.density) - guess):
                    log_rho, iterations = root
                    state = sub.properties_at(T, np.exp(log_rho))
                    return self._finish(state, iterations, "temperature", targets, tol)
                return self._finish(mixture, 1, "saturation", targets, tol)
            branches = [(liquid.density, rho_max), (rho_min, vapor.density)]
            if x > 1.0:
                branches.reverse()
        else:
            branches = [(rho_min, rho_max)]

        for rho_lo, rho_hi in branches:
            root = self._find_root(residual, np.log(rho_lo), np.log(rho_hi), guess)
            if root is not None:
                log_rho, iterations = root
                state = sub.properties_at(T, np.exp(log_rho))
                return self._finish(state, iterations, "temperature", targets, tol)

        return self._fallback(pair, targets, initial_state, tol)

    def _solve_volume_pair(self, pair, targets, initial_state, tol):
        sub = self.substance
        rho = 1.0 / targets["specific_volume"]
        name, value = self._other_target(targets, "specific_volume")
        T_min, T_max = sub.temperature_limits

        def residual(T):
            return self._residual_1d(sub.properties_at(T, rho), name, value)

        root = self._find_root(residual, T_min, T_max, initial_state.temperature)
        if root is not None:
            T, iterations = root
            return self._finish(sub.properties_at(T, rho), iterations, "volume", targets, tol)

        return self._fallback(pair, targets, initial_state, tol)

    def _solve_pressure_pair(self, pair, targets, initial_state, tol):
        sub = self.substance
        p = targets["pressure"]
        name, value = self._other_target(targets, "pressure")
        T_min, T_max = sub.temperature_limits

        # Split the isobar at the saturation temperature
        if sub.is_subcritical_pressure(p):
            T_sat = sub.saturation_temperature(p)
            liquid, vapor = sub.saturation_states(T_sat)
            x = lever_rule_fraction(value, liquid[name], vapor[name])
            if 0.0 <= x <= 1.0:
                state = mix_saturation_states(liquid, vapor, x)
                return self._finish(state, 1, "saturation", targets, tol)
            branches = [(T_min, T_sat, "liquid", liquid), (T_sat, T_max, "vapor", vapor)]
            if x > 1.0:
                branches.reverse()
        else:
            T_sat = None
            branches = [(T_min, T_max, None, None)]

        for T_lo, T_hi, phase, endpoint in branches:

            def isobar_state(T):
                if endpoint is not None and T == T_sat:
                    return endpoint
                rho = sub.density_from_TP(T, p, phase_hint=phase)
                return sub.properties_at(T, rho)

            def residual(T):
                return self._residual_1d(isobar_state(T), name, value)

            root = self._find_root(residual, T_lo, T_hi, initial_state.temperature)
            if root is not None:
                T, iterations = root
                return self._finish(isobar_state(T), iterations, "pressure", targets, tol)

        return self._fallback(pair, targets, initial_state, tol)

    def _find_root(self, func, a, b, guess):
        """
        Find a root of a scalar function within [a, b].

        The interval is sampled to find the sign changes of the function and the
        bracket closest to the initial guess is refined with Brent's method.
        Points where the substance cannot be evaluated are skipped.

        Returns
        -------
        tuple or None
            ``(root, iterations)``, or None if no bracket was found or the
            refinement failed.
        """
        x = np.linspace(a, b, BRACKET_SAMPLES)
        f = np.full_like(x, np.nan)
        for i, xi in enumerate(x):
            try:
                f[i] = func(xi)
            except OracleEvaluationError as exc:
                logger.debug("Skipping bracket sample at %0.6e: %s", xi, exc)

        brackets = []
        for i in range(len(x) - 1):
            if not (np.isfinite(f[i]) and np.isfinite(f[i + 1])):
                continue
            if f[i] == 0.0:
                return x[i], 1
            if f[i] * f[i + 1] < 0.0:
                brackets.append((x[i], x[i + 1]))
        if np.isfinite(f[-1]) and f[-1] == 0.0:
            return x[-1], 1
        if not brackets:
            return None

        # Prefer the bracket closest to the initial guess
        brackets.sort(key=lambda ab: abs(0.5 * (ab[0] + ab[1]) - guess))
        for lo, hi in brackets:
            try:
                root, info = brentq(
                    func,
                    lo,
                    hi,
                    xtol=1e-14 * max(abs(lo), abs(hi), 1.0),
                    rtol=4 * np.finfo(float).eps,
                    maxiter=200,
                    full_output=True,
                    disp=False,
                )
            except OracleEvaluationError as exc:
                logger.debug("Bracket [%0.6e, %0.6e] failed: %s", lo, hi, exc)
                continue
            if info.converged:
                return root, info.iterations
        return None

    # ------------------------------------------------------------------------------ #
    # Two-dimensional solution
    # ------------------------------------------------------------------------------ #

    def _fallback(self, pair, targets, initial_state, tol):
        logger.debug(
            "No bracket found for the %s state of '%s', switching to the two-dimensional solver",
            pair.name,
            self.substance.fluid_name,
        )
        return self._solve_general(pair, targets, initial_state, tol)

    def _solve_general(self, pair, targets, initial_state, tol):
        if self.options.method == "newton":
            return self._solve_newton(pair, targets, initial_state, tol)
        return self._solve_external(pair, targets, initial_state, tol)

    def _solve_newton(self, pair, targets, initial_state, tol):
        """
        Damped Newton iteration in temperature and density.

        The step is computed with the Jacobian of the normalized residuals with
        respect to the reduced variables :math:`T/T_c` and :math:`\\rho/\\rho_c`.
        It is shortened so that no variable changes by more than a factor
        ``MAX_STEP_RATIO`` and the temperature does not overshoot the critical
        temperature by more than its current distance to it. Trial points that
        the substance cannot evaluate are retried with half the step.

        Once the iterate enters the two-phase region, the vapor fraction is
        computed from an extensive target with the lever rule and the iteration
        continues in temperature only.
        """
        sub = self.substance
        names = list(targets)
        values = [targets[name] for name in names]
        T, rho = float(initial_state.temperature), float(initial_state.density)
        try:
            state = sub.properties_at(T, rho)
        except OracleEvaluationError as exc:
            raise self._failure(f"Cannot evaluate the initial guess: {exc}", 0, np.nan) from exc

        lever_index = self._lever_index(names, values, T, rho)
        if lever_index is not None:
            state = self._lever_state(T, names, values, lever_index)
        residual_norm = np.nan
        for iteration in range(self.options.max_iterations + 1):
            residual = self.residuals(state, targets)
            residual_norm = float(np.max(np.abs(residual)))
            self._log_iteration(iteration, state, residual_norm, lever_index is not None)
            if residual_norm < tol:
                return SolverResult(
                    state=state,
                    iterations=iteration,
                    path="newton",
                    residual=residual_norm,
                    phase_switch=lever_index is not None,
                )
            if iteration == self.options.max_iterations:
                break

            if lever_index is not None:
                T, state = self._two_phase_step(T, names, values, lever_index, residual, iteration, residual_norm)
                continue

            # Newton step in reduced variables
            try:
                jacobian = sub.property_jacobian(T, rho, names)
            except OracleEvaluationError as exc:
                raise self._failure(f"Cannot evaluate the Jacobian: {exc}", iteration, residual_norm) from exc
            row_scales = np.array([self._scale(name, value) for name, value in targets.items()])
            jacobian = jacobian * np.array([self.T_scale, self.rho_scale]) / row_scales[:, None]
            det = np.linalg.det(jacobian)
            if not np.isfinite(det) or abs(det) < SINGULAR_JACOBIAN_THRESHOLD:
                raise self._failure(f"Singular Jacobian (determinant {det:0.3e})", iteration, residual_norm)
            step = -np.linalg.solve(jacobian, residual)
            T, rho, state = self._damped_step(
                T, rho, step[0] * self.T_scale, step[1] * self.rho_scale, iteration, residual_norm
            )

            # Continue in the vapor fraction after entering the two-phase region
            lever_index = self._lever_index(names, values, T, rho)
            if lever_index is not None:
                logger.debug("Entered the two-phase region at T=%0.6e K, iterating on the vapor fraction", T)
                state = self._lever_state(T, names, values, lever_index)

        raise self._failure(
            f"Maximum number of iterations ({self.options.max_iterations}) reached",
            self.options.max_iterations,
            residual_norm,
        )

    def _damped_step(self, T, rho, dT, drho, iteration, residual_norm):
        sub = self.substance
        T_min, T_max = sub.temperature_limits
        rho_min, rho_max = sub.density_limits
        lam = 1.0
        for value, delta, lower, upper in ((T, dT, T_min, T_max), (rho, drho, rho_min, rho_max)):
            if delta < 0.0:
                lam = min(lam, (1.0 - 1.0 / MAX_STEP_RATIO) * value / -delta, (value - lower) / -delta)
            elif delta > 0.0:
                lam = min(lam, (MAX_STEP_RATIO - 1.0) * value / delta, (upper - value) / delta)
        if not lam > 0.0:
            raise self._failure("Newton step blocked by the validity limits of the substance", iteration, residual_norm)

        crit = sub.critical_point
        if crit is not None and (T - crit.T) * (T + lam * dT - crit.T) < 0.0:
            lam = min(lam, 2.0 * (crit.T - T) / dT)

        for _ in range(self.options.max_retries + 1):
            T_new, rho_new = T + lam * dT, rho + lam * drho
            try:
                return T_new, rho_new, sub.properties_at(T_new, rho_new)
            except OracleEvaluationError as exc:
                logger.debug("Trial point rejected (%s), halving the step", exc)
                lam *= 0.5

        raise self._failure(
            f"No admissible trial point after {self.options.max_retries} step reductions",
            iteration,
            residual_norm,
        )

    def _lever_index(self, names, values, T, rho):
        """Index of the extensive target that places the state inside the dome at T, if any"""
        if not self.substance.in_two_phase_region(T, rho):
            return None
        liquid, vapor = self.substance.saturation_states(T)
        for i, (name, value) in enumerate(zip(names, values)):
            if name in EXTENSIVE_PROPERTIES:
                x = lever_rule_fraction(value, liquid[name], vapor[name])
                if 0.0 <= x <= 1.0:
                    return i
        return None

    def _lever_state(self, T, names, values, index):
        liquid, vapor = self.substance.saturation_states(T)
        x = lever_rule_fraction(values[index], liquid[names[index]], vapor[names[index]])
        return mix_saturation_states(liquid, vapor, float(np.clip(x, 0.0, 1.0)))

    def _two_phase_step(self, T, names, values, index, residual, iteration, residual_norm):
        sub = self.substance
        T_min = sub.temperature_limits[0]
        T_crit = sub.critical_point.T
        j = 1 - index
        scale = self._scale(names[j], values[j])

        def func(T_trial):
            state = self._lever_state(T_trial, names, values, index)
            return (state[names[j]] - values[j]) / scale

        dT = min(FINITE_DIFFERENCE_STEP * T, 0.5 * (T_crit - T), 0.5 * (T - T_min))
        try:
            slope = (func(T + dT) - func(T - dT)) / (2.0 * dT)
        except (OracleEvaluationError, InvalidTarget) as exc:
            raise self._failure(f"Cannot evaluate the saturation derivative: {exc}", iteration, residual_norm) from exc
        if not np.isfinite(slope) or slope == 0.0:
            raise self._failure("Singular saturation derivative", iteration, residual_norm)

        step = -residual[j] / slope
        lam = 1.0
        if T + step >= T_crit:
            lam = 0.5 * (T_crit - T) / step
        elif T + step <= T_min:
            lam = 0.5 * (T - T_min) / -step

        for _ in range(self.options.max_retries + 1):
            T_new = T + lam * step
            try:
                return T_new, self._lever_state(T_new, names, values, index)
            except (OracleEvaluationError, InvalidTarget) as exc:
                logger.debug("Trial saturation temperature rejected (%s), halving the step", exc)
                lam *= 0.5

        raise self._failure(
            f"No admissible saturation temperature after {self.options.max_retries} step reductions",
            iteration,
            residual_norm,
        )

    def _solve_external(self, pair, targets, initial_state, tol):
        problem = _FlashCalculationResidual(self, targets)
        solver = psv.NonlinearSystemSolver(
            problem,
            method=self.options.method,
            tolerance=1e-2 * tol,
            max_iterations=self.options.max_iterations,
            print_convergence=self.options.print_convergence,
            update_on="function",
        )
        x0_reduced = np.asarray([initial_state.density / self.rho_scale, initial_state.temperature / self.T_scale])
        try:
            xf_reduced = solver.solve(x0_reduced)
        except OracleEvaluationError as exc:
            raise self._failure(f"Solver '{self.options.method}' failed: {exc}", None, np.nan) from exc
        if not solver.success:
            raise self._failure(f"Solver '{self.options.method}' did not converge.\n{solver.message}", None, np.nan)

        rho, T = xf_reduced[0] * self.rho_scale, xf_reduced[1] * self.T_scale
        state = self.substance.properties_at(T, rho)
        return self._finish(state, None, self.options.method, targets, tol)

    # ------------------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------------------ #

    def _finish(self, state, iterations, path, targets, tol):
        residual_norm = float(np.max(np.abs(self.residuals(state, targets))))
        if not residual_norm < tol:
            raise self._failure(
                f"The '{path}' path ended with residual {residual_norm:0.3e} above the tolerance {tol:0.1e}",
                iterations,
                residual_norm,
            )
        log = logger.info if self.options.print_convergence else logger.debug
        log(
            "Converged '%s' with the '%s' path in %s iterations (residual %0.3e)",
            self.substance.fluid_name,
            path,
            iterations,
            residual_norm,
        )
        return SolverResult(state=state, iterations=iterations, path=path, residual=residual_norm)

    def _failure(self, message, iterations, residual):
        logger.warning("State calculation of '%s' failed: %s", self.substance.fluid_name, message)
        return ConvergenceFailure(message, iterations=iterations, residual=residual)

    def _log_iteration(self, iteration, state, residual_norm, two_phase):
        log = logger.info if self.options.print_convergence else logger.debug
        log(
            " %3d  T=%0.8e K  rho=%0.8e kg/m3  residual=%0.3e%s",
            iteration,
            state.temperature,
            state.density,
            residual_norm,
            "  (two-phase)" if two_phase else "",
        )

    def _scale(self, name, value):
        return max(abs(value), self.property_scales[name])

    def _residual_1d(self, state, name, value):
        return (state[name] - value) / self._scale(name, value)

    @staticmethod
    def _other_target(targets, known):
        for name, value in targets.items():
            if name != known:
                return name, value
        raise ValueError(f"Targets {list(targets)} do not contain a property other than '{known}'")

    def _check_tolerance(self, tol):
        if tol is None:
            return self.options.tolerance
        if not utils.is_finite_float(tol) or tol <= 0.0:
            raise InvalidTarget(f"Tolerance must be a positive number. Received tol={tol}")
        return float(tol)

    def _validate_targets(self, pair, value_1, value_2):
        targets = {}
        for name, value in zip(pair.properties, (value_1, value_2)):
            if not utils.is_finite_float(value):
                raise InvalidTarget(
                    f"Target {name} of the {pair.name} pair must be a finite number. Received {value}",
                    pair=pair.name,
                    values=(value_1, value_2),
                )
            value = float(value)
            if name == "temperature":
                value = self._validate_temperature(value, pair=pair.name)
            elif name in ("pressure", "specific_volume"):
                value = self._validate_positive(name, value, pair=pair.name)
            targets[name] = value
        return targets

    def _validate_temperature(self, T, pair=None):
        T = self._validate_positive("temperature", T, pair=pair)
        T_min, T_max = self.substance.temperature_limits
        if not T_min <= T <= T_max:
            raise InvalidTarget(
                f"Temperature T={T} K is outside the range of '{self.substance.fluid_name}' "
                f"[{T_min}, {T_max}] K",
                pair=pair,
                values=(T,),
            )
        return T

    @staticmethod
    def _validate_positive(name, value, pair=None):
        if not utils.is_finite_float(value) or float(value) <= 0.0:
            raise InvalidTarget(f"The {name} must be a positive number. Received {value}", pair=pair, values=(value,))
        return float(value)

    @staticmethod
    def _validate_vapor_fraction(x):
        if not utils.is_finite_float(x) or not 0.0 <= float(x) <= 1.0:
            raise InvalidTarget(f"The vapor fraction must be between 0 and 1. Received {x}", values=(x,))
        return float(x)
