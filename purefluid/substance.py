import logging
import functools
from abc import ABC, abstractmethod

import numpy as np
from scipy.optimize import brentq

from .helpers_props import GAS_CONSTANT, FluidState, canonical_name
from .exceptions import InvalidTarget, OracleEvaluationError

logger = logging.getLogger(__name__)

# Relative perturbation of the finite-difference derivatives
FINITE_DIFFERENCE_STEP = 1e-6

# Relative distance below which a pressure is considered to lie on the saturation line
SATURATION_PRESSURE_TOLERANCE = 1e-9

# Number of saturation states kept in memory by each substance
SATURATION_CACHE_SIZE = 256

# Valid values of the phase hint for the density calculation
PHASE_HINTS = (None, "liquid", "vapor", "gas")

# Properties that are averaged with the lever rule in the two-phase region
# (the heat capacities follow the homogeneous equilibrium mixing rule)
MIXED_PROPERTIES = (
    "internal_energy",
    "enthalpy",
    "entropy",
    "gibbs_energy",
    "compressibility_factor",
    "isobaric_heat_capacity",
    "isochoric_heat_capacity",
)


# ------------------------------------------------------------------------------------ #
# Helper functions shared by all substances
# ------------------------------------------------------------------------------------ #


def assemble_properties(T, rho, p, u, s, cv, cp, kappa_T, alpha_p, molar_mass):
    """
    Complete the set of single-phase properties from the primary ones.

    Only arithmetic operations are used, so the function can be evaluated with
    Python floats, NumPy arrays or JAX arrays (and differentiated by JAX).

    Parameters
    ----------
    T, rho : float
        Temperature (K) and density (kg/m³).
    p, u, s : float
        Pressure (Pa), internal energy (J/kg) and entropy (J/kg/K).
    cv, cp : float
        Isochoric and isobaric heat capacities (J/kg/K).
    kappa_T, alpha_p : float
        Isothermal compressibility (1/Pa) and isobaric expansion coefficient (1/K).
    molar_mass : float
        Molar mass of the substance (kg/mol).

    Returns
    -------
    dict
        Properties keyed by their canonical names.
    """
    h = u + p / rho
    return {
        "temperature": T,
        "density": rho,
        "pressure": p,
        "specific_volume": 1.0 / rho,
        "internal_energy": u,
        "enthalpy": h,
        "entropy": s,
        "gibbs_energy": h - T * s,
        "compressibility_factor": p / (rho * (GAS_CONSTANT / molar_mass) * T),
        "isobaric_heat_capacity": cp,
        "isochoric_heat_capacity": cv,
        "heat_capacity_ratio": cp / cv,
        "isothermal_compressibility": kappa_T,
        "isobaric_expansion_coefficient": alpha_p,
    }


def lever_rule_fraction(value, value_liquid, value_vapor):
    r"""
    Vapor fraction that reproduces an extensive property with the lever rule

    .. math::

        x = \frac{y - y_L}{y_V - y_L}

    The result is not clipped, values outside [0, 1] indicate that the
    property lies outside the two-phase region.
    """
    return (value - value_liquid) / (value_vapor - value_liquid)


def mix_saturation_states(liquid, vapor, x):
    """
    Compute two-phase properties from the saturated liquid and vapor states

    Homogeneous equilibrium model: the specific volume and the energies are
    averaged with the lever rule, the heat capacities are mass-averaged and the
    compressibility and expansion coefficients are undefined (NaN).

    Parameters
    ----------
    liquid, vapor : FluidState
        Saturated liquid and vapor states at the same temperature.
    x : float
        Vapor mass fraction, between 0 and 1.

    Returns
    -------
    FluidState
        Mixture state. The saturated end points are returned unchanged when
        ``x`` is exactly 0 or 1.
    """
    if x <= 0.0:
        return liquid
    if x >= 1.0:
        return vapor

    v = (1.0 - x) * liquid.specific_volume + x * vapor.specific_volume
    props = {name: (1.0 - x) * liquid[name] + x * vapor[name] for name in MIXED_PROPERTIES}
    return FluidState(
        fluid_name=liquid.fluid_name,
        temperature=liquid.temperature,
        density=1.0 / v,
        pressure=liquid.pressure,
        specific_volume=v,
        heat_capacity_ratio=props["isobaric_heat_capacity"] / props["isochoric_heat_capacity"],
        isothermal_compressibility=np.nan,
        isobaric_expansion_coefficient=np.nan,
        is_two_phase=True,
        quality_mass=x,
        **props,
    )


# ------------------------------------------------------------------------------------ #
# Substance oracle
# ------------------------------------------------------------------------------------ #


class Substance(ABC):
    """
    Equation-of-state oracle of a pure substance.

    A substance evaluates all thermodynamic properties as a function of
    temperature and density, locates the saturation curve and exposes its
    critical constants. It does not store any thermodynamic state: the
    evaluations are pure functions of their arguments, so that trial states of
    the state solver never leak into the state of the fluid that owns the
    substance.

    Subclasses implement the single-phase evaluation (:meth:`_properties_1phase`)
    and, for condensable substances, the saturation point at a given temperature
    (:meth:`_saturation_point`). The base class builds the two-phase states with
    the lever rule, the density solver at fixed temperature and pressure, and
    the finite-difference property derivatives.
    """

    fluid_name = None

    def __init__(self):
        self._cached_saturation_states = functools.lru_cache(maxsize=SATURATION_CACHE_SIZE)(
            self._compute_saturation_states
        )

    # --- Interface to be implemented by each substance
    @property
    @abstractmethod
    def critical_point(self):
        """Critical constants as a :class:`CriticalPoint`, or None for non-condensable substances"""

    @property
    @abstractmethod
    def molar_mass(self):
        """Molar mass in kg/mol"""

    @property
    @abstractmethod
    def temperature_limits(self):
        """Temperature range (K) in which the equation of state is valid"""

    @property
    @abstractmethod
    def density_limits(self):
        """Density range (kg/m³) that brackets the single-phase density searches"""

    @abstractmethod
    def _properties_1phase(self, T, rho):
        """Evaluate the equation of state at (T, rho) without checking phase stability"""

    def _saturation_point(self, T):
        """Return saturation pressure, liquid density and vapor density at temperature T"""
        raise InvalidTarget(f"Substance '{self.fluid_name}' does not have a saturation curve")

    def saturation_temperature(self, p):
        """Saturation temperature (K) at pressure p (Pa)"""
        raise InvalidTarget(f"Substance '{self.fluid_name}' does not have a saturation curve")

    # --- Derived quantities
    @property
    def specific_gas_constant(self):
        return GAS_CONSTANT / self.molar_mass

    @property
    def scales(self):
        """Characteristic temperature, pressure and density used to normalize the solver"""
        return self.critical_point

    @property
    def is_condensable(self):
        return self.critical_point is not None

    @property
    def triple_point_pressure(self):
        """Saturation pressure at the lowest valid temperature"""
        return self.saturation_pressure(self.temperature_limits[0])

    def is_subcritical(self, T):
        """Check if liquid and vapor can coexist at temperature T"""
        if not self.is_condensable:
            return False
        return self.temperature_limits[0] <= T < self.critical_point.T

    def is_subcritical_pressure(self, p):
        """Check if liquid and vapor can coexist at pressure p"""
        if not self.is_condensable:
            return False
        return self.triple_point_pressure <= p < self.critical_point.p

    # --- Saturation properties
    def saturation_states(self, T):
        """
        Saturated liquid and vapor states at temperature T.

        Returns
        -------
        tuple of FluidState
            ``(liquid, vapor)`` with vapor fractions 0 and 1. Both states share
            the saturation pressure.
        """
        if not self.is_subcritical(T):
            raise InvalidTarget(
                f"No saturation states for '{self.fluid_name}' at T={T} K. "
                f"The temperature must be between the triple point and the critical point."
            )
        return self._cached_saturation_states(float(T))

    def saturation_pressure(self, T):
        """Saturation pressure (Pa) at temperature T (K)"""
        return self.saturation_states(T)[0].pressure

    def _compute_saturation_states(self, T):
        p_sat, rho_liq, rho_vap = self._saturation_point(T)
        liquid = self._properties_1phase(T, rho_liq)
        vapor = self._properties_1phase(T, rho_vap)
        liquid["pressure"] = p_sat
        vapor["pressure"] = p_sat
        return (
            self._make_state(liquid, quality=0.0),
            self._make_state(vapor, quality=1.0),
        )

    def in_two_phase_region(self, T, rho):
        """Check if (T, rho) lies strictly inside the two-phase dome"""
        if not self.is_subcritical(T):
            return False
        liquid, vapor = self.saturation_states(T)
        return vapor.density < rho < liquid.density

    # --- Property evaluation
    def properties_at(self, T, rho):
        """
        Evaluate the equilibrium properties at a temperature-density point.

        Inside the two-phase dome the properties are computed from the
        saturated end points with the lever rule. Outside the dome the
        equation of state is evaluated directly.

        Parameters
        ----------
        T : float
            Temperature (K).
        rho : float
            Density (kg/m³).

        Returns
        -------
        FluidState
            Thermodynamic properties at (T, rho).

        Raises
        ------
        OracleEvaluationError
            If the inputs are unphysical or outside the range of the equation of state.
        """
        self._check_admissible(T, rho)
        if self.is_subcritical(T):
            liquid, vapor = self.saturation_states(T)
            if vapor.density < rho < liquid.density:
                x = lever_rule_fraction(1.0 / rho, liquid.specific_volume, vapor.specific_volume)
                return mix_saturation_states(liquid, vapor, x)
            quality = 0.0 if rho >= liquid.density else 1.0
        elif self.is_condensable:
            quality = 0.0 if rho > self.critical_point.rho else 1.0
        else:
            quality = 1.0

        return self._make_state(self._properties_1phase(T, rho), quality=quality)

    def property_jacobian(self, T, rho, names):
        """
        Partial derivatives of properties with respect to temperature and density.

        Symmetric finite differences with a relative perturbation of
        ``FINITE_DIFFERENCE_STEP`` in each variable. Substances that can
        provide analytic derivatives override this method.

        Returns
        -------
        numpy.ndarray
            Array of shape ``(len(names), 2)`` with the derivatives with respect
            to ``T`` (first column) and ``rho`` (second column).
        """
        names = [canonical_name(name) for name in names]
        dT = FINITE_DIFFERENCE_STEP * T
        drho = FINITE_DIFFERENCE_STEP * rho
        jacobian = np.empty((len(names), 2))
        for j, (delta_T, delta_rho, step) in enumerate([(dT, 0.0, dT), (0.0, drho, drho)]):
            plus = self.properties_at(T + delta_T, rho + delta_rho)
            minus = self.properties_at(T - delta_T, rho - delta_rho)
            for i, name in enumerate(names):
                jacobian[i, j] = (plus[name] - minus[name]) / (2.0 * step)
        return jacobian

    def density_from_TP(self, T, p, phase_hint=None):
        """
        Density at fixed temperature that matches the given pressure.

        Below the critical temperature the search is restricted to the liquid
        branch when the pressure is above the saturation pressure and to the
        vapor branch otherwise. When the pressure lies on the saturation line
        the ``phase_hint`` selects the saturated liquid or vapor density (the
        liquid is chosen when no hint is given).

        Parameters
        ----------
        T : float
            Temperature (K).
        p : float
            Pressure (Pa).
        phase_hint : {None, 'liquid', 'vapor', 'gas'}, optional
            Preferred phase on the saturation line.

        Returns
        -------
        float
            Density (kg/m³).
        """
        if phase_hint not in PHASE_HINTS:
            raise ValueError(f"Invalid phase_hint '{phase_hint}'. Valid options are: {PHASE_HINTS}")
        if not p > 0.0:
            raise InvalidTarget(f"Pressure must be positive. Received p={p}")

        rho_min, rho_max = self.density_limits
        if self.is_subcritical(T):
            liquid, vapor = self.saturation_states(T)
            p_sat = liquid.pressure
            if abs(p - p_sat) <= SATURATION_PRESSURE_TOLERANCE * p_sat:
                logger.debug("Pressure p=%0.6e Pa of %r is on the saturation line at T=%0.6e K", p, self.fluid_name, T)
                return vapor.density if phase_hint in ("vapor", "gas") else liquid.density
            bracket = (liquid.density, rho_max) if p > p_sat else (rho_min, vapor.density)
        else:
            bracket = (rho_min, rho_max)

        # Solve in logarithmic density to handle the wide range of vapor densities
        def residual(log_rho):
            return self._properties_1phase(T, np.exp(log_rho))["pressure"] / p - 1.0

        a, b = np.log(bracket[0]), np.log(bracket[1])
        f_a, f_b = residual(a), residual(b)
        if f_a * f_b > 0.0:
            raise OracleEvaluationError(
                f"Pressure p={p} Pa is outside the range of '{self.fluid_name}' at T={T} K "
                f"(density bracket [{bracket[0]:0.6e}, {bracket[1]:0.6e}] kg/m³)",
                fluid=self.fluid_name,
                temperature=T,
            )

        log_rho, info = brentq(
            residual, a, b, xtol=1e-14, rtol=4 * np.finfo(float).eps, maxiter=200,
            full_output=True, disp=False,
        )
        if not info.converged:
            raise OracleEvaluationError(
                f"Density calculation did not converge for '{self.fluid_name}' at T={T} K, p={p} Pa",
                fluid=self.fluid_name,
                temperature=T,
            )
        return float(np.exp(log_rho))

    # --- Helpers
    def _check_admissible(self, T, rho):
        if not (np.isfinite(T) and np.isfinite(rho)) or T <= 0.0 or rho <= 0.0:
            raise OracleEvaluationError(
                f"Cannot evaluate '{self.fluid_name}' at T={T} K, rho={rho} kg/m³. "
                f"Temperature and density must be positive",
                fluid=self.fluid_name,
                temperature=T,
                density=rho,
            )

    def _make_state(self, props, quality):
        return FluidState(
            fluid_name=self.fluid_name,
            is_two_phase=False,
            quality_mass=quality,
            **{k: float(v) for k, v in props.items()},
        )

    def __repr__(self):
        return f"{type(self).__name__}(fluid_name={self.fluid_name!r})"
