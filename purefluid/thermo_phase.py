import logging
from abc import ABC, abstractmethod

import numpy as np

from . import utils
from .helpers_props import GAS_CONSTANT, PropertyPair
from .exceptions import InvalidTarget
from .solver import StateSolver, SolverOptions
from .substance import Substance
from .coolprop import CoolPropSubstance

logger = logging.getLogger(__name__)

# Pressure of the ideal-gas reference state (Pa)
REFERENCE_PRESSURE = 101_325.0

# Pressure at which the fluid is evaluated to approximate the ideal-gas limit (Pa)
LOW_PRESSURE = 1e-8


# ------------------------------------------------------------------------------------ #
# Generic thermodynamic phase
# ------------------------------------------------------------------------------------ #


class ThermoPhase(ABC):
    """
    Property getters shared by all thermodynamic phases.

    Subclasses provide the mass-specific properties of the current state. The
    molar properties are obtained by multiplication with the molecular weight.
    Molar quantities are expressed per mole (J/mol, mol/m³).
    """

    # --- Current state (mass basis)
    @property
    @abstractmethod
    def temperature(self):
        """Temperature (K)"""

    @property
    @abstractmethod
    def density(self):
        """Density (kg/m³)"""

    @property
    @abstractmethod
    def pressure(self):
        """Pressure (Pa)"""

    @property
    @abstractmethod
    def molecular_weight(self):
        """Molecular weight (kg/mol)"""

    @property
    @abstractmethod
    def int_energy_mass(self):
        """Specific internal energy (J/kg)"""

    @property
    @abstractmethod
    def enthalpy_mass(self):
        """Specific enthalpy (J/kg)"""

    @property
    @abstractmethod
    def entropy_mass(self):
        """Specific entropy (J/kg/K)"""

    @property
    @abstractmethod
    def gibbs_mass(self):
        """Specific Gibbs energy (J/kg)"""

    @property
    @abstractmethod
    def cp_mass(self):
        """Isobaric heat capacity (J/kg/K)"""

    @property
    @abstractmethod
    def cv_mass(self):
        """Isochoric heat capacity (J/kg/K)"""

    # --- Derived quantities
    @property
    def T(self):
        return self.temperature

    @property
    def P(self):
        return self.pressure

    @property
    def RT(self):
        return GAS_CONSTANT * self.temperature

    @property
    def volume_mass(self):
        return 1.0 / self.density

    @property
    def molar_density(self):
        return self.density / self.molecular_weight

    @property
    def molar_volume(self):
        return self.molecular_weight / self.density

    @property
    def int_energy_mole(self):
        return self.int_energy_mass * self.molecular_weight

    @property
    def enthalpy_mole(self):
        return self.enthalpy_mass * self.molecular_weight

    @property
    def entropy_mole(self):
        return self.entropy_mass * self.molecular_weight

    @property
    def gibbs_mole(self):
        return self.gibbs_mass * self.molecular_weight

    @property
    def cp_mole(self):
        return self.cp_mass * self.molecular_weight

    @property
    def cv_mole(self):
        return self.cv_mass * self.molecular_weight


# ------------------------------------------------------------------------------------ #
# Pure fluid
# ------------------------------------------------------------------------------------ #


class PureFluid(ThermoPhase):
    r"""
    Pure fluid that can be a gas, a liquid, a two-phase mixture or a supercritical fluid.

    The state is defined by temperature and density and can be set from any of
    the property pairs in :class:`PropertyPair`, from temperature or pressure
    and vapor fraction on the saturation curve, or from temperature and
    pressure. The state of the fluid is only modified when a calculation
    converges, so a failed calculation leaves the last valid state unchanged.

    Parameters
    ----------
    substance : Substance or str
        Equation-of-state oracle, or the name of a CoolProp fluid.
    T : float, optional
        Initial temperature (K). Default is 300 K.
    p : float, optional
        Initial pressure (Pa). Default is 101325 Pa.
    options : SolverOptions, optional
        Settings of the state solver.
    backend : str, optional
        CoolProp backend used when ``substance`` is a fluid name.

    Examples
    --------
    >>> fluid = PureFluid("Water", T=300.0, p=101325.0)
    >>> fluid.set_state_HP(2.7e6, 101325.0)
    >>> fluid.vapor_fraction
    """

    def __init__(self, substance, T=300.0, p=REFERENCE_PRESSURE, options=None, backend="HEOS"):
        if isinstance(substance, str):
            substance = CoolPropSubstance(substance, backend=backend)
        if not isinstance(substance, Substance):
            raise TypeError(f"Expected a Substance or a fluid name, received {type(substance).__name__}")
        self.substance = substance
        self.solver = StateSolver(substance, SolverOptions() if options is None else options)
        self._state = None
        self.last_result = None
        self.set_state_TP(T, p)

    # ------------------------------------------------------------------------------ #
    # State setters
    # ------------------------------------------------------------------------------ #

    @property
    def state(self):
        """Current state as a :class:`FluidState`"""
        return self._state

    def _commit(self, result):
        logger.debug(
            "Setting state of %r with the %r path (T=%0.6e K, rho=%0.6e kg/m3)",
            self.fluid_name,
            result.path,
            result.state.temperature,
            result.state.density,
        )
        self._state = result.state
        self.last_result = result
        return result

    def set_state(self, pair, value_1, value_2, tol=None):
        """
        Set the state from a pair of property values.

        Parameters
        ----------
        pair : PropertyPair or str
            Property pair, e.g. ``"HP"``.
        value_1, value_2 : float
            Values in the order given by the pair (``"HP"`` expects enthalpy
            and then pressure).
        tol : float, optional
            Convergence tolerance of the normalized residuals.

        Returns
        -------
        SolverResult
            Convergence information of the calculation.
        """
        result = self.solver.solve(pair, value_1, value_2, self._state, tol=tol)
        return self._commit(result)

    def set_state_HP(self, h, p, tol=None):
        return self.set_state(PropertyPair.HP, h, p, tol=tol)

    def set_state_UV(self, u, v, tol=None):
        return self.set_state(PropertyPair.UV, u, v, tol=tol)

    def set_state_SV(self, s, v, tol=None):
        return self.set_state(PropertyPair.SV, s, v, tol=tol)

    def set_state_SP(self, s, p, tol=None):
        return self.set_state(PropertyPair.SP, s, p, tol=tol)

    def set_state_ST(self, s, T, tol=None):
        return self.set_state(PropertyPair.ST, s, T, tol=tol)

    def set_state_TV(self, T, v, tol=None):
        return self.set_state(PropertyPair.TV, T, v, tol=tol)

    def set_state_PV(self, p, v, tol=None):
        return self.set_state(PropertyPair.PV, p, v, tol=tol)

    def set_state_UP(self, u, p, tol=None):
        return self.set_state(PropertyPair.UP, u, p, tol=tol)

    def set_state_VH(self, v, h, tol=None):
        return self.set_state(PropertyPair.VH, v, h, tol=tol)

    def set_state_TH(self, T, h, tol=None):
        return self.set_state(PropertyPair.TH, T, h, tol=tol)

    def set_state_SH(self, s, h, tol=None):
        return self.set_state(PropertyPair.SH, s, h, tol=tol)

    def set_state_TD(self, T, rho, tol=None):
        """Set the state from temperature and density"""
        if not utils.is_finite_float(rho) or rho <= 0.0:
            raise InvalidTarget(f"The density must be a positive number. Received {rho}", pair="TD", values=(T, rho))
        return self.set_state(PropertyPair.TV, T, 1.0 / rho, tol=tol)

    def set_state_TP(self, T, p, tol=None):
        """
        Set the state from temperature and pressure.

        The fluid is placed on the liquid side of the saturation curve when
        the pressure is equal to the saturation pressure.
        """
        return self._commit(self.solver.solve_TP(T, p, tol=tol))

    def set_state_Tsat(self, T, x):
        """Set the state on the saturation curve from temperature and vapor fraction"""
        return self._commit(self.solver.solve_saturation_T(T, x))

    def set_state_Psat(self, p, x):
        """Set the state on the saturation curve from pressure and vapor fraction"""
        return self._commit(self.solver.solve_saturation_p(p, x))

    def set_pressure(self, p):
        """Change the pressure holding the temperature constant"""
        return self._commit(self.solver.solve_TP(self.T, p))

    def set_temperature(self, T):
        """Change the temperature holding the density constant"""
        return self.set_state_TD(T, self.density)

    def set_density(self, rho):
        """Change the density holding the temperature constant"""
        return self.set_state_TD(self.T, rho)

    # ------------------------------------------------------------------------------ #
    # Properties of the current state
    # ------------------------------------------------------------------------------ #

    @property
    def fluid_name(self):
        return self.substance.fluid_name

    @property
    def temperature(self):
        return self._state.temperature

    @property
    def density(self):
        return self._state.density

    @property
    def pressure(self):
        return self._state.pressure

    @property
    def molecular_weight(self):
        return self.substance.molar_mass

    @property
    def int_energy_mass(self):
        return self._state.internal_energy

    @property
    def enthalpy_mass(self):
        return self._state.enthalpy

    @property
    def entropy_mass(self):
        return self._state.entropy

    @property
    def gibbs_mass(self):
        return self._state.gibbs_energy

    @property
    def cp_mass(self):
        return self._state.isobaric_heat_capacity

    @property
    def cv_mass(self):
        return self._state.isochoric_heat_capacity

    @property
    def isothermal_compressibility(self):
        return self._state.isothermal_compressibility

    @property
    def thermal_expansion_coeff(self):
        return self._state.isobaric_expansion_coefficient

    @property
    def vapor_fraction(self):
        """Vapor mass fraction. Single-phase states report 0 (liquid-like) or 1 (vapor-like)"""
        return self._state.quality_mass

    @property
    def is_two_phase(self):
        return bool(self._state.is_two_phase)

    # --- Saturation and critical properties
    def sat_temperature(self, p=None):
        """Saturation temperature at pressure p (the current pressure by default)"""
        return self.substance.saturation_temperature(self.P if p is None else p)

    def sat_pressure(self, T=None):
        """Saturation pressure at temperature T (the current temperature by default)"""
        return self.substance.saturation_pressure(self.T if T is None else T)

    @property
    def critical_temperature(self):
        return self._critical_point().T

    @property
    def critical_pressure(self):
        return self._critical_point().p

    @property
    def critical_density(self):
        return self._critical_point().rho

    @property
    def min_temp(self):
        return self.substance.temperature_limits[0]

    @property
    def max_temp(self):
        return self.substance.temperature_limits[1]

    def _critical_point(self):
        crit = self.substance.critical_point
        if crit is None:
            raise ValueError(f"Substance '{self.fluid_name}' does not have a critical point")
        return crit

    # --- Single-species quantities (arrays of length 1)
    @property
    def chem_potentials(self):
        return np.array([self.gibbs_mole])

    @property
    def standard_chem_potentials(self):
        return np.array([self.gibbs_mole])

    @property
    def activities(self):
        return np.ones(1)

    @property
    def activity_concentrations(self):
        return np.ones(1)

    def standard_concentration(self, k=0):
        return 1.0

    @property
    def partial_molar_enthalpies(self):
        return np.array([self.enthalpy_mole])

    @property
    def partial_molar_entropies(self):
        return np.array([self.entropy_mole])

    @property
    def partial_molar_int_energies(self):
        return np.array([self.int_energy_mole])

    @property
    def partial_molar_cp(self):
        return np.array([self.cp_mole])

    @property
    def partial_molar_volumes(self):
        return np.array([self.molar_volume])

    # --- Standard state (the fluid itself at the current state)
    @property
    def enthalpy_RT(self):
        return np.array([self.enthalpy_mole / self.RT])

    @property
    def entropy_R(self):
        return np.array([self.entropy_mole / GAS_CONSTANT])

    @property
    def gibbs_RT(self):
        return np.array([self.gibbs_mole / self.RT])

    @property
    def cp_R(self):
        return np.array([self.cp_mole / GAS_CONSTANT])

    # --- Reference state (ideal gas at the reference pressure)
    def _ideal_gas_limit(self):
        """Properties at the current temperature and a pressure low enough for ideal-gas behavior"""
        T = self.T
        rho = LOW_PRESSURE * self.molecular_weight / (GAS_CONSTANT * T)
        return self.substance.properties_at(T, rho)

    @property
    def enthalpy_RT_ref(self):
        state = self._ideal_gas_limit()
        return np.array([state.enthalpy * self.molecular_weight / self.RT])

    @property
    def gibbs_RT_ref(self):
        state = self._ideal_gas_limit()
        g_RT = state.gibbs_energy * self.molecular_weight / self.RT
        return np.array([g_RT + np.log(REFERENCE_PRESSURE / LOW_PRESSURE)])

    @property
    def gibbs_ref(self):
        return self.gibbs_RT_ref * self.RT

    @property
    def entropy_R_ref(self):
        state = self._ideal_gas_limit()
        s_R = state.entropy * self.molecular_weight / GAS_CONSTANT
        return np.array([s_R - np.log(REFERENCE_PRESSURE / LOW_PRESSURE)])

    @property
    def cp_R_ref(self):
        state = self._ideal_gas_limit()
        return np.array([state.isobaric_heat_capacity * self.molecular_weight / GAS_CONSTANT])

    # ------------------------------------------------------------------------------ #
    # Summary
    # ------------------------------------------------------------------------------ #

    def report(self, show=False):
        """
        Summary of the current state.

        Parameters
        ----------
        show : bool, optional
            If True, print the summary instead of returning it.
        """
        header = {
            self.fluid_name: {
                "temperature": f"{self.T:12.6g} K",
                "pressure": f"{self.P:12.6g} Pa",
                "density": f"{self.density:12.6g} kg/m^3",
                "mean mol. weight": f"{self.molecular_weight:12.6g} kg/mol",
                "vapor fraction": f"{self.vapor_fraction:12.6g}",
                "phase": "two-phase" if self.is_two_phase else "single-phase",
            }
        }
        rows = [
            ("enthalpy", self.enthalpy_mass, self.enthalpy_mole, "J"),
            ("internal energy", self.int_energy_mass, self.int_energy_mole, "J"),
            ("entropy", self.entropy_mass, self.entropy_mole, "J/K"),
            ("Gibbs function", self.gibbs_mass, self.gibbs_mole, "J"),
            ("heat capacity c_p", self.cp_mass, self.cp_mole, "J/K"),
            ("heat capacity c_v", self.cv_mass, self.cv_mole, "J/K"),
        ]
        lines = [utils.print_dict(header, indent=1, return_output=True), ""]
        lines.append(f"{'':>22}{'1 kg':>16}{'1 mol':>16}")
        lines.append(f"{'':>22}{'-' * 14:>16}{'-' * 14:>16}")
        for label, value_mass, value_mole, unit in rows:
            lines.append(f"{label:>22}{value_mass:16.6g}{value_mole:16.6g}  {unit}")
        output = "\n".join(lines)
        if show:
            print(output)
        else:
            return output

    def __repr__(self):
        return f"PureFluid({self.fluid_name!r}, T={self.T}, p={self.P})"
