import logging

import numpy as np
import CoolProp.CoolProp as CP

from ..helpers_props import CriticalPoint
from ..exceptions import InvalidTarget, OracleEvaluationError
from ..substance import Substance, assemble_properties

logger = logging.getLogger(__name__)

# Lower bound of the density searches relative to the critical density
DENSITY_MIN_FACTOR = 1e-10

# Upper bound of the density searches relative to the saturated liquid density
# at the lowest valid temperature
DENSITY_MAX_FACTOR = 1.25


# ------------------------------------------------------------------------------------ #
# Equilibrium property calculations in the single-phase region
# ------------------------------------------------------------------------------------ #


def compute_properties_1phase(abstract_state):
    """Extract single-phase properties from CoolProp abstract state.
    Returns dict with canonical property names.
    """
    AS = abstract_state
    return assemble_properties(
        T=AS.T(),
        rho=AS.rhomass(),
        p=AS.p(),
        u=AS.umass(),
        s=AS.smass(),
        cv=AS.cvmass(),
        cp=AS.cpmass(),
        kappa_T=AS.isothermal_compressibility(),
        alpha_p=AS.isobaric_expansion_coefficient(),
        molar_mass=AS.molar_mass(),
    )


def get_phase_index(T, rho, T_crit, rho_crit):
    """
    Return the CoolProp phase index imposed on a single-phase evaluation.

    Imposing the phase skips the phase-stability check of CoolProp, so that the
    equation of state can be evaluated at the saturated end points and in the
    single-phase region close to the saturation curve.
    """
    if T >= T_crit:
        return CP.iphase_supercritical
    if rho >= rho_crit:
        return CP.iphase_liquid
    return CP.iphase_gas


# ------------------------------------------------------------------------------------ #
# Substance backed by the CoolProp equations of state
# ------------------------------------------------------------------------------------ #


class CoolPropSubstance(Substance):
    r"""
    Pure substance evaluated with the Helmholtz energy equations of state of CoolProp.

    Parameters
    ----------
    name : str
        Name of the fluid as recognized by CoolProp (e.g., ``"Water"``, ``"CO2"``).
    backend : str, optional
        CoolProp backend used to create the abstract state. Default is ``"HEOS"``.

    Attributes
    ----------
    abstract_state : CoolProp.AbstractState
        Abstract state reused for all evaluations. Its phase specification is
        reset after every evaluation.
    critical_point : CriticalPoint
        Critical temperature, pressure and density of the fluid.
    """

    def __init__(self, name, backend="HEOS"):
        super().__init__()
        self.fluid_name = name
        self.backend = backend
        try:
            self.abstract_state = CP.AbstractState(backend, name)
        except ValueError as exc:
            raise ValueError(f"Could not create '{backend}' abstract state for fluid '{name}': {exc}") from exc

        AS = self.abstract_state
        self._critical_point = CriticalPoint(
            T=AS.T_critical(),
            p=AS.p_critical(),
            rho=AS.rhomass_critical(),
        )
        self._molar_mass = AS.molar_mass()
        self._temperature_limits = (max(AS.Tmin(), AS.Ttriple()), AS.Tmax())

        # Pressure and liquid density at the lowest temperature define the search ranges
        p_triple, rho_liq, _ = self._saturation_point(self._temperature_limits[0])
        self._triple_point_pressure = p_triple
        self._density_limits = (
            DENSITY_MIN_FACTOR * self._critical_point.rho,
            DENSITY_MAX_FACTOR * rho_liq,
        )
        logger.debug(
            "Created %s substance for '%s' (T_crit=%0.4f K, p_crit=%0.1f Pa)",
            backend,
            name,
            self._critical_point.T,
            self._critical_point.p,
        )

    @property
    def critical_point(self):
        return self._critical_point

    @property
    def molar_mass(self):
        return self._molar_mass

    @property
    def temperature_limits(self):
        return self._temperature_limits

    @property
    def density_limits(self):
        return self._density_limits

    @property
    def triple_point_pressure(self):
        return self._triple_point_pressure

    def _properties_1phase(self, T, rho):
        AS = self.abstract_state
        crit = self._critical_point
        try:
            AS.specify_phase(get_phase_index(T, rho, crit.T, crit.rho))
            AS.update(CP.DmassT_INPUTS, rho, T)
            return compute_properties_1phase(AS)
        except ValueError as exc:
            raise OracleEvaluationError(
                f"CoolProp could not evaluate '{self.fluid_name}' at T={T} K, rho={rho} kg/m³: {exc}",
                fluid=self.fluid_name,
                temperature=T,
                density=rho,
            ) from exc
        finally:
            AS.unspecify_phase()

    def _saturation_point(self, T):
        AS = self.abstract_state
        try:
            AS.update(CP.QT_INPUTS, 0.0, T)
            p_sat = AS.p()
            rho_liq = AS.rhomass()
            AS.update(CP.QT_INPUTS, 1.0, T)
            rho_vap = AS.rhomass()
        except ValueError as exc:
            raise OracleEvaluationError(
                f"CoolProp could not compute the saturation states of '{self.fluid_name}' at T={T} K: {exc}",
                fluid=self.fluid_name,
                temperature=T,
            ) from exc
        return p_sat, rho_liq, rho_vap

    def saturation_temperature(self, p):
        if not self.is_subcritical_pressure(p):
            raise InvalidTarget(
                f"No saturation temperature for '{self.fluid_name}' at p={p} Pa. The pressure must be "
                f"between the triple point ({self._triple_point_pressure:0.6e} Pa) "
                f"and the critical point ({self._critical_point.p:0.6e} Pa)."
            )
        AS = self.abstract_state
        try:
            AS.update(CP.PQ_INPUTS, p, 0.0)
        except ValueError as exc:
            raise OracleEvaluationError(
                f"CoolProp could not compute the saturation temperature of '{self.fluid_name}' at p={p} Pa: {exc}",
                fluid=self.fluid_name,
            ) from exc
        # Round-off can place the triple-point temperature slightly below the valid range
        return max(AS.T(), self._temperature_limits[0])

    def __repr__(self):
        return f"CoolPropSubstance(name={self.fluid_name!r}, backend={self.backend!r})"
