import jax
import jax.numpy as jnp
import numpy as np
import equinox as eqx

from .. import helpers_props as pfp
from ..helpers_props import CriticalPoint
from ..exceptions import InvalidTarget
from ..substance import Substance, assemble_properties
from ..coolprop import CoolPropSubstance

# Properties returned by the differentiable evaluator, in the order of the rows
# of the Jacobian matrix
DIFFERENTIABLE_PROPERTIES = (
    "temperature",
    "density",
    "pressure",
    "specific_volume",
    "internal_energy",
    "enthalpy",
    "entropy",
    "gibbs_energy",
    "compressibility_factor",
)


# ----------------------------------------------------------------------------- #
# Constant generation
# ----------------------------------------------------------------------------- #
class PerfectGasConstants(eqx.Module):
    R: float
    gamma: float
    T_ref: float
    P_ref: float
    s_ref: float

    def __repr__(self) -> str:
        """Return a readable string representation of the constants,
        listing all field names and their scalar values."""
        lines = []
        for name, val in self.__dict__.items():
            try:
                val = jnp.array(val).item()  # scalar to Python number
            except Exception:
                pass
            lines.append(f"  {name}={val}")
        return "PerfectGasConstants(\n" + ",\n".join(lines) + "\n)"

    @property
    def molar_mass(self):
        return pfp.GAS_CONSTANT / self.R


def get_constants(fluid_name, T_ref, p_ref):
    """
    Compute perfect-gas constants from a real-fluid model at a reference state.

    Parameters
    ----------
    fluid_name : str
        Name of the fluid (passed to CoolProp).
    T_ref : float
        Reference temperature in kelvin [K].
    p_ref : float
        Reference pressure in pascal [Pa].

    Returns
    -------
    PerfectGasConstants
        An Equinox module containing the perfect-gas constants:
        - R : specific gas constant [J/(kg·K)]
        - gamma : specific heat ratio [-]
        - T_ref : reference temperature [K]
        - P_ref : reference pressure [Pa]
        - s_ref : reference entropy [J/(kg·K)]
    """
    substance = CoolPropSubstance(fluid_name, backend="HEOS")
    rho = substance.density_from_TP(T_ref, p_ref, phase_hint="vapor")
    state = substance.properties_at(T_ref, rho)
    return PerfectGasConstants(
        R=substance.specific_gas_constant,
        gamma=state["cp"] / state["cv"],
        T_ref=float(T_ref),
        P_ref=float(p_ref),
        s_ref=0.0,
    )


# ----------------------------------------------------------------------------- #
# Helper functions to calculate individual fluid properties
# ----------------------------------------------------------------------------- #


def specific_heat(constants):
    R = constants.R
    gamma = constants.gamma
    cp = (gamma * R) / (gamma - 1)
    cv = cp / gamma
    return cp, cv


def entropy_from_PT(p, T, constants):
    R = constants.R
    T_ref = constants.T_ref
    P_ref = constants.P_ref
    s_ref = constants.s_ref
    cp, _ = specific_heat(constants)
    return s_ref + (cp * jnp.log(T / T_ref)) - (R * jnp.log(p / P_ref))


def calculate_properties_rhoT(T, rho, constants):
    R = constants.R
    cp, cv = specific_heat(constants)
    p = rho * R * T
    return assemble_properties(
        T=T,
        rho=rho,
        p=p,
        u=cv * T,
        s=entropy_from_PT(p, T, constants),
        cv=cv,
        cp=cp,
        kappa_T=1.0 / p,
        alpha_p=1.0 / T,
        molar_mass=constants.molar_mass,
    )


@eqx.filter_jit
def _differentiable_properties(x, constants):
    props = calculate_properties_rhoT(x[0], x[1], constants)
    return jnp.stack([jnp.asarray(props[name]) for name in DIFFERENTIABLE_PROPERTIES])


@eqx.filter_jit
def _properties_jacobian(x, constants):
    return jax.jacfwd(_differentiable_properties)(x, constants)


# ----------------------------------------------------------------------------- #
# Substance API
# ----------------------------------------------------------------------------- #


class PerfectGasSubstance(Substance):
    r"""
    Calorically perfect gas with constant heat capacities.

    The properties follow from :math:`p=\rho R T`, :math:`u=c_v T`,
    :math:`h=c_p T` and

    .. math::

        s = s_\mathrm{ref} + c_p \ln(T/T_\mathrm{ref}) - R \ln(p/p_\mathrm{ref})

    The gas never condenses, so it has no critical point and no saturation
    curve. Property derivatives are computed exactly with JAX.

    Parameters
    ----------
    R : float
        Specific gas constant (J/kg/K).
    gamma : float
        Heat capacity ratio.
    T_ref, p_ref : float
        Reference temperature (K) and pressure (Pa) of the entropy.
    s_ref : float
        Entropy at the reference state (J/kg/K).
    name : str
        Name reported by the fluid states.
    temperature_limits : tuple of float
        Range of admissible temperatures (K).
    """

    def __init__(
        self,
        R=287.0,
        gamma=1.4,
        T_ref=300.0,
        p_ref=101_325.0,
        s_ref=0.0,
        name="perfect_gas",
        temperature_limits=(1.0, 10_000.0),
    ):
        super().__init__()
        if not (R > 0.0 and gamma > 1.0):
            raise ValueError(f"A perfect gas requires R > 0 and gamma > 1. Received R={R}, gamma={gamma}")
        self.fluid_name = name
        self.constants = PerfectGasConstants(
            R=float(R), gamma=float(gamma), T_ref=float(T_ref), P_ref=float(p_ref), s_ref=float(s_ref)
        )
        self._temperature_limits = tuple(float(T) for T in temperature_limits)

    @classmethod
    def from_coolprop(cls, name, T_ref=300.0, p_ref=101_325.0):
        """Create a perfect gas with the gas constant and heat capacity ratio of a CoolProp fluid"""
        constants = get_constants(name, T_ref, p_ref)
        return cls(
            R=constants.R,
            gamma=constants.gamma,
            T_ref=constants.T_ref,
            p_ref=constants.P_ref,
            s_ref=constants.s_ref,
            name=name,
        )

    @property
    def critical_point(self):
        return None

    @property
    def molar_mass(self):
        return self.constants.molar_mass

    @property
    def scales(self):
        c = self.constants
        return CriticalPoint(T=c.T_ref, p=c.P_ref, rho=c.P_ref / (c.R * c.T_ref))

    @property
    def temperature_limits(self):
        return self._temperature_limits

    @property
    def density_limits(self):
        rho_ref = self.scales.rho
        return (1e-12 * rho_ref, 1e6 * rho_ref)

    def _properties_1phase(self, T, rho):
        return calculate_properties_rhoT(T, rho, self.constants)

    def density_from_TP(self, T, p, phase_hint=None):
        if not p > 0.0:
            raise InvalidTarget(f"Pressure must be positive. Received p={p}")
        return p / (self.constants.R * T)

    def property_jacobian(self, T, rho, names):
        """Exact derivatives of the properties with respect to temperature and density"""
        rows = []
        for name in names:
            name = pfp.canonical_name(name)
            if name not in DIFFERENTIABLE_PROPERTIES:
                return super().property_jacobian(T, rho, names)
            rows.append(DIFFERENTIABLE_PROPERTIES.index(name))
        jacobian = _properties_jacobian(jnp.array([T, rho], dtype=jnp.float64), self.constants)
        return np.asarray(jacobian)[rows, :]

    def __repr__(self):
        c = self.constants
        return f"PerfectGasSubstance(name={self.fluid_name!r}, R={c.R}, gamma={c.gamma})"
