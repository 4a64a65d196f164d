import numpy as np
import CoolProp.CoolProp as CP
import pandas as pd
import purefluid as pf

# Define names of reference states
STATE_LABELS = [
    "subcooled_liquid",
    "two_phase",
    "superheated_vapor",
    "supercritical_liquid",
    "supercritical_gas",
]


# Define reference states dynamically
def get_reference_point(fluid_name, label):
    """
    Return the temperature and density of a reference state computed with CoolProp.

    The states are placed relative to the critical point so that the same labels
    can be used for any fluid.
    """
    AS = CP.AbstractState("HEOS", fluid_name)
    p_crit = AS.p_critical()
    T_crit = AS.T_critical()
    p_subcritical = 0.6 * p_crit
    AS.update(CP.PQ_INPUTS, p_subcritical, 0.0)
    T_sat_subcritical = AS.T()

    if label == "two_phase":
        AS.update(CP.PQ_INPUTS, p_subcritical, 0.5)

    elif label == "subcooled_liquid":
        AS.update(CP.PT_INPUTS, p_subcritical, T_sat_subcritical - 5)

    elif label == "superheated_vapor":
        AS.update(CP.PT_INPUTS, p_subcritical, T_sat_subcritical + 5)

    elif label == "supercritical_liquid":
        AS.update(CP.PT_INPUTS, 1.5 * p_crit, 0.9 * T_crit)

    elif label == "supercritical_gas":
        AS.update(CP.PT_INPUTS, 1.5 * p_crit, 1.2 * T_crit)

    else:
        raise ValueError(f"Unknown state label: {label}")

    return AS.T(), AS.rhomass()


def get_reference_state(substance, label):
    """Evaluate the reference state with the given substance"""
    T, rho = get_reference_point(substance.fluid_name, label)
    return substance.properties_at(T, rho)


def assert_consistent_values(
    v_ref,
    v_new,
    prop_name,
    fluid_name,
    state_label,
    input_type,
    prop1,
    prop2,
    tolerance,
    log_list,
    raise_error=True,
):
    """
    Compare a reference and computed value for thermodynamic consistency.

    The check passes if ``abs_error < tolerance`` or ``rel_error < tolerance``.
    Every comparison is appended to ``log_list`` so that the largest deviations
    can be summarized at the end of the test session.
    """

    # Skip boolean types
    if isinstance(v_ref, (bool, np.bool_)) or isinstance(v_new, (bool, np.bool_)):
        return

    # Skip NaNs (both-NaN treated as consistent)
    if np.isnan(v_ref) and np.isnan(v_new):
        return

    # Compute error metrics
    abs_err = abs(v_new - v_ref)
    rel_err = abs_err / abs(v_ref) if abs(v_ref) > 0 else np.inf
    min_error = min(abs_err, rel_err)

    # Append result to log
    log_list.append(
        {
            "fluid": fluid_name,
            "state": state_label,
            "property": prop_name,
            "input_type": input_type,
            "input_1": prop1,
            "input_2": prop2,
            "ref_value": v_ref,
            "new_value": v_new,
            "abs_error": abs_err,
            "rel_error": rel_err,
            "min_error": min_error,
        }
    )

    if not (abs_err < tolerance or rel_err < tolerance) and raise_error:
        raise AssertionError(
            f"Inconsistency in '{prop_name}' for fluid '{fluid_name}' "
            f"at state '{state_label}' using input '{input_type}'\n"
            f"  input = ({prop1:.6g}, {prop2:.6g})\n"
            f"  ref = {v_ref:.6g}, new = {v_new:.6g}\n"
            f"  abs_err = {abs_err:.2e}, rel_err = {rel_err:.2e} "
            f"(fails check: abs_err < {tolerance:.1e} or rel_err < {tolerance:.1e})"
        )


def print_log_summary(log_list, log_name, print_statistics):
    """Print the largest deviations of a consistency log with pandas"""
    if not print_statistics:
        return
    if log_list:
        df = pd.DataFrame(log_list)
        df = df.sort_values(by="min_error", ascending=False)
        print(f"\n[INFO] {log_name} summary (top 20 deviations):")
        print(df.head(20).to_string(index=False, float_format=lambda x: f"{x:.3e}"))
    else:
        print(f"\n[INFO] {log_name} log is empty.")


# Substances with artificial defects used to exercise the recovery paths of the solver
class BoundedPerfectGas(pf.PerfectGasSubstance):
    """Perfect gas that cannot be evaluated above a temperature limit"""

    def __init__(self, T_fail, **kwargs):
        super().__init__(**kwargs)
        self.T_fail = T_fail

    def _properties_1phase(self, T, rho):
        if T > self.T_fail:
            raise pf.OracleEvaluationError(f"T={T} K is above {self.T_fail} K", fluid=self.fluid_name, temperature=T)
        return super()._properties_1phase(T, rho)


class DensityIndependentGas(pf.PerfectGasSubstance):
    """Perfect gas whose entropy and enthalpy do not depend on density"""

    def _properties_1phase(self, T, rho):
        props = super()._properties_1phase(T, rho)
        cp, _ = pf.perfect_gas.perfect_gas.specific_heat(self.constants)
        props["enthalpy"] = cp * T
        props["entropy"] = cp * np.log(T / self.constants.T_ref)
        return props

    def property_jacobian(self, T, rho, names):
        return pf.Substance.property_jacobian(self, T, rho, names)


class PseudoCriticalGas(pf.PerfectGasSubstance):
    """Perfect gas with a critical temperature but no saturation curve

    Records the temperatures at which the equation of state is evaluated.
    """

    def __init__(self, T_crit, **kwargs):
        super().__init__(**kwargs)
        self.T_crit = T_crit
        self.evaluated_temperatures = []

    @property
    def critical_point(self):
        p_crit = self.constants.P_ref
        return pf.CriticalPoint(T=self.T_crit, p=p_crit, rho=p_crit / (self.constants.R * self.T_crit))

    def is_subcritical(self, T):
        return False

    def _properties_1phase(self, T, rho):
        self.evaluated_temperatures.append(float(T))
        return super()._properties_1phase(T, rho)
