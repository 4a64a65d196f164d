import os
import pytest
import atexit
import logging
import numpy as np
import purefluid as pf

from utilities import (
    STATE_LABELS,
    BoundedPerfectGas,
    DensityIndependentGas,
    PseudoCriticalGas,
    get_reference_state,
    assert_consistent_values,
    print_log_summary,
)


# Consistency statistics
CONSISTENCY_LOG = []
PRINT_STATISTICS = os.environ.get("PRINT_STATISTICS") == "1"

# Tolerances for comparison
TOL = 1e-6

# Define all working fluids
FLUID_NAMES = [
    "Water",
    "CO2",
    "Nitrogen",
]

# Properties compared after each calculation
PROPERTY_NAMES = [
    "temperature",
    "density",
    "pressure",
    "enthalpy",
    "entropy",
    "internal_energy",
    "quality_mass",
]

# Entropy-enthalpy inside the dome is covered by a dedicated test
CASES = [
    (label, pair)
    for label in STATE_LABELS
    for pair in pf.PropertyPair
    if not (label == "two_phase" and pair is pf.PropertyPair.SH)
]

SUBSTANCES = {}


def get_substance(fluid_name):
    """Create each substance once per session (saturation states are cached)"""
    if fluid_name not in SUBSTANCES:
        SUBSTANCES[fluid_name] = pf.CoolPropSubstance(fluid_name)
    return SUBSTANCES[fluid_name]


def get_warm_start(substance, state):
    """Initial guess displaced from the solution in temperature only"""
    return substance.properties_at(1.01 * state.temperature, state.density)


@pytest.mark.parametrize("fluid_name", FLUID_NAMES)
@pytest.mark.parametrize("state_label, pair", CASES)
def test_property_pair_round_trip(fluid_name, state_label, pair):

    # Compute reference state
    substance = get_substance(fluid_name)
    state_ref = get_reference_state(substance, state_label)
    solver = pf.StateSolver(substance)

    # Compute the new state from the properties of the reference state
    prop1, prop2 = (state_ref[name] for name in pair.properties)
    result = solver.solve(pair, prop1, prop2, get_warm_start(substance, state_ref))
    assert result.residual < pf.solver.SOLVER_TOLERANCE

    for key in PROPERTY_NAMES:
        assert_consistent_values(
            state_ref[key],
            result.state[key],
            prop_name=key,
            fluid_name=fluid_name,
            state_label=state_label,
            input_type=pair.name,
            prop1=prop1,
            prop2=prop2,
            tolerance=TOL,
            log_list=CONSISTENCY_LOG,
            raise_error=True,
        )


@pytest.mark.parametrize("fluid_name", FLUID_NAMES)
def test_entropy_enthalpy_inside_dome(fluid_name):
    substance = get_substance(fluid_name)
    state_ref = get_reference_state(substance, "two_phase")
    initial = substance.properties_at(1.001 * state_ref.temperature, state_ref.density)
    result = pf.StateSolver(substance).solve("SH", state_ref.entropy, state_ref.enthalpy, initial)

    assert result.path == "newton"
    assert result.phase_switch
    assert result.state.is_two_phase
    assert result.state.temperature == pytest.approx(state_ref.temperature, rel=TOL)
    assert result.state.quality_mass == pytest.approx(state_ref.quality_mass, rel=TOL)


@pytest.mark.parametrize("fluid_name", FLUID_NAMES)
def test_newton_from_distant_guess(fluid_name):
    substance = get_substance(fluid_name)
    state_ref = get_reference_state(substance, "supercritical_gas")
    initial = substance.properties_at(1.2 * state_ref.temperature, 0.8 * state_ref.density)
    result = pf.StateSolver(substance).solve("SH", state_ref.entropy, state_ref.enthalpy, initial)
    assert result.iterations <= pf.solver.SOLVER_MAX_ITERATIONS
    assert result.state.temperature == pytest.approx(state_ref.temperature, rel=TOL)
    assert result.state.density == pytest.approx(state_ref.density, rel=TOL)


@pytest.mark.parametrize("state_label", STATE_LABELS)
def test_temperature_volume_is_direct(state_label):
    substance = get_substance("Water")
    state_ref = get_reference_state(substance, state_label)
    result = pf.StateSolver(substance).solve("TV", state_ref.temperature, state_ref.specific_volume, state_ref)
    assert result.iterations == 1
    assert result.path == "direct"
    assert result.state.density == pytest.approx(state_ref.density, rel=1e-12)


@pytest.mark.parametrize("fluid_name", FLUID_NAMES)
def test_enthalpy_pressure_inside_dome(fluid_name):
    substance = get_substance(fluid_name)
    p = 0.5 * substance.critical_point.p
    liquid, vapor = substance.saturation_states(substance.saturation_temperature(p))
    h = 0.3 * liquid.enthalpy + 0.7 * vapor.enthalpy
    result = pf.StateSolver(substance).solve("HP", h, p, vapor)
    assert result.path == "saturation"
    assert 0.0 < result.state.quality_mass < 1.0
    assert result.state.quality_mass == pytest.approx(0.7, rel=1e-9)


@pytest.mark.parametrize("pair", ["TH", "ST"])
@pytest.mark.parametrize("T, p", [(300.0, 10e6), (275.0, 50e6)])
def test_temperature_pairs_in_compressed_liquid(pair, T, p):
    # Cold compressed water can share temperature and enthalpy with a two-phase state
    substance = get_substance("Water")
    state_ref = substance.properties_at(T, substance.density_from_TP(T, p))
    prop1, prop2 = (state_ref[name] for name in pf.PropertyPair.from_name(pair).properties)
    result = pf.StateSolver(substance).solve(pair, prop1, prop2, state_ref)
    assert result.path == "temperature"
    assert not result.state.is_two_phase
    assert result.state.density == pytest.approx(state_ref.density, rel=TOL)
    assert result.state.pressure == pytest.approx(p, rel=1e-5)


def test_enthalpy_temperature_keeps_two_phase_warm_start():
    substance = get_substance("Water")
    T = 300.0
    p = 10e6
    h = substance.properties_at(T, substance.density_from_TP(T, p)).enthalpy
    liquid, vapor = substance.saturation_states(T)
    x = (h - liquid.enthalpy) / (vapor.enthalpy - liquid.enthalpy)
    v_mid = 0.5 * (liquid.specific_volume + vapor.specific_volume)
    initial = substance.properties_at(T, 1.0 / v_mid)
    assert initial.is_two_phase
    result = pf.StateSolver(substance).solve("TH", T, h, initial)
    assert result.path == "saturation"
    assert result.state.quality_mass == pytest.approx(x, rel=1e-9)


def test_compressed_liquid_enthalpy_setter():
    fluid = pf.PureFluid("Water", T=300.0, p=10e6)
    rho, h = fluid.density, fluid.enthalpy_mass
    fluid.set_state_TH(300.0, h)
    assert fluid.density == pytest.approx(rho, rel=TOL)
    assert fluid.P == pytest.approx(10e6, rel=1e-5)


def test_newton_step_halving_after_evaluation_errors(caplog):
    gas = BoundedPerfectGas(T_fail=400.0)
    target = pf.PerfectGasSubstance().properties_at(600.0, 1e5 / (287.0 * 600.0))
    fluid = pf.PureFluid(gas, T=300.0, p=1e5)
    state_before = fluid.state

    caplog.set_level(logging.DEBUG, logger="purefluid.solver")
    with pytest.raises(pf.ConvergenceFailure, match="step reductions") as excinfo:
        fluid.set_state_SH(target.entropy, target.enthalpy)
    assert any("halving the step" in record.getMessage() for record in caplog.records)
    assert excinfo.value.iterations < pf.solver.SOLVER_MAX_ITERATIONS
    assert fluid.state is state_before


def test_singular_jacobian():
    gas = DensityIndependentGas()
    target = gas.properties_at(400.0, 1.0)
    fluid = pf.PureFluid(gas, T=300.0, p=1e5)
    state_before = fluid.state
    with pytest.raises(pf.ConvergenceFailure, match="Singular Jacobian") as excinfo:
        fluid.set_state_SH(target.entropy, target.enthalpy)
    assert excinfo.value.iterations == 0
    assert fluid.state is state_before


def test_iteration_limit():
    substance = get_substance("CO2")
    state_ref = get_reference_state(substance, "supercritical_gas")
    fluid = pf.PureFluid(substance, options=pf.SolverOptions(max_iterations=1))
    fluid.set_state_TD(1.2 * state_ref.temperature, 0.8 * state_ref.density)
    state_before = fluid.state
    with pytest.raises(pf.ConvergenceFailure, match="Maximum number of iterations") as excinfo:
        fluid.set_state_SH(state_ref.entropy, state_ref.enthalpy)
    assert excinfo.value.iterations == 1
    assert fluid.state is state_before


def test_newton_step_limited_at_critical_temperature():
    gas = PseudoCriticalGas(T_crit=400.0)
    target = gas.properties_at(600.0, 1e5 / (287.0 * 600.0))
    initial = gas.properties_at(390.0, 1e5 / (287.0 * 390.0))
    gas.evaluated_temperatures.clear()
    result = pf.StateSolver(gas).solve("SH", target.entropy, target.enthalpy, initial)

    # The first trial point overshoots the critical temperature by the initial distance to it
    assert gas.evaluated_temperatures[0] == pytest.approx(390.0)
    assert gas.evaluated_temperatures[1] == pytest.approx(410.0, rel=1e-12)
    assert result.path == "newton"
    assert result.state.temperature == pytest.approx(600.0, rel=TOL)


def test_targets_without_second_property():
    solver = pf.StateSolver(get_substance("Water"))
    with pytest.raises(ValueError, match="do not contain"):
        solver._other_target({"temperature": 300.0}, "temperature")


def test_incompatible_entropy_volume():
    fluid = pf.PureFluid("Water", T=300.0, p=101325.0)
    state_before = fluid.state
    with pytest.raises(pf.ConvergenceFailure) as excinfo:
        fluid.set_state_SV(1e5, 1e-3)
    assert excinfo.value.iterations is None or excinfo.value.iterations <= pf.solver.SOLVER_MAX_ITERATIONS
    assert fluid.state is state_before
    assert fluid.T == 300.0


@pytest.mark.parametrize(
    "pair, value_1, value_2",
    [
        ("HP", 1e5, -1.0),
        ("UV", 1e5, 0.0),
        ("TV", -10.0, 1e-3),
        ("ST", 1e3, 1e5),
        ("SP", np.nan, 1e5),
        ("TH", 300.0, np.inf),
        ("PV", 1e5, "abc"),
    ],
)
def test_invalid_targets(pair, value_1, value_2):
    fluid = pf.PureFluid("Water")
    with pytest.raises(pf.InvalidTarget):
        fluid.set_state(pair, value_1, value_2)
    assert fluid.T == pytest.approx(300.0)


def test_invalid_tolerance():
    fluid = pf.PureFluid("Water")
    with pytest.raises(pf.InvalidTarget):
        fluid.set_state_HP(1e5, 1e5, tol=0.0)


def test_unknown_pair():
    fluid = pf.PureFluid("Water")
    with pytest.raises(ValueError, match="Unknown property pair"):
        fluid.set_state("HT", 1e5, 300.0)


def test_external_solver():
    substance = get_substance("CO2")
    state_ref = get_reference_state(substance, "supercritical_gas")
    options = pf.SolverOptions(method="hybr")
    solver = pf.StateSolver(substance, options)
    initial = substance.properties_at(1.01 * state_ref.temperature, state_ref.density)
    result = solver.solve("SH", state_ref.entropy, state_ref.enthalpy, initial, tol=1e-6)
    assert result.path == "hybr"
    assert result.iterations is None
    assert result.state.temperature == pytest.approx(state_ref.temperature, rel=1e-4)
    assert result.state.density == pytest.approx(state_ref.density, rel=1e-4)


def test_solver_options_validation():
    with pytest.raises(ValueError):
        pf.SolverOptions(method="bisection")
    with pytest.raises(ValueError):
        pf.SolverOptions(tolerance=-1.0)
    with pytest.raises(ValueError):
        pf.SolverOptions(max_iterations=0)


# Print consistency summary
log_name = os.path.splitext(os.path.basename(__file__))[0]
atexit.register(print_log_summary, CONSISTENCY_LOG, log_name, PRINT_STATISTICS)


if __name__ == "__main__":

    # Running pytest from this script
    os.environ["PRINT_STATISTICS"] = "1"
    pytest.main([__file__, "-v"])
