from .perfect_gas import PerfectGasSubstance, PerfectGasConstants, get_constants
