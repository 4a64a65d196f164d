import os
os.environ["JAX_PLATFORM_NAME"] = "cpu"
import jax
jax.config.update("jax_enable_x64", True)


from .utils import *
from .helpers_props import *
from .exceptions import *

# Import subpackages
from . import coolprop
from . import perfect_gas

# Import API classes
from .substance import Substance
from .coolprop import CoolPropSubstance
from .perfect_gas import PerfectGasSubstance
from .solver import StateSolver, SolverOptions, SolverResult
from .thermo_phase import ThermoPhase, PureFluid


# Package info
__version__ = "0.1.0"
PACKAGE_NAME = "purefluid"
BREAKLINE = 80 * "-"
