import enum
import numpy as np
import jax.numpy as jnp
import equinox as eqx

# Universal molar gas constant
GAS_CONSTANT = 8.3144598

# -------------------------------------------------------------------- #
# Property pairs accepted by the state solver
# -------------------------------------------------------------------- #


class PropertyPair(enum.Enum):
    """Pairs of properties that can be used to set the state of a pure fluid.

    The value of each member is the tuple of canonical property names that
    accompany it, in the order in which the values are passed to the solver.
    The letter ``V`` denotes the specific volume :math:`v=1/\\rho`.
    """

    HP = ("enthalpy", "pressure")
    UV = ("internal_energy", "specific_volume")
    SV = ("entropy", "specific_volume")
    SP = ("entropy", "pressure")
    ST = ("entropy", "temperature")
    TV = ("temperature", "specific_volume")
    PV = ("pressure", "specific_volume")
    UP = ("internal_energy", "pressure")
    VH = ("specific_volume", "enthalpy")
    TH = ("temperature", "enthalpy")
    SH = ("entropy", "enthalpy")

    @property
    def properties(self):
        return self.value

    @classmethod
    def from_name(cls, pair):
        """Return the pair given a member, its name or its name in lowercase"""
        if isinstance(pair, cls):
            return pair
        try:
            return cls[str(pair).upper()]
        except KeyError:
            valid = ", ".join(member.name for member in cls)
            raise ValueError(f"Unknown property pair '{pair}'. Valid options are: {valid}")


# Pairs grouped by the property that allows a cheaper, one-dimensional solution
PRESSURE_PAIRS = (PropertyPair.HP, PropertyPair.SP, PropertyPair.UP)
VOLUME_PAIRS = (PropertyPair.UV, PropertyPair.SV, PropertyPair.VH, PropertyPair.PV)
TEMPERATURE_PAIRS = (PropertyPair.ST, PropertyPair.TH, PropertyPair.TV)

# Properties that obey the lever rule inside the two-phase region
EXTENSIVE_PROPERTIES = ("specific_volume", "internal_energy", "enthalpy", "entropy")


# -------------------------------------------------------------------- #
# Define aliases for canonical property names
# -------------------------------------------------------------------- #

PROPERTY_ALIASES = {
    # --- basic thermodynamic properties
    "pressure": ["p", "P"],
    "temperature": ["T"],
    "density": ["rho", "d", "rhomass", "dmass"],
    "specific_volume": ["v", "vmass"],
    "enthalpy": ["h", "hmass", "H"],
    "entropy": ["s", "smass"],
    "internal_energy": ["u", "umass", "e", "energy"],
    "gibbs_energy": ["g", "gmass", "gibbs"],
    # --- heat capacities & ratios
    "isobaric_heat_capacity": ["cp", "cpmass"],
    "isochoric_heat_capacity": ["cv", "cvmass"],
    "heat_capacity_ratio": ["gamma", "kappa"],
    # --- compressibility & expansion
    "compressibility_factor": ["Z"],
    "isothermal_compressibility": ["kappa_T"],
    "isobaric_expansion_coefficient": ["alpha_p"],
    # --- two-phase
    "is_two_phase": [],
    "quality_mass": ["vapor_quality", "vapor_fraction", "Q", "q", "x"],
}


# flat lookup alias -> canonical
ALIAS_TO_CANONICAL = {}
for canonical, aliases in PROPERTY_ALIASES.items():
    for alias in aliases:
        if alias in ALIAS_TO_CANONICAL:
            raise ValueError(f"Alias {alias} defined for multiple properties")
        ALIAS_TO_CANONICAL[alias] = canonical
    # also allow canonical name itself
    ALIAS_TO_CANONICAL[canonical] = canonical


def canonical_name(name):
    """Return the canonical name of a property given its canonical name or alias"""
    try:
        return ALIAS_TO_CANONICAL[name]
    except KeyError:
        raise ValueError(f"Unknown property name or alias: {name}")


# -------------------------------------------------------------------- #
# Define equinox Modules to represent fluid states
# -------------------------------------------------------------------- #


class BaseState(eqx.Module):
    """
    Base class for state-like objects.

    - metadata fields are configurable via _meta_fields
    - alias lookup uses the global ALIAS_TO_CANONICAL
    """

    # --- configuration hooks (static so they don't become pytree leaves)
    _meta_fields: tuple = eqx.field(static=True, default=("fluid_name", "_meta_fields"))

    # --- Access helpers
    def __getitem__(self, key: str):
        """Allow dictionary-style access via canonical or alias name"""
        # Metadata keys: passthrough
        if key in self._meta_fields:
            return getattr(self, key)

        # Canonical / alias keys
        if key in ALIAS_TO_CANONICAL:
            return getattr(self, ALIAS_TO_CANONICAL[key])

        raise KeyError(f"Unknown property alias: {key}")

    def __getattr__(self, key: str):
        """Allow attribute-style access via alias names"""
        if key in ALIAS_TO_CANONICAL:
            return getattr(self, ALIAS_TO_CANONICAL[key])
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{key}'")

    def __repr__(self) -> str:
        """Readable string representation with scalars if possible"""
        lines = []
        for name, val in self.__dict__.items():
            if val is None or name == "_meta_fields":
                continue
            try:
                val = jnp.array(val).item()
            except Exception:
                pass
            lines.append(f"  {name}={val}")
        return f"{type(self).__name__}(\n" + ",\n".join(lines) + "\n)"

    def to_dict(self, include_aliases: bool = False):
        """Return dict of numeric properties, with optional aliases."""

        skip = set(self._meta_fields)
        out = {}

        for k, v in self.__dict__.items():
            if v is None or k in skip:
                continue
            out[k] = np.asarray(v).item() if np.ndim(v) == 0 else np.asarray(v)

        # alias expansion
        if include_aliases:
            for canonical, aliases in PROPERTY_ALIASES.items():
                if canonical in out:
                    for alias in aliases:
                        if alias not in out:
                            out[alias] = out[canonical]

        return out

    def keys(self):
        """Dict-style iteration"""
        return self.to_dict().keys()

    def values(self):
        """Dict-style iteration"""
        return self.to_dict().values()

    def items(self):
        """Dict-style iteration"""
        return self.to_dict().items()


class FluidState(BaseState):
    """Thermodynamic state of a pure fluid evaluated at a temperature-density point"""

    # --- metadata
    fluid_name: str = eqx.field(static=True, default=None)

    # --- independent variables
    temperature: float = np.nan
    density: float = np.nan

    # --- basic thermodynamic properties
    pressure: float = np.nan
    specific_volume: float = np.nan
    internal_energy: float = np.nan
    enthalpy: float = np.nan
    entropy: float = np.nan
    gibbs_energy: float = np.nan
    compressibility_factor: float = np.nan

    # --- thermodynamic properties involving derivatives
    isobaric_heat_capacity: float = np.nan
    isochoric_heat_capacity: float = np.nan
    heat_capacity_ratio: float = np.nan
    isothermal_compressibility: float = np.nan
    isobaric_expansion_coefficient: float = np.nan

    # --- two-phase properties
    is_two_phase: bool = False
    quality_mass: float = np.nan


class CriticalPoint(eqx.Module):
    """Critical constants of a pure substance"""

    T: float
    p: float
    rho: float

    def __repr__(self) -> str:
        return f"CriticalPoint(T={self.T}, p={self.p}, rho={self.rho})"

