from .core_calculations import CoolPropSubstance, compute_properties_1phase
