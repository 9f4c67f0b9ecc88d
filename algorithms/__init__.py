from .math_tools import MathTools
from .mastery_model import MasteryModel
from .progressive_overload import ProgressiveOverload
from .recovery_model import RecoveryModel

__all__ = ["MathTools", "MasteryModel", "ProgressiveOverload", "RecoveryModel"]
