from tunespace.interface import create_session, enumerate_configurations, tune_kernel
from tunespace.searchspace import ParameterSpace, Searchspace
from tunespace.restrictions import ConstraintSet

__version__ = "0.1.0"
