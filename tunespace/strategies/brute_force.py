"""The default strategy that iterates through the whole search space."""
from itertools import islice

from tunespace.searchspace import Searchspace
from tunespace.strategies import common

_options = {}


def tune(searchspace: Searchspace, runner, tuning_options):

    # Force error on unsupported options
    common.get_options(tuning_options.strategy_options or {}, _options)
    max_fevals = common.get_max_fevals(tuning_options.strategy_options or {})

    parameter_space = searchspace.iter_exhaustive()
    if max_fevals is not None:
        parameter_space = islice(parameter_space, max_fevals)

    # call the runner
    return runner.run(parameter_space, tuning_options)


tune.__doc__ = common.get_strategy_docstring("Brute Force", _options)
