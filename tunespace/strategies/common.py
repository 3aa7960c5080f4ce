"""Module for functionality that is commonly used throughout the strategies."""

import logging
import sys

from tunespace.searchspace import Searchspace
from tunespace.util import ErrorConfig, StopCriterionReached

_docstring_template = """ Find the best performing kernel configuration in the search space

    This $NAME$ strategy supports the following strategy_options:

$STRAT_OPT$

    :param searchspace: The resolved search space of the kernel family.
    :type searchspace: tunespace.searchspace.Searchspace

    :params runner: A runner from tunespace.runners
    :type runner: tunespace.runners.runner.Runner

    :param tuning_options: A dictionary with all options regarding the tuning
        process.
    :type tuning_options: tunespace.interface.Options

    :returns: A list of dictionaries for executed kernel configurations and their
        execution times.
    :rtype: list(dict())

    """


def get_strategy_docstring(name, strategy_options):
    """Generate docstring for a 'tune' method of a strategy."""
    return _docstring_template.replace("$NAME$", name).replace(
        "$STRAT_OPT$", make_strategy_options_doc(strategy_options)
    )


def make_strategy_options_doc(strategy_options):
    """Generate documentation for the supported strategy options and their defaults."""
    doc = ""
    for opt, val in strategy_options.items():
        doc += f"     * {opt}: {val[0]}, default {str(val[1])}. \n"
    doc += "\n"
    return doc


def get_options(strategy_options, options, unsupported=None):
    """Get the strategy-specific options or their defaults from user-supplied strategy_options."""
    accepted = list(options.keys()) + ["max_fevals"]
    if unsupported:
        accepted = [key for key in accepted if key not in unsupported]
    for key in strategy_options:
        if key not in accepted:
            raise ValueError(f"Unrecognized option {key} in strategy_options")
    assert isinstance(options, dict)
    return [strategy_options.get(opt, default) for opt, (_, default) in options.items()]


def get_max_fevals(strategy_options):
    """The maximum number of configurations to benchmark, or None when unlimited."""
    max_fevals = strategy_options.get("max_fevals", None)
    if max_fevals is not None and (not isinstance(max_fevals, int) or max_fevals < 1):
        raise ValueError(f"max_fevals should be a positive integer, got {max_fevals}")
    return max_fevals


def get_budget(searchspace: Searchspace, strategy_options, fraction):
    """The number of distinct configurations an iterative strategy may benchmark.

    This is max_fevals when given, otherwise the sample size of fraction.
    """
    max_fevals = get_max_fevals(strategy_options)
    if max_fevals is not None:
        return max_fevals
    return searchspace.get_num_samples(fraction)


class CostFunc:
    """Benchmarks one configuration at a time on behalf of the iterative strategies.

    Every distinct configuration is benchmarked once, calling the cost function
    again for the same configuration returns the recorded time. A configuration
    that failed to run costs sys.float_info.max. StopCriterionReached is raised
    when a new configuration is requested after budget distinct configurations
    have been benchmarked.
    """

    def __init__(self, searchspace: Searchspace, tuning_options, runner, budget):
        self.searchspace = searchspace
        self.tuning_options = tuning_options
        self.runner = runner
        self.budget = budget
        self.results = []
        self.unique_results = {}

    def __call__(self, configuration):
        """Cost function used by the iterative strategies."""
        logging.debug("cost function called for %s", configuration)
        key = configuration.as_tuple()
        if key not in self.unique_results:
            if len(self.unique_results) >= self.budget:
                raise StopCriterionReached(f"budget of {self.budget} configurations reached")
            result = self.runner.run([configuration], self.tuning_options)[0]
            self.unique_results[key] = result
            self.results.append(result)

        time = self.unique_results[key]["time"]
        if isinstance(time, ErrorConfig):
            return sys.float_info.max
        return time
