"""Iterate over a random sample of the search space."""
import logging

from tunespace.searchspace import Searchspace
from tunespace.strategies import common
from tunespace.util import SampleExhaustionError

_options = dict(
    fraction=("Fraction of the unrestricted parameter space to sample, value in (0, 1]", None),
    max_draws=("Maximum number of random draws, None means 100 times the number of samples", None),
    max_rejections=("Maximum number of consecutive draws that fail the constraints", 10000),
    seed=("Seed of the random generator, None for a fresh seed", None),
)


def tune(searchspace: Searchspace, runner, tuning_options):
    strategy_options = tuning_options.strategy_options or {}
    fraction, max_draws, max_rejections, seed = common.get_options(strategy_options, _options)
    max_fevals = common.get_max_fevals(strategy_options)

    # fall back on the fraction of the declaration
    if fraction is None:
        fraction = tuning_options.fraction

    try:
        samples = searchspace.get_random_sample(fraction, max_draws=max_draws, max_rejections=max_rejections, seed=seed)
    except SampleExhaustionError as e:
        logging.debug("random sampling stopped early: " + str(e))
        if not e.configurations:
            raise
        if tuning_options.verbose:
            print(e)
        samples = e.configurations

    # override if max_fevals is specified
    if max_fevals is not None:
        samples = samples[:max_fevals]

    return runner.run(samples, tuning_options)


tune.__doc__ = common.get_strategy_docstring("Random Sampling", _options)
