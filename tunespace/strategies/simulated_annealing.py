"""The strategy that uses simulated annealing over the valid configurations."""
import sys

import numpy as np

from tunespace.searchspace import Searchspace
from tunespace.strategies import common
from tunespace.strategies.common import CostFunc
from tunespace.util import StopCriterionReached

_options = dict(max_temperature=("Starting temperature, lowered linearly to 0 as the budget is used up", 1.0),
                fraction=("Fraction of the unrestricted parameter space to benchmark, when max_fevals is not given", None),
                seed=("Seed of the random generator, None for a fresh seed", None))


def tune(searchspace: Searchspace, runner, tuning_options):
    strategy_options = tuning_options.strategy_options or {}
    max_temperature, fraction, seed = common.get_options(strategy_options, _options)
    if max_temperature <= 0:
        raise ValueError(f"max_temperature should be positive, got {max_temperature}")
    if fraction is None:
        fraction = tuning_options.fraction

    budget = common.get_budget(searchspace, strategy_options, fraction)
    cost_func = CostFunc(searchspace, tuning_options, runner, budget)
    rng = np.random.default_rng(seed)

    pos = random_position(searchspace, rng)
    if pos is None:
        return cost_func.results

    stuck = 0
    c_old = 0

    # safeguard against walks that keep revisiting the same configurations
    max_iter = 10 * budget

    try:
        old_cost = cost_func(pos)
        for iteration in range(max_iter):
            T = max_temperature * (1 - len(cost_func.unique_results) / budget)
            if tuning_options.verbose:
                print("iteration: ", iteration, "T", T, "cost: ", old_cost)

            new_pos = neighbor(pos, searchspace, rng)
            new_cost = cost_func(new_pos)

            ap = acceptance_prob(old_cost, new_cost, T)
            if ap > rng.random():
                pos = new_pos
                old_cost = new_cost

            # check if solver gets stuck and if so restart from random position
            c = len(cost_func.unique_results)
            stuck = stuck + 1 if c == c_old else 0
            c_old = c
            if stuck > 100:
                pos = random_position(searchspace, rng) or pos
                old_cost = cost_func(pos)
                stuck = 0
    except StopCriterionReached as e:
        if tuning_options.verbose:
            print(e)

    return cost_func.results


tune.__doc__ = common.get_strategy_docstring("Simulated Annealing", _options)


def acceptance_prob(old_cost, new_cost, T):
    """Annealing equation, with modifications to work towards a lower value."""
    error_val = sys.float_info.max
    # if start pos is not valid, always move
    if old_cost == error_val:
        return 1.0
    # if we have found a valid ps before, never move to nonvalid pos
    if new_cost == error_val:
        return 0.0
    # always move if new cost is better
    if new_cost < old_cost:
        return 1.0
    if T <= 0:
        return 0.0
    # maybe move if old cost is better than new cost depending on T and random value
    return np.exp(((old_cost - new_cost) / old_cost) / T)


def neighbor(pos, searchspace: Searchspace, rng):
    """Return a random valid neighbor of pos, or a random configuration when pos has none."""
    neighbors = searchspace.get_neighbors(pos)
    if neighbors:
        return neighbors[rng.integers(len(neighbors))]
    return random_position(searchspace, rng) or pos


def random_position(searchspace: Searchspace, rng):
    sample = searchspace.get_random_configurations(1, seed=rng)
    return sample[0] if sample else None
