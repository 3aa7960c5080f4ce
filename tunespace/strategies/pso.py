"""The strategy that uses particle swarm optimization over the discrete search space.

Particles only ever sit on valid configurations. In every move each parameter of
a particle independently takes the value of the global best configuration with
probability influence_global, the value of the particle's own best configuration
with probability influence_local, a random candidate with probability
influence_random, and keeps its current value otherwise.
"""
import sys

import numpy as np

from tunespace.searchspace import Searchspace
from tunespace.strategies import common
from tunespace.strategies.common import CostFunc
from tunespace.util import StopCriterionReached

_options = dict(swarm_size=("Number of particles in the swarm", 8),
                influence_global=("Probability that a parameter takes the value of the global best", 0.3),
                influence_local=("Probability that a parameter takes the value of the particle's own best", 0.6),
                influence_random=("Probability that a parameter takes a random value", 0.1),
                fraction=("Fraction of the unrestricted parameter space to benchmark, when max_fevals is not given", None),
                seed=("Seed of the random generator, None for a fresh seed", None))

# attempts to find a valid position before a particle stays where it is
max_move_attempts = 16


def tune(searchspace: Searchspace, runner, tuning_options):
    strategy_options = tuning_options.strategy_options or {}
    swarm_size, inf_global, inf_local, inf_random, fraction, seed = common.get_options(strategy_options, _options)
    check_influences(swarm_size, inf_global, inf_local, inf_random)
    if fraction is None:
        fraction = tuning_options.fraction

    budget = common.get_budget(searchspace, strategy_options, fraction)
    cost_func = CostFunc(searchspace, tuning_options, runner, budget)
    rng = np.random.default_rng(seed)

    # particles start from distinct valid configurations
    swarm = [Particle(position) for position in searchspace.get_random_configurations(swarm_size, seed=rng)]
    if not swarm:
        return cost_func.results

    best_position_global = swarm[0].position
    best_score_global = sys.float_info.max

    # safeguard against swarms that keep revisiting the same configurations
    max_iter = 10 * budget

    for i in range(max_iter):
        if tuning_options.verbose:
            print("start iteration ", i, "best time global", best_score_global)

        # evaluate particle positions
        try:
            for particle in swarm:
                particle.evaluate(cost_func)
                if particle.score < best_score_global:
                    best_position_global = particle.position
                    best_score_global = particle.score
        except StopCriterionReached as e:
            if tuning_options.verbose:
                print(e)
            return cost_func.results

        for particle in swarm:
            particle.move(searchspace, best_position_global, inf_global, inf_local, inf_random, rng)

    return cost_func.results


tune.__doc__ = common.get_strategy_docstring("Particle Swarm Optimization (PSO)", _options)


def check_influences(swarm_size, inf_global, inf_local, inf_random):
    """Raise a ValueError for a swarm size or influences that do not make a valid swarm."""
    if not isinstance(swarm_size, int) or swarm_size < 1:
        raise ValueError(f"swarm_size should be a positive integer, got {swarm_size}")
    for name, value in (("influence_global", inf_global), ("influence_local", inf_local), ("influence_random", inf_random)):
        if not 0 <= value <= 1:
            raise ValueError(f"{name} should be in the interval [0, 1], got {value}")
    if inf_global + inf_local + inf_random > 1:
        raise ValueError("The influences of the swarm should add up to at most 1")


class Particle:
    def __init__(self, position):
        self.position = position
        self.best_pos = position
        self.best_score = sys.float_info.max
        self.score = sys.float_info.max

    def evaluate(self, cost_func):
        self.score = cost_func(self.position)
        # update best_pos if needed
        if self.score < self.best_score:
            self.best_pos = self.position
            self.best_score = self.score

    def move(self, searchspace, best_position_global, inf_global, inf_local, inf_random, rng):
        """Move to a valid position drawn from the influences, returns False when the particle stays."""
        for _ in range(max_move_attempts):
            values = []
            for name, candidates in zip(searchspace.param_names, searchspace.params_values):
                r = rng.random()
                if r < inf_global:
                    values.append(best_position_global[name])
                elif r < inf_global + inf_local:
                    values.append(self.best_pos[name])
                elif r < inf_global + inf_local + inf_random:
                    values.append(candidates[rng.integers(len(candidates))])
                else:
                    values.append(self.position[name])
            position = searchspace.configuration(values)
            if searchspace.verify(position):
                self.position = position
                return True
        return False
