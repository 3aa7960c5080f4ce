"""Module with the parameter space and the resolver that produces its valid configurations."""

import logging
from collections import OrderedDict, namedtuple
from collections.abc import Mapping
from itertools import product
from math import ceil, prod
from typing import Iterator, List
from warnings import warn

import numpy as np
from constraint import BacktrackingSolver, Problem

from tunespace.restrictions import ConstraintSet, check_restrictions
from tunespace.util import (
    DuplicateParameterError,
    EmptyDomainError,
    SampleExhaustionError,
    SpaceFrozenError,
    check_fraction,
    is_non_negative_integer,
)

supported_frameworks = ["backtracking", "bruteforce", "pythonconstraint"]

_TunableParameter = namedtuple("_TunableParameter", ["name", "candidates"])


class TunableParameter(_TunableParameter):
    """A named compile-time choice with an ordered tuple of candidate values."""

    def __new__(cls, name, candidates):
        candidates = tuple(candidates)
        if len(candidates) == 0:
            raise EmptyDomainError(f"Tunable parameter {name} has no candidate values")
        for value in candidates:
            if not is_non_negative_integer(value):
                raise ValueError(f"Candidate {value!r} of tunable parameter {name} is not a non-negative integer")
        if len(set(candidates)) != len(candidates):
            raise ValueError(f"Tunable parameter {name} has duplicate candidate values {candidates}")
        return super().__new__(cls, name, tuple(int(value) for value in candidates))


class ParameterSpace:
    """Ordered, write-once collection of tunable parameters.

    The insertion order of the parameters is the order in which the resolver
    expands the space and the order of the values in a configuration tuple.
    """

    def __init__(self, tune_params=None):
        self._params = OrderedDict()
        self._frozen = False
        if tune_params is not None:
            for name, candidates in tune_params.items():
                self.add(name, candidates)

    def add(self, name, candidates):
        if self._frozen:
            raise SpaceFrozenError(f"Cannot add {name}, the parameter space is read-only once resolution began")
        if name in self._params:
            raise DuplicateParameterError(f"Tunable parameter {name} is already in the parameter space")
        param = TunableParameter(name, candidates)
        self._params[name] = param
        return param

    def all_names(self) -> List[str]:
        """The names of the parameters in insertion order."""
        return list(self._params.keys())

    def candidates(self, name) -> tuple:
        return self._params[name].candidates

    def cartesian_size(self) -> int:
        """Number of configurations in the unrestricted Cartesian product."""
        return prod(len(param.candidates) for param in self._params.values())

    def as_dict(self) -> OrderedDict:
        return OrderedDict((name, param.candidates) for name, param in self._params.items())

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self):
        return self._frozen

    def __getitem__(self, name):
        return self._params[name]

    def __contains__(self, name):
        return name in self._params

    def __iter__(self):
        return iter(self._params)

    def __len__(self):
        return len(self._params)

    def __repr__(self):
        return f"ParameterSpace({dict(self.as_dict())})"


class Configuration(Mapping):
    """Immutable assignment of one value to every parameter of a space."""

    __slots__ = ("_names", "_values", "_index")

    def __init__(self, names, values):
        self._names = tuple(names)
        self._values = tuple(values)
        if len(self._names) != len(self._values):
            raise ValueError(f"{len(self._names)} names but {len(self._values)} values")
        self._index = None

    def __getitem__(self, name):
        if self._index is None:
            self._index = dict(zip(self._names, self._values))
        return self._index[name]

    def __iter__(self):
        return iter(self._names)

    def __len__(self):
        return len(self._names)

    def __hash__(self):
        return hash((self._names, self._values))

    def __eq__(self, other):
        if isinstance(other, Configuration):
            return self._names == other._names and self._values == other._values
        return super().__eq__(other)

    def as_tuple(self) -> tuple:
        """The values in parameter order."""
        return self._values

    def __repr__(self):
        return "Configuration(" + ", ".join(f"{n}={v}" for n, v in zip(self._names, self._values)) + ")"


class Searchspace:
    """Resolves the valid configurations of a parameter space under a set of constraints.

    Two modes share the same space and constraints:
        exhaustive: every valid configuration, in lexicographic order of the candidate indices
        sampling: uniformly random draws from the unrestricted product, keeping the valid ones

    The exhaustive mode is computed by one of the frameworks:
        backtracking: lazy backtracking in parameter order, a constraint is checked as soon as its last parameter is bound
        bruteforce: builds the full Cartesian product and filters it, only meant for small spaces
        pythonconstraint: solves the space with python-constraint and sorts the solutions
    """

    def __init__(self, space: ParameterSpace, constraints=None, framework="backtracking") -> None:
        if framework.lower() not in supported_frameworks:
            raise ValueError(f"Invalid framework {framework}, must be one of {supported_frameworks}")
        if constraints is None:
            constraints = ConstraintSet(space)
        elif not isinstance(constraints, ConstraintSet):
            constraints = ConstraintSet(space, constraints)
        elif constraints.space is not space:
            raise ValueError("The constraints were declared on a different parameter space")

        if len(space) == 0:
            raise ValueError("The parameter space has no tunable parameters")

        space.freeze()
        self.space = space
        self.constraints = constraints
        self.framework = framework.lower()
        self.param_names = tuple(space.all_names())
        self.params_values = tuple(space.candidates(name) for name in self.param_names)
        self.num_params = len(self.param_names)
        self.cartesian_size = space.cartesian_size()
        self._schedule = constraints.schedule(self.param_names)
        logging.debug(
            "searchspace with %d parameters, %d constraints and %d unrestricted configurations",
            self.num_params,
            len(constraints),
            self.cartesian_size,
        )

    def configuration(self, values) -> Configuration:
        """Create a Configuration of this space from a sequence of values in parameter order."""
        return Configuration(self.param_names, values)

    def verify(self, configuration) -> bool:
        """Independently re-check a configuration against every constraint."""
        return check_restrictions(self.constraints, configuration)

    def is_param_config_valid(self, param_config) -> bool:
        """Returns whether a configuration (mapping or tuple in parameter order) lies in the space and is valid."""
        if not isinstance(param_config, Mapping):
            param_config = self.configuration(param_config)
        for name, values in zip(self.param_names, self.params_values):
            if name not in param_config or param_config[name] not in values:
                return False
        return self.verify(param_config)

    def get_param_indices(self, param_config) -> tuple:
        """For each parameter value in the configuration, find the index in its candidates."""
        return tuple(values.index(param_config[name]) for name, values in zip(self.param_names, self.params_values))

    def iter_exhaustive(self, fixed=None) -> Iterator[Configuration]:
        """Lazily generate every valid configuration.

        :param fixed: Optional dictionary that pins a prefix of the parameters, in
            parameter order, to a single value each. Used to split the space into
            independent ranges.
        :type fixed: dict
        """
        domains = self._domains(fixed)
        if self.framework == "bruteforce":
            return self._iter_bruteforce(domains)
        if self.framework == "pythonconstraint":
            return self._iter_python_constraint(domains)
        return self._iter_backtracking(domains)

    def __iter__(self):
        return self.iter_exhaustive()

    def _domains(self, fixed):
        if not fixed:
            return self.params_values
        domains = list(self.params_values)
        for name, value in fixed.items():
            index = self.param_names.index(name)
            if value not in domains[index]:
                raise ValueError(f"Value {value} is not a candidate of {name}")
            domains[index] = (value,)
        return tuple(domains)

    def _iter_backtracking(self, domains):
        schedule = self._schedule
        names = self.param_names
        last = self.num_params - 1
        current = [None] * self.num_params
        positions = [0] * self.num_params
        depth = 0
        while depth >= 0:
            if positions[depth] == len(domains[depth]):
                positions[depth] = 0
                depth -= 1
                if depth >= 0:
                    positions[depth] += 1
                continue
            current[depth] = domains[depth][positions[depth]]
            valid = all(
                constraint.evaluate([current[i] for i in indices]) for constraint, indices in schedule[depth]
            )
            if valid and depth == last:
                yield Configuration(names, current)
            if valid and depth < last:
                depth += 1
            else:
                positions[depth] += 1

    def _iter_bruteforce(self, domains):
        for values in product(*domains):
            configuration = Configuration(self.param_names, values)
            if check_restrictions(self.constraints, configuration):
                yield configuration

    def _iter_python_constraint(self, domains):
        problem = Problem(solver=BacktrackingSolver())
        for name, values in zip(self.param_names, domains):
            problem.addVariable(name, list(values))
        for constraint in self.constraints:
            problem.addConstraint(*constraint.to_python_constraint())
        solutions = [tuple(solution[name] for name in self.param_names) for solution in problem.getSolutions()]
        # sort on the candidate indices to get the same order as the other frameworks
        index_maps = [{value: i for i, value in enumerate(values)} for values in self.params_values]
        solutions.sort(key=lambda values: tuple(index_maps[i][v] for i, v in enumerate(values)))
        for values in solutions:
            yield Configuration(self.param_names, values)

    def partitions(self) -> List[Iterator[Configuration]]:
        """Split the exhaustive range on the candidates of the first parameter.

        The partitions are independent and can be consumed concurrently, their
        concatenation in order equals iter_exhaustive().
        """
        first = self.param_names[0]
        return [self.iter_exhaustive(fixed={first: value}) for value in self.params_values[0]]

    def sorted_list(self) -> List[Configuration]:
        """All valid configurations as a list, in lexicographic order."""
        return list(self.iter_exhaustive())

    def get_num_samples(self, fraction) -> int:
        """The number of configurations a sample of fraction of the unrestricted space aims for."""
        check_fraction(fraction)
        return int(ceil(fraction * self.cartesian_size))

    def iter_sample(self, fraction, max_draws=None, max_rejections=10000, seed=None) -> Iterator[Configuration]:
        """Generate distinct valid configurations drawn uniformly from the unrestricted product.

        :param fraction: Fraction in (0, 1] of the unrestricted space size to aim for.
        :type fraction: float

        :param max_draws: Total number of draws after which sampling ends, even when
            fewer configurations were found. Defaults to 100 times the target.
        :type max_draws: int

        :param max_rejections: Number of consecutive new draws that fail the
            constraints before SampleExhaustionError is raised. None disables the check.
        :type max_rejections: int

        :param seed: Seed or numpy Generator for reproducible samples.
        :type seed: int or numpy.random.Generator
        """
        target = self.get_num_samples(fraction)
        if max_draws is None:
            max_draws = 100 * target
        if max_draws < 1:
            raise ValueError(f"max_draws should be at least 1, got {max_draws}")
        if max_rejections is not None and max_rejections < 1:
            raise ValueError(f"max_rejections should be at least 1, got {max_rejections}")
        rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
        return self._sample(target, max_draws, max_rejections, rng)

    def _sample(self, target, max_draws, max_rejections, rng):
        sizes = np.array([len(values) for values in self.params_values])
        seen = set()
        found = 0
        rejections = 0
        draws = 0
        while found < target and draws < max_draws and len(seen) < self.cartesian_size:
            draws += 1
            indices = tuple(int(i) for i in rng.integers(0, sizes))
            if indices in seen:
                continue
            seen.add(indices)
            configuration = Configuration(
                self.param_names, (values[i] for values, i in zip(self.params_values, indices))
            )
            if not self.verify(configuration):
                rejections += 1
                if max_rejections is not None and rejections >= max_rejections:
                    raise SampleExhaustionError(
                        f"{rejections} consecutive draws failed the constraints, found {found} of {target} configurations",
                        found,
                    )
                continue
            rejections = 0
            found += 1
            yield configuration

        logging.debug("sampling finished after %d draws with %d configurations", draws, found)
        if found < target:
            if draws >= max_draws:
                warn(f"Draw budget of {max_draws} exhausted, sampled {found} of {target} configurations")
            else:
                warn(f"Every configuration was drawn, only {found} of the target {target} are valid")

    def get_random_configurations(self, num_samples, max_rejections=10000, seed=None) -> List[Configuration]:
        """Draw up to num_samples distinct valid configurations, for example to seed an iterative strategy."""
        if not isinstance(num_samples, int) or num_samples < 1:
            raise ValueError(f"num_samples should be a positive integer, got {num_samples}")
        rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
        max_draws = max(100 * num_samples, self.cartesian_size)
        return list(self._sample(num_samples, max_draws, max_rejections, rng))

    def get_neighbors(self, param_config) -> List[Configuration]:
        """The valid configurations that differ from param_config in exactly one parameter."""
        values = [param_config[name] for name in self.param_names]
        neighbors = []
        for i, candidates in enumerate(self.params_values):
            for candidate in candidates:
                if candidate == values[i]:
                    continue
                neighbor = self.configuration(values[:i] + [candidate] + values[i + 1:])
                if self.verify(neighbor):
                    neighbors.append(neighbor)
        return neighbors

    def get_random_sample(self, fraction, max_draws=None, max_rejections=10000, seed=None) -> List[Configuration]:
        """Get a random sample as a list, see iter_sample.

        When SampleExhaustionError is raised, its configurations attribute holds the
        configurations that were found.
        """
        sample = []
        try:
            for configuration in self.iter_sample(fraction, max_draws, max_rejections, seed):
                sample.append(configuration)
        except SampleExhaustionError as e:
            e.configurations = sample
            raise
        return sample
