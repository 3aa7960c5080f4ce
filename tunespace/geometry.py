"""Module for deriving the launch geometry of a kernel configuration.

The base geometry is the local (work-group) size and global size of a kernel
before tuning. Geometry rules tie a tunable parameter to one dimension:

    * ScaleLocal(dim, param)     local[dim]  *= configuration[param]
    * ScaleGlobal(dim, param)    global[dim] *= configuration[param]
    * DivideGlobal(dim, param)   global[dim]  = ceil(global[dim] / configuration[param])

The global size is first seeded from the problem size and rounded up to a
multiple of the base local size, then all scale rules are applied, and only then
the divide rules.
"""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from collections.abc import Mapping

import numpy as np

from tunespace.util import GeometryError, UnknownParameterError, ZeroDivisorError, ceil_div, round_up

LaunchGeometry = namedtuple("LaunchGeometry", ["local_size", "global_size"])


class ProblemSize(Mapping):
    """Read-only, ordered mapping of problem dimension names to positive integers."""

    def __init__(self, *args, **kwargs):
        sizes = OrderedDict(*args, **kwargs)
        for name, size in sizes.items():
            if not isinstance(size, (int, np.integer)) or isinstance(size, bool) or size < 1:
                raise GeometryError(f"Problem size {name} should be a positive integer, got {size!r}")
        self._sizes = OrderedDict((name, int(size)) for name, size in sizes.items())

    def __getitem__(self, name):
        return self._sizes[name]

    def __getattr__(self, name):
        if not name.startswith("_") and name in self._sizes:
            return self._sizes[name]
        raise AttributeError(name)

    def __iter__(self):
        return iter(self._sizes)

    def __len__(self):
        return len(self._sizes)

    def __hash__(self):
        return hash(tuple(self._sizes.items()))

    def __repr__(self):
        return "ProblemSize(" + ", ".join(f"{k}={v}" for k, v in self._sizes.items()) + ")"


class GeometryRule(ABC):
    """Base class of the rules, binds a parameter to a geometry dimension.

    Rules compare equal only when kind, dimension and parameter all match, so
    ScaleLocal(0, "WGD") and DivideGlobal(0, "WGD") are different rules.
    """

    kind = None
    divides = False

    def __init__(self, dim, param):
        if not isinstance(dim, int) or isinstance(dim, bool) or dim < 0:
            raise GeometryError(f"Dimension index of {self.__class__.__name__} should be a non-negative integer, got {dim!r}")
        self.dim = dim
        self.param = param

    @abstractmethod
    def apply(self, local_size, global_size, value):
        """Update local_size or global_size in place for the value of the parameter."""
        pass

    def _key(self):
        return (self.kind, self.dim, self.param)

    def __eq__(self, other):
        if not isinstance(other, GeometryRule):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return f"{self.__class__.__name__}({self.dim}, {self.param!r})"


class ScaleLocal(GeometryRule):
    kind = "mul_local"

    def apply(self, local_size, global_size, value):
        local_size[self.dim] *= value


class ScaleGlobal(GeometryRule):
    kind = "mul_global"

    def apply(self, local_size, global_size, value):
        global_size[self.dim] *= value


class DivideGlobal(GeometryRule):
    kind = "div_global"
    divides = True

    def apply(self, local_size, global_size, value):
        if value == 0:
            raise ZeroDivisorError(f"{self!r} divides the global size by a zero value of {self.param}")
        global_size[self.dim] = ceil_div(global_size[self.dim], value)


rule_kinds = {cls.kind: cls for cls in (ScaleLocal, ScaleGlobal, DivideGlobal)}


def rules_from_lists(mul_local=None, mul_global=None, div_global=None):
    """Convert per-dimension lists of parameter names into geometry rules.

    Each argument is a list of lists, every inner list holds one parameter name
    per dimension, for example ``mul_local=[["MDIMCD", "NDIMCD"]]``. An empty
    string or None skips that dimension.
    """
    rules = []
    for cls, groups in ((ScaleLocal, mul_local), (ScaleGlobal, mul_global), (DivideGlobal, div_global)):
        for group in groups or []:
            for dim, param in enumerate(group):
                if param:
                    rules.append(cls(dim, param))
    return rules


def check_rules(rules, space, num_dims):
    """Raise an error for rules that refer to unknown parameters or dimensions."""
    for rule in rules:
        if not isinstance(rule, GeometryRule):
            raise GeometryError(f"Unrecognized geometry rule {rule!r}")
        if rule.param not in space:
            raise UnknownParameterError(f"Geometry rule {rule!r} refers to unknown parameter {rule.param}")
        if rule.dim >= num_dims:
            raise GeometryError(f"Geometry rule {rule!r} refers to dimension {rule.dim} of a {num_dims}-dimensional launch")


def get_global_seed(problem_size, base_global, num_dims):
    """Compute the untransformed global size from the problem size.

    Entries of base_global can be integers, names of problem size dimensions, or
    functions that accept the problem size. Without base_global, the problem size
    dimensions are used in order.
    """
    if base_global is None:
        base_global = list(problem_size.keys())[:num_dims]
    if len(base_global) != num_dims:
        raise GeometryError(f"Base global size has {len(base_global)} dimensions, local size has {num_dims}")
    seed = []
    for entry in base_global:
        if callable(entry):
            entry = entry(problem_size)
        elif isinstance(entry, str):
            if entry not in problem_size:
                raise GeometryError(f"Base global size refers to unknown problem size {entry}")
            entry = problem_size[entry]
        if not isinstance(entry, (int, np.integer)) or entry < 1:
            raise GeometryError(f"Base global size should be positive integers, got {entry!r}")
        seed.append(int(entry))
    return seed


def derive(problem_size, base_local, base_global, rules, configuration) -> LaunchGeometry:
    """Derive the local and global launch sizes of a configuration.

    :param problem_size: The problem dimensions.
    :type problem_size: ProblemSize or dict

    :param base_local: The local size before the rules are applied, one entry per dimension.
    :type base_local: tuple(int)

    :param base_global: The global size before the rules are applied, as integers,
        problem size names, or callables, or None to use the problem size.
    :type base_global: tuple or None

    :param rules: The geometry rules.
    :type rules: list(GeometryRule)

    :param configuration: The values of the tunable parameters.
    :type configuration: Configuration or dict

    :returns: The derived local and global sizes.
    :rtype: LaunchGeometry
    """
    if not isinstance(problem_size, ProblemSize):
        problem_size = ProblemSize(problem_size)
    if len(base_local) == 0:
        raise GeometryError("The base local size needs at least one dimension")
    for size in base_local:
        if not isinstance(size, (int, np.integer)) or size < 1:
            raise GeometryError(f"Base local size should be positive integers, got {tuple(base_local)}")

    local_size = [int(size) for size in base_local]
    seed = get_global_seed(problem_size, base_global, len(local_size))
    global_size = [round_up(size, local) for size, local in zip(seed, local_size)]

    for rule in rules:
        if not rule.divides:
            rule.apply(local_size, global_size, configuration[rule.param])
    for rule in rules:
        if rule.divides:
            rule.apply(local_size, global_size, configuration[rule.param])

    if min(local_size) < 1 or min(global_size) < 1:
        raise GeometryError(f"Derived launch geometry local={local_size} global={global_size} has an empty dimension")
    logging.debug("derived local size %s and global size %s", local_size, global_size)
    return LaunchGeometry(tuple(local_size), tuple(global_size))
