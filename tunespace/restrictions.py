"""Module for declaring and evaluating constraints between tunable parameters.

Every constraint pairs a predicate with the ordered list of parameter names whose
values are passed to it. Predicates are named variants with a fixed arity, so a
constraint that lists the wrong number of parameters is rejected when it is added
rather than when the search space is resolved.
"""

import ast
import logging
from abc import ABC, abstractmethod
from collections import namedtuple

import numpy as np
from constraint import FunctionConstraint

from tunespace.util import (
    ConstraintArityError,
    DivisionByZeroError,
    UnknownParameterError,
    get_instance_string,
)

predicate_registry = dict()


def register_predicate(cls):
    """Class decorator that makes a predicate available by name, e.g. in JSON declarations."""
    predicate_registry[cls.name] = cls
    return cls


def get_predicate(name, *args):
    """Instantiate the registered predicate called name."""
    if name not in predicate_registry:
        raise ValueError(f"Unknown predicate {name}, must be one of {list(predicate_registry.keys())}")
    return predicate_registry[name](*args)


class Predicate(ABC):
    """Base class for the predicates used in constraints.

    A predicate is called with a list of integers, in the order the constraint
    names its parameters. An arity of None accepts any number of values.
    """

    name = None
    arity = None

    @abstractmethod
    def __call__(self, v):
        pass

    def check_arity(self, param_names):
        if self.arity is not None and len(param_names) != self.arity:
            raise ConstraintArityError(
                f"{self.name} expects {self.arity} parameters, got {len(param_names)} ({', '.join(param_names)})"
            )

    def __repr__(self):
        return self.name


@register_predicate
class IsMultiple(Predicate):
    """v[0] is a multiple of v[1]."""

    name = "IsMultiple"
    arity = 2

    def __call__(self, v):
        return v[0] % v[1] == 0


@register_predicate
class IsMultipleOfProduct(Predicate):
    """v[0] is a multiple of v[1] * v[2]."""

    name = "IsMultipleOfProduct"
    arity = 3

    def __call__(self, v):
        return v[0] % (v[1] * v[2]) == 0


@register_predicate
class IsMultipleOfProductDividedBy(Predicate):
    """v[0] is a multiple of (v[1] * v[2]) // v[3], the division truncates."""

    name = "IsMultipleOfProductDividedBy"
    arity = 4

    def __call__(self, v):
        if v[3] == 0:
            raise DivisionByZeroError(f"{self.name} divides by a zero value {list(v)}")
        divisor = (v[1] * v[2]) // v[3]
        if divisor == 0:
            raise DivisionByZeroError(f"{self.name} takes a modulo by zero for {list(v)}")
        return v[0] % divisor == 0


@register_predicate
class AreEqual(Predicate):
    name = "AreEqual"
    arity = 2

    def __call__(self, v):
        return v[0] == v[1]


@register_predicate
class MaxProduct(Predicate):
    """The product of all values does not exceed limit."""

    name = "MaxProduct"

    def __init__(self, limit):
        self.limit = limit

    def __call__(self, v):
        return np.prod(v) <= self.limit

    def __repr__(self):
        return f"{self.name}({self.limit})"


@register_predicate
class Expression(Predicate):
    """A Python boolean expression over parameter names, for example ``"WGD % KWID == 0"``.

    The parameter names are collected from the expression in order of first
    appearance and are available as ``param_names``.
    """

    name = "Expression"
    allowed_functions = {"min": min, "max": max, "abs": abs}

    def __init__(self, source):
        self.source = source
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as e:
            raise ValueError(f"Invalid restriction expression '{source}': {e}") from e
        # ast.walk is breadth first, so order the names by their position in the source
        nodes = sorted(
            (node for node in ast.walk(tree) if isinstance(node, ast.Name)),
            key=lambda node: (node.lineno, node.col_offset),
        )
        self.param_names = []
        for node in nodes:
            if node.id not in self.allowed_functions and node.id not in self.param_names:
                self.param_names.append(node.id)
        self.arity = len(self.param_names)
        self._code = compile(tree, "<restriction>", "eval")

    def __call__(self, v):
        namespace = dict(zip(self.param_names, v))
        return eval(self._code, {"__builtins__": self.allowed_functions}, namespace)

    def __repr__(self):
        return f"'{self.source}'"


class FunctionPredicate(Predicate):
    """Wraps a user function that accepts the list of values."""

    name = "Function"

    def __init__(self, func, arity=None):
        self.func = func
        self.arity = arity

    def __call__(self, v):
        return self.func(v)

    def __repr__(self):
        return getattr(self.func, "__name__", self.name)


_Constraint = namedtuple("_Constraint", ["predicate", "param_names", "source"])


class Constraint(_Constraint):
    """A predicate bound to the ordered names of the parameters it reads."""

    def evaluate(self, values):
        """Evaluate the predicate on the values of param_names, in the same order."""
        try:
            return bool(self.predicate(values))
        except DivisionByZeroError:
            raise
        except ZeroDivisionError as e:
            raise DivisionByZeroError(
                f"constraint {self} divides by zero for {dict(zip(self.param_names, values))}"
            ) from e

    def __call__(self, configuration):
        return self.evaluate([configuration[name] for name in self.param_names])

    def to_python_constraint(self):
        """Convert to a python-constraint FunctionConstraint and the variables it is added on.

        python-constraint passes each variable once, so a parameter that the
        predicate reads more than once is looked up again by name.
        """
        variables = list(dict.fromkeys(self.param_names))

        def constraint_func(*values):
            assignment = dict(zip(variables, values))
            return self.evaluate([assignment[name] for name in self.param_names])

        return FunctionConstraint(constraint_func), variables

    def __str__(self):
        if self.source is not None:
            return str(self.source)
        return f"{self.predicate!r}({', '.join(self.param_names)})"


class ConstraintSet:
    """An ordered collection of constraints on the parameters of one ParameterSpace."""

    def __init__(self, space, constraints=None):
        self.space = space
        self._constraints = []
        for constraint in constraints or []:
            if isinstance(constraint, Constraint):
                self._add_constraint(constraint)
            elif isinstance(constraint, str):
                self.add(constraint)
            else:
                self.add(*constraint)

    def add(self, predicate, param_names=None, source=None):
        """Add a constraint and return it.

        :param predicate: A Predicate, the name of a registered predicate, a string
            expression (when param_names is omitted), or a function that accepts the
            list of values.
        :type predicate: Predicate, string, or callable

        :param param_names: Ordered names of the parameters passed to the predicate.
        :type param_names: list(string)

        :param source: Optional description used in diagnostics.
        :type source: string
        """
        if isinstance(predicate, str):
            if param_names is None:
                predicate = Expression(predicate)
            else:
                predicate = get_predicate(predicate)
        elif not isinstance(predicate, Predicate):
            if not callable(predicate):
                raise ValueError(f"Unrecognized predicate type {type(predicate)} ({predicate})")
            predicate = FunctionPredicate(predicate)
        if param_names is None:
            param_names = getattr(predicate, "param_names", None)
            if param_names is None:
                raise ValueError(f"Constraint {predicate!r} needs a list of parameter names")
        constraint = Constraint(predicate, tuple(param_names), source)
        self._add_constraint(constraint)
        return constraint

    def _add_constraint(self, constraint):
        if len(constraint.param_names) == 0:
            raise ValueError(f"Constraint {constraint} does not refer to any parameter")
        for name in constraint.param_names:
            if name not in self.space:
                raise UnknownParameterError(f"Constraint {constraint} refers to unknown parameter {name}")
        constraint.predicate.check_arity(constraint.param_names)
        self._constraints.append(constraint)

    def extend(self, constraints):
        """Add all constraints of another ConstraintSet or list."""
        for constraint in constraints:
            if isinstance(constraint, Constraint):
                self._add_constraint(constraint)
            else:
                self.add(*constraint)

    def __add__(self, other):
        combined = ConstraintSet(self.space, list(self))
        combined.extend(other)
        return combined

    def __iter__(self):
        return iter(self._constraints)

    def __len__(self):
        return len(self._constraints)

    def __getitem__(self, index):
        return self._constraints[index]

    def check(self, configuration) -> bool:
        """Return True if the configuration satisfies every constraint."""
        return self.failing(configuration) is None

    def failing(self, configuration):
        """Return the first constraint the configuration violates, or None."""
        for constraint in self._constraints:
            if not constraint(configuration):
                return constraint
        return None

    def schedule(self, param_names):
        """For each position in param_names, the constraints that become decidable there.

        A constraint is decidable as soon as the last of its parameters is bound.
        Returns a list with one entry per position, each a list of tuples
        (constraint, positions of its parameters).
        """
        position = {name: i for i, name in enumerate(param_names)}
        schedule = [[] for _ in param_names]
        for constraint in self._constraints:
            indices = tuple(position[name] for name in constraint.param_names)
            schedule[max(indices)].append((constraint, indices))
        return schedule


def check_restrictions(constraints, params, verbose=False) -> bool:
    """Check whether a configuration meets all constraints, optionally reporting the failing one."""
    for constraint in constraints:
        if not constraint(params):
            logging.debug("config %s fails constraint %s", get_instance_string(params), constraint)
            if verbose:
                print(f"skipping config {get_instance_string(params)}, reason: config fails restriction {constraint}")
            return False
    return True
