"""Module with the tuning declaration of a kernel family.

A declaration is pure configuration data: the problem size and its defaults, the
tunable parameters and their constraints, the base launch geometry with the rules
that transform it, and the positional signature of the kernel. Declarations are
written in Python (see tunespace.kernels) or loaded from JSON files that are
validated against schema/declaration.json.
"""

import json
import logging
from collections import OrderedDict
from functools import lru_cache
from pathlib import Path

import jsonschema

from tunespace.arguments import ArgumentBinder, Buffer, Flag, LeadingDim, Offset, Param, ProblemDim, Scalar
from tunespace.geometry import ProblemSize, check_rules, derive, get_global_seed, rules_from_lists
from tunespace.restrictions import ConstraintSet, get_predicate
from tunespace.searchspace import ParameterSpace, Searchspace
from tunespace.util import DeclarationError, Options, TuningSpaceError, replace_param_occurrences

SCHEMA_PATH = Path(__file__).parent / "schema" / "declaration.json"

default_defaults = Options(
    [
        ("strategy", "brute_force"),
        ("fraction", 1.0),
        ("num_runs", 4),
        ("precision", "single"),
        ("scalars", {}),
    ]
)

_argument_kinds = {
    "dim": lambda a: ProblemDim(a["name"]),
    "scalar": lambda a: Scalar(a["name"]),
    "buffer": lambda a: Buffer(a["name"]),
    "offset": lambda a: Offset(a["buffer"], a.get("offset", 0)),
    "ld": lambda a: LeadingDim(a["buffer"], a["size"]),
    "flag": lambda a: Flag(a["name"], a["flag"]),
    "param": lambda a: Param(a["name"]),
}


def evaluate_size(expression, problem_size) -> int:
    """Evaluate a size given as an integer, a function of the problem size, or an expression such as "m * k"."""
    if callable(expression):
        return int(expression(problem_size))
    if isinstance(expression, str):
        return int(eval(replace_param_occurrences(expression, problem_size)))
    return int(expression)


class KernelDeclaration:
    """The tuning declaration of one kernel family."""

    def __init__(
        self,
        kernel_family,
        kernel_name,
        problem_size,
        parameters,
        base_local,
        rules=None,
        base_global=None,
        constraints=None,
        pins=None,
        signature=None,
        local_size_ref=None,
        global_size_ref=None,
        buffers=None,
        inputs=None,
        outputs=None,
        defaults=None,
        metric_amount=None,
        performance_unit=None,
    ):
        self.kernel_family = kernel_family
        self.kernel_name = kernel_name
        self.problem_size = ProblemSize(problem_size)
        self.parameters = OrderedDict((name, tuple(candidates)) for name, candidates in parameters.items())
        self.base_local = tuple(base_local)
        self.base_global = tuple(base_global) if base_global is not None else None
        self.rules = list(rules or [])
        self.constraints = list(constraints or [])
        self.pins = list(pins or [])
        self.signature = list(signature or [])
        self.local_size_ref = tuple(local_size_ref) if local_size_ref is not None else self.base_local
        self.global_size_ref = tuple(global_size_ref) if global_size_ref is not None else self.base_global
        self.buffers = OrderedDict(buffers or {})
        self.inputs = list(inputs or [])
        self.outputs = list(outputs or [])
        self.defaults = Options(default_defaults)
        self.defaults.update(defaults or {})
        self.metric_amount = metric_amount
        self.performance_unit = performance_unit
        self.validate()

    def validate(self):
        """Check that constraints, rules and arguments refer to declared names."""
        try:
            space = self.parameter_space()
            self.constraint_set(space)
            check_rules(self.rules, space, len(self.base_local))
            get_global_seed(self.problem_size, self.base_global, len(self.base_local))
            ArgumentBinder(self.signature, self.defaults.precision)
        except TuningSpaceError:
            raise
        except (ValueError, KeyError) as e:
            raise DeclarationError(f"Invalid declaration of {self.kernel_family}: {e}") from e
        for name in self.inputs + self.outputs:
            if name not in self.buffers:
                raise DeclarationError(f"Buffer {name} of {self.kernel_family} has no declared size")
        for argument in self.signature:
            if isinstance(argument, Param) and argument.name not in self.parameters:
                raise DeclarationError(f"Argument {argument.name} of {self.kernel_family} is not a tunable parameter")

    def parameter_space(self) -> ParameterSpace:
        """A new ParameterSpace holding the declared parameters."""
        return ParameterSpace(self.parameters)

    def constraint_set(self, space, pinned=True) -> ConstraintSet:
        """The declared constraints on space, composed with the pins unless pinned is False."""
        constraints = ConstraintSet(space, self.constraints)
        if pinned and self.pins:
            constraints = constraints + ConstraintSet(space, self.pins)
        return constraints

    def searchspace(self, framework="backtracking", pinned=True) -> Searchspace:
        space = self.parameter_space()
        return Searchspace(space, self.constraint_set(space, pinned), framework=framework)

    def get_problem_size(self, **sizes) -> ProblemSize:
        """The default problem size, with the given dimensions overridden."""
        for name in sizes:
            if name not in self.problem_size:
                raise ValueError(f"Unknown problem size {name} for {self.kernel_family}")
        problem_size = OrderedDict(self.problem_size)
        problem_size.update((name, size) for name, size in sizes.items() if size is not None)
        return ProblemSize(problem_size)

    def get_buffer_sizes(self, problem_size) -> OrderedDict:
        """Number of elements of each declared buffer."""
        return OrderedDict((name, evaluate_size(size, problem_size)) for name, size in self.buffers.items())

    def get_metric_amount(self, problem_size):
        if self.metric_amount is None:
            return None
        return evaluate_size(self.metric_amount, problem_size)

    def reference_geometry(self, problem_size):
        """Launch geometry of the untuned reference kernel."""
        return derive(problem_size, self.local_size_ref, self.global_size_ref, [], {})

    def __repr__(self):
        return f"KernelDeclaration({self.kernel_family}, {self.kernel_name})"


@lru_cache
def get_schema():
    with open(SCHEMA_PATH, "r") as f:
        return json.load(f)


def _constraints_from_json(entries):
    constraints = []
    for entry in entries:
        if "expression" in entry:
            constraints.append(entry["expression"])
        else:
            constraints.append((get_predicate(entry["predicate"], *entry.get("args", [])), entry["parameters"]))
    return constraints


def from_dict(data) -> KernelDeclaration:
    """Create a declaration from a dictionary that follows schema/declaration.json."""
    try:
        jsonschema.validate(instance=data, schema=get_schema())
    except jsonschema.ValidationError as e:
        raise DeclarationError(f"Declaration does not match the schema: {e.message}") from e

    geometry = data["geometry"]
    metric = data.get("metric", {})
    try:
        constraints = _constraints_from_json(data.get("constraints", []))
        pins = _constraints_from_json(data.get("pins", []))
        signature = [_argument_kinds[argument["kind"]](argument) for argument in data["arguments"]]
    except KeyError as e:
        raise DeclarationError(f"Declaration of {data['kernel_family']} misses field {e}") from e
    except ValueError as e:
        raise DeclarationError(str(e)) from e

    logging.debug("loaded declaration of %s", data["kernel_family"])
    return KernelDeclaration(
        data["kernel_family"],
        data["kernel_name"],
        data["problem_size"],
        data["parameters"],
        geometry["local"],
        rules=rules_from_lists(geometry.get("mul_local"), geometry.get("mul_global"), geometry.get("div_global")),
        base_global=geometry.get("global"),
        constraints=constraints,
        pins=pins,
        signature=signature,
        local_size_ref=geometry.get("local_ref"),
        global_size_ref=geometry.get("global_ref"),
        buffers=data.get("buffers"),
        inputs=data.get("inputs"),
        outputs=data.get("outputs"),
        defaults=data.get("defaults"),
        metric_amount=metric.get("amount"),
        performance_unit=metric.get("unit"),
    )


def load_declaration(filename) -> KernelDeclaration:
    """Read a declaration from a JSON file."""
    with open(filename, "r") as f:
        data = json.load(f)
    return from_dict(data)
