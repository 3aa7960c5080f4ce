"""Module for tunespace utility functions."""

import re
import sys
from collections import OrderedDict

import numpy as np


class Options(OrderedDict):
    """read-only class for passing options around"""

    def __getattr__(self, name):
        if not name.startswith("_"):
            return self[name]
        return super(Options, self).__getattr__(name)

    def __deepcopy__(self, _):
        return self


class ErrorConfig(str):
    def __str__(self):
        return self.__class__.__name__

    def __repr__(self):
        return self.__class__.__name__


class InvalidConfig(ErrorConfig):
    pass


class RuntimeFailedConfig(ErrorConfig):
    pass


class SkippableFailure(Exception):
    """Exception used to raise when launching a kernel fails for a reason that can be expected."""


class StopCriterionReached(Exception):
    """Exception thrown when a stop criterion has been reached."""


class TuningSpaceError(Exception):
    """Base class of the errors raised while building or resolving a tuning space."""


class DuplicateParameterError(TuningSpaceError, ValueError):
    """A tunable parameter with this name was already added to the space."""


class EmptyDomainError(TuningSpaceError, ValueError):
    """A tunable parameter was declared without candidate values."""


class UnknownParameterError(TuningSpaceError, ValueError):
    """A constraint or rule refers to a parameter that is not in the space."""


class ConstraintArityError(TuningSpaceError, ValueError):
    """The number of parameter names does not match what the predicate expects."""


class SpaceFrozenError(TuningSpaceError):
    """The parameter space can no longer be modified."""


class GeometryError(TuningSpaceError, ValueError):
    """The base launch geometry or problem size is malformed."""


class DeclarationError(TuningSpaceError, ValueError):
    """A kernel tuning declaration is inconsistent or fails schema validation."""


class ZeroDivisorError(TuningSpaceError, ZeroDivisionError):
    """A parameter used as a divisor has the value 0."""


class DivisionByZeroError(ZeroDivisorError):
    """A constraint predicate divided by zero."""


class SampleExhaustionError(TuningSpaceError):
    """Too many consecutive random draws failed the constraints.

    :param num_found: The number of valid configurations found before giving up.
    :type num_found: int

    :param configurations: The valid configurations found so far, when known.
    :type configurations: list(Configuration)
    """

    def __init__(self, message, num_found, configurations=None):
        super().__init__(message)
        self.num_found = num_found
        self.configurations = configurations if configurations is not None else []


def ceil_div(x, y):
    """Integer division of x by y, rounding up."""
    if y == 0:
        raise ZeroDivisorError(f"cannot divide {x} by zero")
    return -(-x // y)


def round_up(x, multiple):
    """Round x up to the nearest multiple of multiple."""
    return ceil_div(x, multiple) * multiple


def is_non_negative_integer(value):
    """Return True for ints and numpy integers that are >= 0, bools excluded."""
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_)) and value >= 0


def get_best_config(results, objective, objective_higher_is_better=False):
    """Returns the best configuration from a list of results according to some objective."""
    func = max if objective_higher_is_better else min
    ignore_val = sys.float_info.max if not objective_higher_is_better else -sys.float_info.max
    best_config = func(
        results,
        key=lambda x: x[objective] if isinstance(x[objective], float) else ignore_val,
    )
    return best_config


def get_config_string(params, keys=None, units=None):
    """Return a compact string representation of a measurement."""

    def compact_number(v):
        if isinstance(v, float):
            return "{:.3f}".format(round(v, 3))
        else:
            return str(v)

    compact_str_items = []
    if not keys:
        keys = params.keys()
    # first make a list of compact strings for each parameter
    for k, v in params.items():
        if k in keys:
            unit = ""
            if isinstance(units, dict) and not isinstance(v, ErrorConfig):
                unit = units.get(k, "")
            compact_str_items.append(k + "=" + compact_number(v) + unit)
    # and finally join them
    compact_str = ", ".join(compact_str_items)
    return compact_str


def get_instance_string(params):
    """Combine the parameters to a string mostly used for debug output use of dict is advised."""
    return "_".join([str(i) for i in params.values()])


def print_config_output(param_names, params, quiet, metrics, units):
    """Print the configuration string with tunable parameters and benchmark results."""
    print_keys = list(param_names) + ["time"]
    if metrics:
        print_keys += metrics.keys()
    output_string = get_config_string(params, print_keys, units)
    if not quiet:
        print(output_string)


def process_metrics(params, metrics):
    """Process user-defined metrics for derived benchmark results.

    Metrics must be a dictionary to support composable metrics. The keys name the
    metric and will be used as the key in the results dictionaries. The values
    describe how to calculate the metric, using either a string expression in which
    the tunable parameters and benchmark results can be used as variables, or a
    function that accepts a dictionary as argument.

    Example:
    metrics = dict()
    metrics["GFLOPS"] = lambda p: 2 * 256**3 / (p["time"] * 1e6)

    :param params: A dictionary with tunable parameters and benchmark results.
    :type params: dict

    :param metrics: A dictionary with user-defined metrics.
    :type metrics: dict

    :returns: An updated params dictionary with the derived metrics inserted.
    :rtype: dict
    """
    if not isinstance(metrics, dict):
        raise ValueError("metrics should be a dictionary to preserve order and support composability")
    for k, v in metrics.items():
        if isinstance(v, str):
            value = eval(replace_param_occurrences(v, params))
        elif callable(v):
            value = v(params)
        else:
            raise ValueError("metric dicts values should be strings or callable")
        params[k] = value
    return params


def replace_param_occurrences(string: str, params: dict):
    """Replace occurrences of the tuning params with their current value."""
    result = ""

    # Split on tokens and replace a token if it is a key in `params`.
    for part in re.split("([a-zA-Z0-9_]+)", string):
        if part in params:
            result += str(params[part])
        else:
            result += part

    return result


def check_fraction(fraction):
    """Raise a ValueError unless 0 < fraction <= 1."""
    if not isinstance(fraction, (int, float, np.integer, np.floating)) or not 0 < fraction <= 1:
        raise ValueError(f"fraction should be in the interval (0, 1], got {fraction}")
