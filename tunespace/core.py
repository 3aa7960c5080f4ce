"""Module for grouping the core functionality needed by the runners."""

import logging
from collections import namedtuple

import numpy as np

from tunespace.arguments import ArgumentBinder
from tunespace.geometry import ProblemSize, derive
from tunespace.util import RuntimeFailedConfig, SkippableFailure, get_instance_string

_KernelInstance = namedtuple(
    "_KernelInstance",
    [
        "name",
        "params",
        "local_size",
        "global_size",
        "arguments",
    ],
)


class KernelInstance(_KernelInstance):
    """Class that represents the specific parameterized instance of a kernel"""

    @property
    def geometry(self):
        return self.local_size, self.global_size


class TuningSession:
    """Binds a kernel declaration to a problem and exposes what a search driver needs.

    :param declaration: The tuning declaration of the kernel family.
    :type declaration: tunespace.declaration.KernelDeclaration

    :param problem_size: The problem size, dimensions that are not given take
        their default from the declaration.
    :type problem_size: dict or ProblemSize

    :param buffers: Buffer handles by name, passed to the kernel unchanged.
    :type buffers: dict

    :param scalars: Scalar arguments by name, defaults from the declaration.
    :type scalars: dict

    :param precision: Name or tag of the precision, defaults from the declaration.
    :type precision: string or int

    :param framework: Framework used to resolve the exhaustive space.
    :type framework: string

    :param pinned: Whether the pin constraints of the declaration are applied.
    :type pinned: bool
    """

    def __init__(
        self,
        declaration,
        problem_size=None,
        buffers=None,
        scalars=None,
        precision=None,
        framework="backtracking",
        pinned=True,
    ):
        self.declaration = declaration
        if isinstance(problem_size, ProblemSize):
            self.problem_size = declaration.get_problem_size(**dict(problem_size))
        else:
            self.problem_size = declaration.get_problem_size(**(problem_size or {}))
        self.buffers = buffers or {}
        self.scalars = dict(declaration.defaults.scalars)
        self.scalars.update(scalars or {})
        self.binder = ArgumentBinder(declaration.signature, precision or declaration.defaults.precision)
        self.precision = self.binder.precision
        self.searchspace = declaration.searchspace(framework=framework, pinned=pinned)
        logging.debug(
            "TuningSession instantiated for %s, precision=%s, %s",
            declaration.kernel_family,
            self.precision.name,
            self.problem_size,
        )

    @property
    def param_names(self):
        return self.searchspace.param_names

    def enumerate_configurations(self, mode="exhaustive", fraction=None, max_draws=None, max_rejections=10000, seed=None):
        """Generate the valid configurations.

        :param mode: "exhaustive" for every valid configuration, "sampling" for a random sample.
        :type mode: string

        :param fraction: Fraction of the unrestricted space to sample, only in sampling mode.
            Defaults to the fraction of the declaration.
        :type fraction: float

        See Searchspace.iter_sample for max_draws, max_rejections and seed.
        """
        if mode == "exhaustive":
            if fraction is not None and fraction != 1.0:
                raise ValueError("A fraction other than 1.0 requires the sampling mode")
            return self.searchspace.iter_exhaustive()
        if mode == "sampling":
            if fraction is None:
                fraction = self.declaration.defaults.fraction
            return self.searchspace.iter_sample(fraction, max_draws, max_rejections, seed)
        raise ValueError(f"Unknown mode {mode}, must be 'exhaustive' or 'sampling'")

    def derive_geometry(self, configuration):
        """The local and global launch sizes of a configuration."""
        declaration = self.declaration
        return derive(self.problem_size, declaration.base_local, declaration.base_global, declaration.rules, configuration)

    def reference_geometry(self):
        return self.declaration.reference_geometry(self.problem_size)

    def bind_arguments(self, configuration, buffers=None, scalars=None):
        """The positional kernel arguments of a configuration."""
        if scalars is not None:
            merged = dict(self.scalars)
            merged.update(scalars)
            scalars = merged
        return self.binder.bind(
            configuration,
            self.problem_size,
            buffers if buffers is not None else self.buffers,
            scalars if scalars is not None else self.scalars,
        )

    def create_kernel_instance(self, configuration) -> KernelInstance:
        """Create a kernel instance with the geometry and arguments of a configuration."""
        local_size, global_size = self.derive_geometry(configuration)
        name = self.declaration.kernel_name + "_" + get_instance_string(configuration)
        return KernelInstance(name, dict(configuration), local_size, global_size, self.bind_arguments(configuration))

    def benchmark(self, run_kernel, instance, num_runs):
        """Time a kernel instance num_runs times with the timing callback.

        :param run_kernel: Function that launches the instance and returns its execution time in milliseconds.
        :type run_kernel: callable

        :returns: A dictionary with the mean "time" and the individual "times",
            or with RuntimeFailedConfig as time if the callback raised SkippableFailure.
        :rtype: dict
        """
        logging.debug("benchmark " + instance.name)
        logging.debug("local size %s, global size %s", instance.local_size, instance.global_size)
        result = {}
        try:
            times = [float(run_kernel(instance)) for _ in range(num_runs)]
        except SkippableFailure as e:
            logging.debug("benchmark encountered runtime failure: " + str(e))
            result["time"] = RuntimeFailedConfig()
            return result
        result["time"] = float(np.mean(times))
        result["times"] = times
        metric_amount = self.declaration.get_metric_amount(self.problem_size)
        if metric_amount is not None and result["time"] > 0:
            result[self.declaration.performance_unit] = metric_amount / (result["time"] * 1e6)
        return result

    def get_environment(self):
        """Information about the session to return next to the results."""
        from tunespace import __version__

        return dict(
            tunespace_version=__version__,
            kernel_family=self.declaration.kernel_family,
            kernel_name=self.declaration.kernel_name,
            precision=self.precision.name,
            problem_size=dict(self.problem_size),
            framework=self.searchspace.framework,
            parameter_space_size=self.searchspace.cartesian_size,
        )
