"""tunespace interface module

This module contains the main functions that tunespace
offers to its users.

Copyright and License
---------------------
* Copyright 2016 Netherlands eScience Center

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""
import logging
import os.path
from datetime import datetime

import tunespace.util as util
from tunespace import kernels
from tunespace.core import TuningSession
from tunespace.declaration import KernelDeclaration, load_declaration
from tunespace.runners.sequential import SequentialRunner
from tunespace.strategies import brute_force, pso, random_sample, simulated_annealing
from tunespace.util import Options

strategy_map = {
    "brute_force": brute_force,
    "random_sample": random_sample,
    "simulated_annealing": simulated_annealing,
    "pso": pso,
}

# strategies by heuristic_selection index
heuristics = ["brute_force", "random_sample", "simulated_annealing", "pso"]


_kernel_options = Options([("declaration", ("""The tuning declaration of the kernel family. This is
            either a tunespace.declaration.KernelDeclaration, the name of a kernel family
            shipped in tunespace.kernels (e.g. "xgemm_direct"), or the filename of a
            JSON declaration.""", "KernelDeclaration or string")),
    ("variation", ("""The variation of a kernel family that is given by name, for example
            xgemm_direct has variation 1, which is small enough to be searched exhaustively,
            and variation 2, which is meant for random sampling. Default is 1.""", "int")),
    ("run_kernel", ("""A function that launches a kernel instance and returns its execution
            time in milliseconds. It is called with a tunespace.core.KernelInstance that
            holds the name, the tunable parameter values, the local and global size, and the
            positional kernel arguments of one configuration. The function is free to compile
            and launch the kernel in any way it likes, tunespace itself never talks to a device.

            When the launch fails for a reason that can be expected, for example because
            the configuration requests too many resources, the function should raise
            tunespace.util.SkippableFailure. The configuration is then recorded as
            RuntimeFailedConfig and tuning continues.""", "callable")),
    ("problem_size", ("""A dictionary with the problem dimensions, for example
            dict(m=1024, n=1024, k=1024). Dimensions that are not given take their default
            from the declaration.""", "dict(string: int)")),
    ("buffers", ("""A dictionary with a handle for each buffer argument of the kernel. The
            handles are passed to run_kernel unchanged, tunespace does not allocate or copy
            device memory.""", "dict(string: object)")),
    ("scalars", ("""A dictionary with the scalar arguments of the kernel, for example
            dict(alpha=2.0, beta=0.5). Defaults are taken from the declaration.""", "dict(string: float)")),
    ("precision", ("""The precision of the kernel, by name ("half", "single", "double",
            "complex_single", "complex_double") or by its numeric tag (16, 32, 64, 3232, 6464).
            Scalar arguments are converted to the corresponding numpy type. Default is the
            precision of the declaration.""", "string or int"))])

_tuning_options = Options([("strategy", ("""Specify the strategy to use for searching through the
            space of valid configurations. Supported strategies:

                * "brute_force" (default of most declarations) benchmarks every valid configuration,
                  in lexicographic order of the candidate values
                * "random_sample" benchmarks a uniformly random sample of the valid configurations
                * "simulated_annealing" walks between neighboring valid configurations, accepting
                  slower ones with a probability that decreases as the budget is used up
                * "pso" moves a swarm of particles through the valid configurations, see
                  tunespace.strategies.pso

            Default is the strategy of the declaration.""", "")),
    ("heuristic_selection", ("""Select the strategy by index instead of by name: 0 for
            "brute_force", 1 for "random_sample", 2 for "simulated_annealing" and 3 for "pso".
            Cannot be combined with a different strategy.""", "int")),
    ("strategy_options", ("""A dict with options specific to the selected strategy.

            All strategies support the following option:

                * "max_fevals": the maximum number of configurations to benchmark.

            The random_sample strategy also supports "fraction", "max_draws",
            "max_rejections" and "seed", see tunespace.strategies.random_sample.

            The pso strategy supports "swarm_size", "influence_global", "influence_local",
            "influence_random", "fraction" and "seed", simulated_annealing supports
            "max_temperature", "fraction" and "seed". Both benchmark at most max_fevals
            distinct configurations, or the sample size of the fraction.""", "dict")),
    ("fraction", ("""Fraction in (0, 1] of the unrestricted parameter space that random_sample
            aims to cover and that simulated_annealing and pso use as their budget, when
            strategy_options does not specify one. Default is the fraction of the declaration.""", "float")),
    ("num_runs", ("""The number of times each kernel instance is timed, the recorded time is
            the mean. Default is the number of runs of the declaration.""", "int")),
    ("framework", ("""The framework used to resolve the exhaustive search space:
            "backtracking" (default), "bruteforce" or "pythonconstraint".""", "string")),
    ("pinned", ("""Whether the pin constraints of the declaration are applied. Default is True.""", "bool")),
    ("verify", ("""Check every configuration against the constraints again before it is
            benchmarked. Default is False.""", "bool")),
    ("metrics", ("""Dictionary of user-defined metrics that are derived from the benchmark
            results and the tunable parameters, see tunespace.util.process_metrics.""", "dict")),
    ("verbose", ("""Sets whether or not to report about configurations that were
            skipped during the search. Default is False.""", "bool")),
    ("quiet", ("""Control whether or not to print to the console which configurations are being
            benchmarked. Default is False.""", "bool")),
    ("log", ("""Log level of the tuning run, a log file named after the kernel family and
            the current time is written when set, e.g. logging.DEBUG.""", "int"))])


def _get_docstring(opts):
    docstr = ""
    for k, v in opts.items():
        docstr += "    :param " + k + ": " + v[0] + "\n"
        docstr += "    :type " + k + ": " + v[1] + "\n\n"
    return docstr


_tune_kernel_docstring = """ Tune a kernel family given its tuning declaration

%s

    :returns: A list of dictionaries of all executed kernel configurations and their
        execution times. And a dictionary with information about the environment
        in which the tuning took place. This records the kernel family, precision,
        problem size, and so on.
    :rtype: list(dict()), dict()

""" % (_get_docstring(_kernel_options) + _get_docstring(_tuning_options))


def get_declaration(declaration, variation=1) -> KernelDeclaration:
    """Resolve a declaration given as object, kernel family name or JSON filename."""
    if isinstance(declaration, KernelDeclaration):
        return declaration
    if not isinstance(declaration, str):
        raise TypeError(f"declaration should be a KernelDeclaration or a string, got {type(declaration)}")
    if os.path.isfile(declaration):
        return load_declaration(declaration)
    return kernels.get_declaration(declaration, variation)


def tune_kernel(declaration, run_kernel, variation=1, problem_size=None, buffers=None, scalars=None, precision=None,
                strategy=None, heuristic_selection=None, strategy_options=None, fraction=None, num_runs=None, framework="backtracking", pinned=True,
                verify=False, metrics=None, verbose=False, quiet=False, log=None):

    declaration = get_declaration(declaration, variation)

    if log:
        logging.basicConfig(filename=declaration.kernel_family + datetime.now().strftime('%Y%m%d-%H:%M:%S') + '.log', level=log)

    if not callable(run_kernel):
        raise TypeError("run_kernel should be a function that returns the execution time of a kernel instance")

    if heuristic_selection is not None:
        if heuristic_selection not in range(len(heuristics)):
            raise ValueError(f"heuristic_selection should be one of {list(range(len(heuristics)))}, got {heuristic_selection}")
        if strategy is not None and strategy != heuristics[heuristic_selection]:
            raise ValueError(f"heuristic_selection {heuristic_selection} selects {heuristics[heuristic_selection]}, not {strategy}")
        strategy = heuristics[heuristic_selection]

    defaults = declaration.defaults
    strategy = strategy or defaults.strategy
    num_runs = num_runs or defaults.num_runs
    fraction = fraction if fraction is not None else defaults.fraction
    if num_runs < 1:
        raise ValueError(f"num_runs should be at least 1, got {num_runs}")

    #sort options into separate dicts
    opts = locals()
    tuning_options = Options([(k, opts[k]) for k in _tuning_options.keys()])

    #select strategy based on user input
    if strategy not in strategy_map:
        raise ValueError(f"Strategy {strategy} not recognized, must be one of {list(strategy_map.keys())}")
    strategy_module = strategy_map[strategy]
    if strategy_options is None:
        tuning_options["strategy_options"] = Options({})
    elif not isinstance(strategy_options, Options):
        tuning_options["strategy_options"] = Options(strategy_options)

    session = TuningSession(declaration, problem_size=problem_size, buffers=buffers, scalars=scalars,
                            precision=precision, framework=framework, pinned=pinned)

    runner = SequentialRunner(session, run_kernel, num_runs, quiet=quiet)

    #call the strategy to execute the tuning process
    results = strategy_module.tune(session.searchspace, runner, tuning_options)
    env = runner.get_environment()
    env["strategy"] = strategy
    env["num_runs"] = num_runs

    #finished iterating over search space
    if not quiet:
        if results:    #checks if results is not empty
            best_config = util.get_best_config(results, "time")
            print("best performing configuration:")
            util.print_config_output(session.param_names, best_config, quiet, runner.get_print_metrics(tuning_options), runner.units)
        else:
            print("no results to report")

    return results, env


tune_kernel.__doc__ = _tune_kernel_docstring


def enumerate_configurations(declaration, variation=1, mode="exhaustive", fraction=None, framework="backtracking",
                             pinned=True, max_draws=None, max_rejections=10000, seed=None):
    """Generate the valid configurations of a kernel family without benchmarking them.

    :param declaration: The declaration, kernel family name or JSON filename.
    :type declaration: KernelDeclaration or string

    :param mode: "exhaustive" or "sampling".
    :type mode: string

    :returns: An iterator over tunespace.searchspace.Configuration objects.
    """
    declaration = get_declaration(declaration, variation)
    session = TuningSession(declaration, framework=framework, pinned=pinned)
    return session.enumerate_configurations(mode, fraction, max_draws, max_rejections, seed)


def create_session(declaration, variation=1, **kwargs) -> TuningSession:
    """Create a TuningSession, kwargs are passed to its constructor."""
    return TuningSession(get_declaration(declaration, variation), **kwargs)
