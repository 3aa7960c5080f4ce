"""This module contains the interface for runners."""
from abc import ABC, abstractmethod
from time import perf_counter


class Runner(ABC):
    """Base class for tunespace runners"""

    @abstractmethod
    def __init__(self, session, run_kernel, iterations, quiet=False):
        """Instantiate a Runner.

        :param session: The tuning session that derives the geometry and binds the
            arguments of each configuration.
        :type session: tunespace.core.TuningSession

        :param run_kernel: Function that launches a kernel instance and returns its
            execution time in milliseconds.
        :type run_kernel: callable

        :param iterations: The number of iterations used for benchmarking
            each kernel instance.
        :type iterations: int
        """
        self.session = session
        self.run_kernel = run_kernel
        self.iterations = iterations
        self.quiet = quiet
        self.start_time = perf_counter()

    @abstractmethod
    def get_environment(self):
        pass

    @abstractmethod
    def run(self, parameter_space, tuning_options) -> list:
        """Benchmark every configuration in the parameter space.

        :param parameter_space: The configurations to benchmark, as an iterable.
        :type parameter_space: iterable

        :param tuning_options: A dictionary with all options regarding the tuning
            process.
        :type tuning_options: tunespace.interface.Options

        :returns: A list of dictionaries for executed kernel configurations and their
            execution times.
        :rtype: list(dict())
        """
        pass
