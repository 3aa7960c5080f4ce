"""The default runner for sequentially tuning the search space."""
import logging
from datetime import datetime, timezone
from time import perf_counter

from tunespace.runners.runner import Runner
from tunespace.util import ErrorConfig, InvalidConfig, print_config_output, process_metrics


class SequentialRunner(Runner):
    """SequentialRunner is used for tuning with a single process/thread."""

    def __init__(self, session, run_kernel, iterations, quiet=False):
        """Instantiate the SequentialRunner.

        :param session: The tuning session of the kernel family.
        :type session: tunespace.core.TuningSession

        :param run_kernel: Function that launches a kernel instance and returns its
            execution time in milliseconds.
        :type run_kernel: callable

        :param iterations: The number of iterations used for benchmarking
            each kernel instance.
        :type iterations: int
        """
        super().__init__(session, run_kernel, iterations, quiet)
        self.units = {"time": " ms"}
        if session.declaration.performance_unit:
            self.units[session.declaration.performance_unit] = ""

    def get_environment(self):
        return self.session.get_environment()

    def run(self, parameter_space, tuning_options):
        """Iterate through the parameter space using a single Python process.

        :param parameter_space: The configurations as an iterable.
        :type parameter_space: iterable

        :param tuning_options: A dictionary with all options regarding the tuning
            process.
        :type tuning_options: tunespace.interface.Options

        :returns: A list of dictionaries for executed kernel configurations and their
            execution times.
        :rtype: list(dict())
        """
        logging.debug("sequential runner started for " + self.session.declaration.kernel_name)

        results = []

        # iterate over parameter space
        for configuration in parameter_space:
            params = dict(configuration)

            # configurations coming from elsewhere are checked again
            if tuning_options.verify and not self.session.searchspace.verify(configuration):
                logging.debug("configuration %s skipped, it fails the constraints", params)
                params["time"] = InvalidConfig()
                results.append(params)
                continue

            benchmark_time = perf_counter()
            instance = self.session.create_kernel_instance(configuration)
            result = self.session.benchmark(self.run_kernel, instance, self.iterations)
            params.update(result)
            params["local_size"] = instance.local_size
            params["global_size"] = instance.global_size

            if isinstance(params["time"], ErrorConfig):
                logging.debug("kernel configuration was skipped silently due to runtime failure")

            # only compute metrics on configs that have not errored
            if tuning_options.metrics and not isinstance(params["time"], ErrorConfig):
                params = process_metrics(params, tuning_options.metrics)

            params["benchmark_time"] = 1000 * (perf_counter() - benchmark_time)
            params["timestamp"] = str(datetime.now(timezone.utc))

            # print configuration to the console
            print_config_output(self.session.param_names, params, self.quiet, self.get_print_metrics(tuning_options), self.units)

            results.append(params)

        return results

    def get_print_metrics(self, tuning_options):
        metrics = dict(tuning_options.metrics or {})
        unit = self.session.declaration.performance_unit
        if unit:
            metrics[unit] = None
        return metrics
