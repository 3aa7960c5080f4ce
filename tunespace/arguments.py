"""Module for binding a configuration and problem data to the positional arguments of a kernel.

A kernel signature is a list of argument declarations, for example::

    signature = [
        ProblemDim("m"), ProblemDim("n"), ProblemDim("k"),
        Scalar("alpha"), Scalar("beta"),
        Buffer("a"), Offset("a"), LeadingDim("a", "k"),
        ...
        Flag("c_do_transpose", 1),
    ]

Integers are passed as numpy.int32, scalars in the dtype of the precision, and
buffers as the handles the caller supplies.
"""

from abc import ABC, abstractmethod

import numpy as np

from tunespace.precision import get_precision, get_real_arg


class KernelArgument(ABC):
    """Base class of the argument declarations.

    Subclasses list their attributes in ``fields``. Two declarations compare
    equal only when they are of the same class and all attributes match.
    """

    fields = ("name",)

    def __init__(self, *values):
        if len(values) != len(self.fields):
            raise TypeError(f"{self.__class__.__name__} takes {len(self.fields)} arguments ({', '.join(self.fields)})")
        for field, value in zip(self.fields, values):
            setattr(self, field, value)

    @abstractmethod
    def value(self, configuration, problem_size, buffers, scalars, precision):
        pass

    @property
    def label(self):
        return self.name

    def _key(self):
        return (type(self),) + tuple(getattr(self, field) for field in self.fields)

    def __eq__(self, other):
        if not isinstance(other, KernelArgument):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return self.__class__.__name__ + "(" + ", ".join(repr(getattr(self, field)) for field in self.fields) + ")"


class ProblemDim(KernelArgument):
    """A problem dimension, such as m, n or k."""

    def value(self, configuration, problem_size, buffers, scalars, precision):
        return np.int32(_lookup(problem_size, self.name, "problem size"))


class Scalar(KernelArgument):
    """A scalar coefficient, converted to the argument type of the precision."""

    def value(self, configuration, problem_size, buffers, scalars, precision):
        return get_real_arg(_lookup(scalars, self.name, "scalar"), precision)


class Buffer(KernelArgument):
    """A buffer handle, passed through unchanged."""

    def value(self, configuration, problem_size, buffers, scalars, precision):
        return _lookup(buffers, self.name, "buffer")


class Offset(KernelArgument):
    """The element offset into a buffer, 0 unless stated otherwise."""

    fields = ("buffer", "offset")

    def __init__(self, buffer, offset=0):
        super().__init__(buffer, offset)

    def value(self, configuration, problem_size, buffers, scalars, precision):
        return np.int32(self.offset)

    @property
    def label(self):
        return self.buffer + "_offset"


class LeadingDim(KernelArgument):
    """The leading dimension of a buffer: a problem size name, an integer, or a function of the problem size."""

    fields = ("buffer", "size")

    def value(self, configuration, problem_size, buffers, scalars, precision):
        if callable(self.size):
            return np.int32(self.size(problem_size))
        if isinstance(self.size, str):
            return np.int32(_lookup(problem_size, self.size, "problem size"))
        return np.int32(self.size)

    @property
    def label(self):
        return self.buffer + "_ld"


class Flag(KernelArgument):
    """A fixed behavioral flag, for example whether the output is transposed."""

    fields = ("name", "flag")

    def value(self, configuration, problem_size, buffers, scalars, precision):
        return np.int32(int(self.flag))


class Param(KernelArgument):
    """The value of a tunable parameter passed as a runtime argument."""

    def value(self, configuration, problem_size, buffers, scalars, precision):
        return np.int32(_lookup(configuration, self.name, "tunable parameter"))


def _lookup(mapping, name, what):
    try:
        return mapping[name]
    except KeyError:
        raise ValueError(f"Kernel argument needs {what} {name}, which was not supplied") from None


class ArgumentBinder:
    """Maps a configuration and problem data onto the positional kernel arguments."""

    def __init__(self, signature, precision="single"):
        for argument in signature:
            if not isinstance(argument, KernelArgument):
                raise ValueError(f"Unrecognized kernel argument declaration {argument!r}")
        self.signature = tuple(signature)
        self.precision = get_precision(precision)

    def labels(self):
        """A name for each argument position."""
        return [argument.label for argument in self.signature]

    def bind(self, configuration, problem_size, buffers=None, scalars=None) -> list:
        """Return the argument list for one kernel invocation.

        :param configuration: The tunable parameter values, only read by Param arguments.
        :type configuration: Configuration or dict

        :param problem_size: The problem dimensions.
        :type problem_size: ProblemSize or dict

        :param buffers: Buffer handles by name.
        :type buffers: dict

        :param scalars: Scalar values by name.
        :type scalars: dict

        :returns: The arguments in signature order.
        :rtype: list
        """
        buffers = buffers or {}
        scalars = scalars or {}
        return [
            argument.value(configuration, problem_size, buffers, scalars, self.precision)
            for argument in self.signature
        ]

    def __len__(self):
        return len(self.signature)
