"""Registry of the numeric precisions a kernel can be tuned for.

A precision maps to the numpy dtype of the buffers and to the dtype in which
scalar arguments such as alpha and beta are passed. Half precision scalars are
passed as single precision floats.
"""

from collections import OrderedDict, namedtuple

import numpy as np

Precision = namedtuple("Precision", ["name", "tag", "dtype", "arg_dtype", "is_complex"])

precisions = OrderedDict(
    (p.name, p)
    for p in [
        Precision("half", 16, np.float16, np.float32, False),
        Precision("single", 32, np.float32, np.float32, False),
        Precision("double", 64, np.float64, np.float64, False),
        Precision("complex_single", 3232, np.complex64, np.complex64, True),
        Precision("complex_double", 6464, np.complex128, np.complex128, True),
    ]
)


def get_precision(precision) -> Precision:
    """Look up a precision by name, by numeric tag (16, 32, 64, 3232, 6464), or pass a Precision through."""
    if isinstance(precision, Precision):
        return precision
    if isinstance(precision, str) and precision.lower() in precisions:
        return precisions[precision.lower()]
    for p in precisions.values():
        if precision == p.tag:
            return p
    raise ValueError(f"Unknown precision {precision!r}, must be one of {list(precisions.keys())}")


def get_real_arg(value, precision):
    """Convert a scalar to the type in which the kernel receives it."""
    precision = get_precision(precision)
    if not precision.is_complex and np.iscomplexobj(value):
        raise ValueError(f"Cannot pass complex scalar {value} to a {precision.name} precision kernel")
    return precision.arg_dtype(value)


def bytes_per_element(precision) -> int:
    return np.dtype(get_precision(precision).dtype).itemsize
