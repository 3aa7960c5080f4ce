"""Registry of the kernel families that ship with a tuning declaration."""

from tunespace.kernels import xgemm_direct
from tunespace.util import DeclarationError

kernel_families = {
    "xgemm_direct": xgemm_direct,
}


def get_declaration(family, variation=1):
    """Get the declaration of a registered kernel family, e.g. get_declaration("xgemm_direct", 2)."""
    if family not in kernel_families:
        raise DeclarationError(f"Unknown kernel family {family}, must be one of {list(kernel_families.keys())}")
    return kernel_families[family].get_declaration(variation)
