"""Tuning declaration of the direct GEMM kernels (XgemmDirectTN).

There are two variations:
    1: a limited set of tuning parameters that is explored exhaustively
    2: a much larger set of tuning parameters that is sampled randomly
"""

from tunespace.arguments import Buffer, Flag, LeadingDim, Offset, ProblemDim, Scalar
from tunespace.declaration import KernelDeclaration
from tunespace.geometry import rules_from_lists
from tunespace.restrictions import AreEqual, IsMultiple, IsMultipleOfProduct, IsMultipleOfProductDividedBy
from tunespace.util import DeclarationError

variations = (1, 2)


def get_parameters(variation):
    if variation == 1:
        return dict(
            WGD=[8, 16, 32],
            MDIMCD=[8, 16, 32],
            NDIMCD=[8, 16, 32],
            MDIMAD=[8, 16, 32],
            NDIMBD=[8, 16, 32],
            KWID=[2],
            VWMD=[1, 2, 4, 8],
            VWND=[1, 2, 4, 8],
            PADA=[1],
            PADB=[1],
        )
    return dict(
        WGD=[8, 16, 32, 64],
        MDIMCD=[8, 16, 32],
        NDIMCD=[8, 16, 32],
        MDIMAD=[8, 16, 32],
        NDIMBD=[8, 16, 32],
        KWID=[2, 8, 16],
        VWMD=[1, 2, 4, 8],
        VWND=[1, 2, 4, 8],
        PADA=[0, 1],
        PADB=[0, 1],
    )


def get_constraints():
    return [
        # unrolling the WGD loop
        (IsMultiple(), ["WGD", "KWID"]),
        # integer MWID and NWID
        (IsMultipleOfProduct(), ["WGD", "MDIMCD", "VWMD"]),
        (IsMultipleOfProduct(), ["WGD", "NDIMCD", "VWND"]),
        # integer MWIAD and NWIBD
        (IsMultipleOfProduct(), ["WGD", "MDIMAD", "VWMD"]),
        (IsMultipleOfProduct(), ["WGD", "NDIMBD", "VWND"]),
        # WGD is a multiple of KDIMAD = (MDIMCD*NDIMCD)/MDIMAD and of KDIMBD = (MDIMCD*NDIMCD)/NDIMBD
        (IsMultipleOfProductDividedBy(), ["WGD", "MDIMCD", "NDIMCD", "MDIMAD"]),
        (IsMultipleOfProductDividedBy(), ["WGD", "MDIMCD", "NDIMCD", "NDIMBD"]),
    ]


def get_pins(variation):
    """Extra constraints of variation 1 that limit the set of options significantly."""
    if variation != 1:
        return []
    return [
        (AreEqual(), ["MDIMCD", "MDIMAD"]),
        (AreEqual(), ["NDIMCD", "NDIMBD"]),
    ]


signature = [
    ProblemDim("m"),
    ProblemDim("n"),
    ProblemDim("k"),
    Scalar("alpha"),
    Scalar("beta"),
    Buffer("a"),
    Offset("a"),
    LeadingDim("a", "k"),
    Buffer("b"),
    Offset("b"),
    LeadingDim("b", "n"),
    Buffer("c"),
    Offset("c"),
    LeadingDim("c", "n"),
    Flag("c_do_transpose", 1),
    Flag("a_conjugate", 0),
    Flag("b_conjugate", 0),
]


def get_declaration(variation=1) -> KernelDeclaration:
    if variation not in variations:
        raise DeclarationError(f"xgemm_direct has variations {variations}, got {variation}")
    return KernelDeclaration(
        f"xgemm_direct_{variation}",
        "XgemmDirectTN",
        dict(m=256, n=256, k=256),
        get_parameters(variation),
        base_local=(1, 1),
        base_global=("m", "n"),
        local_size_ref=(8, 8),
        rules=rules_from_lists(
            mul_local=[["MDIMCD", "NDIMCD"]],
            mul_global=[["MDIMCD", "NDIMCD"]],
            div_global=[["WGD", "WGD"]],
        ),
        constraints=get_constraints(),
        pins=get_pins(variation),
        signature=signature,
        buffers=dict(a="m * k", b="n * k", c="m * n"),
        inputs=["a", "b", "c"],
        outputs=["c"],
        defaults=dict(
            strategy="brute_force" if variation == 1 else "random_sample",
            fraction=1.0 if variation == 1 else 1.0 / 64.0,
            num_runs=4,
            scalars=dict(alpha=2.0, beta=0.5),
        ),
        metric_amount=lambda p: 2 * p["m"] * p["n"] * p["k"],
        performance_unit="GFLOPS",
    )
