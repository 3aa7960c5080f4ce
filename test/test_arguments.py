import numpy as np
import pytest

from tunespace.arguments import ArgumentBinder, Buffer, Flag, KernelArgument, LeadingDim, Offset, Param, ProblemDim, Scalar
from tunespace.geometry import ProblemSize
from tunespace.kernels import xgemm_direct

problem_size = ProblemSize(m=256, n=128, k=64)
buffers = dict(a="a_gpu", b="b_gpu", c="c_gpu")
scalars = dict(alpha=2.0, beta=0.5)


def test_xgemm_direct_signature():
    binder = ArgumentBinder(xgemm_direct.signature, "single")
    args = binder.bind(dict(WGD=32), problem_size, buffers, scalars)
    assert len(args) == len(binder) == 17
    assert binder.labels() == [
        "m", "n", "k", "alpha", "beta",
        "a", "a_offset", "a_ld",
        "b", "b_offset", "b_ld",
        "c", "c_offset", "c_ld",
        "c_do_transpose", "a_conjugate", "b_conjugate",
    ]
    assert args[:3] == [256, 128, 64]
    assert all(isinstance(arg, np.int32) for arg in args[:3])
    assert isinstance(args[3], np.float32) and args[3] == 2.0
    assert isinstance(args[4], np.float32) and args[4] == 0.5
    assert args[5] == "a_gpu" and args[8] == "b_gpu" and args[11] == "c_gpu"
    # offsets are 0
    assert args[6] == args[9] == args[12] == 0
    # leading dimensions are k, n and n
    assert args[7] == 64 and args[10] == 128 and args[13] == 128
    assert args[14:] == [1, 0, 0]
    assert all(isinstance(arg, np.int32) for arg in args[14:])


def test_bind_double_precision():
    binder = ArgumentBinder(xgemm_direct.signature, "double")
    args = binder.bind({}, problem_size, buffers, scalars)
    assert isinstance(args[3], np.float64)


def test_bind_missing_inputs():
    binder = ArgumentBinder(xgemm_direct.signature)
    with pytest.raises(ValueError):
        binder.bind({}, problem_size, buffers, dict(alpha=1.0))
    with pytest.raises(ValueError):
        binder.bind({}, problem_size, dict(a="a_gpu"), scalars)
    with pytest.raises(ValueError):
        binder.bind({}, dict(m=256, n=128), buffers, scalars)


def test_argument_kinds():
    signature = [
        Param("WGD"),
        Offset("a", 16),
        LeadingDim("a", 128),
        LeadingDim("b", lambda p: p["m"] + 1),
        Flag("transpose", True),
        ProblemDim("k"),
        Scalar("alpha"),
        Buffer("a"),
    ]
    binder = ArgumentBinder(signature)
    args = binder.bind(dict(WGD=32), problem_size, buffers, scalars)
    assert args[:6] == [32, 16, 128, 257, 1, 64]
    assert binder.labels()[:3] == ["WGD", "a_offset", "a_ld"]


def test_invalid_signature():
    with pytest.raises(ValueError):
        ArgumentBinder([ProblemDim("m"), "n"])
    with pytest.raises(ValueError):
        ArgumentBinder([ProblemDim("m")], precision="quad")


def test_argument_kinds_are_distinct():
    assert ProblemDim("m") == ProblemDim("m")
    assert ProblemDim("m") != Scalar("m")
    assert Scalar("m") != Param("m")
    assert Param("m") != Buffer("m")
    assert len({ProblemDim("m"), Scalar("m"), Param("m"), Buffer("m"), ProblemDim("m")}) == 4
    assert Offset("a") == Offset("a", 0)
    assert Offset("a", 0) != LeadingDim("a", 0)
    assert repr(Offset("a")) == "Offset('a', 0)"


def test_incomplete_argument():
    class Unfinished(KernelArgument):
        pass

    with pytest.raises(TypeError):
        Unfinished("m")
    with pytest.raises(TypeError):
        Flag("transpose")
