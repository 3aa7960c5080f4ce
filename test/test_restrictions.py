import pytest
from constraint import FunctionConstraint

from tunespace.restrictions import (
    AreEqual,
    ConstraintSet,
    Expression,
    IsMultiple,
    IsMultipleOfProduct,
    IsMultipleOfProductDividedBy,
    MaxProduct,
    Predicate,
    check_restrictions,
    get_predicate,
    predicate_registry,
)
from tunespace.searchspace import ParameterSpace
from tunespace.util import ConstraintArityError, DivisionByZeroError, UnknownParameterError, ZeroDivisorError

tune_params = dict()
tune_params["WGD"] = [8, 16, 32]
tune_params["MDIMCD"] = [8, 16, 32]
tune_params["NDIMCD"] = [8, 16, 32]
tune_params["MDIMAD"] = [8, 16, 32]
tune_params["VWMD"] = [1, 2, 4, 8]


def test_builtin_predicates():
    assert IsMultiple()([32, 8])
    assert not IsMultiple()([8, 32])
    assert IsMultipleOfProduct()([32, 8, 4])
    assert not IsMultipleOfProduct()([32, 16, 4])
    assert IsMultipleOfProductDividedBy()([16, 16, 8, 8])
    assert not IsMultipleOfProductDividedBy()([8, 32, 32, 8])
    assert AreEqual()([16, 16])
    assert not AreEqual()([16, 8])
    assert MaxProduct(1024)([32, 32])
    assert not MaxProduct(1024)([32, 32, 2])


def test_product_divided_by_truncates():
    # (3 * 5) // 2 == 7
    assert IsMultipleOfProductDividedBy()([14, 3, 5, 2])
    assert not IsMultipleOfProductDividedBy()([15, 3, 5, 2])


def test_product_divided_by_zero():
    with pytest.raises(DivisionByZeroError):
        IsMultipleOfProductDividedBy()([16, 8, 8, 0])
    # the truncated divisor is 0
    with pytest.raises(DivisionByZeroError):
        IsMultipleOfProductDividedBy()([16, 1, 1, 2])
    with pytest.raises(ZeroDivisorError):
        IsMultipleOfProductDividedBy()([16, 8, 8, 0])


def test_registry():
    for name in ["IsMultiple", "IsMultipleOfProduct", "IsMultipleOfProductDividedBy", "AreEqual", "MaxProduct", "Expression"]:
        assert name in predicate_registry
    assert isinstance(get_predicate("IsMultiple"), IsMultiple)
    assert get_predicate("MaxProduct", 64).limit == 64
    with pytest.raises(ValueError):
        get_predicate("IsPrime")


def test_expression():
    expression = Expression("WGD % (MDIMCD * VWMD) == 0")
    assert expression.param_names == ["WGD", "MDIMCD", "VWMD"]
    assert expression.arity == 3
    assert expression([32, 8, 4])
    assert not expression([32, 16, 4])

    expression = Expression("max(VWMD, MDIMCD) <= WGD")
    assert expression.param_names == ["VWMD", "MDIMCD", "WGD"]

    with pytest.raises(ValueError):
        Expression("WGD %")


def test_constraint_set_add():
    space = ParameterSpace(tune_params)
    constraints = ConstraintSet(space)
    constraints.add(IsMultiple(), ["WGD", "MDIMCD"])
    constraints.add("IsMultipleOfProduct", ["WGD", "MDIMCD", "VWMD"])
    constraints.add("MDIMCD == MDIMAD")
    constraints.add(lambda v: v[0] >= v[1], ["WGD", "VWMD"], source="WGD >= VWMD")
    assert len(constraints) == 4
    assert [c.param_names for c in constraints] == [
        ("WGD", "MDIMCD"),
        ("WGD", "MDIMCD", "VWMD"),
        ("MDIMCD", "MDIMAD"),
        ("WGD", "VWMD"),
    ]
    assert str(constraints[3]) == "WGD >= VWMD"
    assert str(constraints[0]) == "IsMultiple(WGD, MDIMCD)"


def test_constraint_set_unknown_parameter():
    constraints = ConstraintSet(ParameterSpace(tune_params))
    with pytest.raises(UnknownParameterError):
        constraints.add(IsMultiple(), ["WGD", "KWID"])
    with pytest.raises(UnknownParameterError):
        constraints.add("WGD % KWID == 0")
    assert len(constraints) == 0


def test_constraint_set_arity():
    constraints = ConstraintSet(ParameterSpace(tune_params))
    with pytest.raises(ConstraintArityError):
        constraints.add(IsMultipleOfProduct(), ["WGD", "MDIMCD"])
    with pytest.raises(ConstraintArityError):
        constraints.add(AreEqual(), ["WGD", "MDIMCD", "MDIMAD"])
    with pytest.raises(ValueError):
        constraints.add(MaxProduct(64), [])
    with pytest.raises(ValueError):
        constraints.add(lambda v: True)


def test_check_and_failing():
    space = ParameterSpace(tune_params)
    constraints = ConstraintSet(space, [(IsMultiple(), ["WGD", "MDIMCD"]), (AreEqual(), ["MDIMCD", "MDIMAD"])])
    config = dict(WGD=32, MDIMCD=16, NDIMCD=8, MDIMAD=16, VWMD=1)
    assert constraints.check(config)
    assert constraints.failing(config) is None

    config["MDIMAD"] = 8
    assert not constraints.check(config)
    assert constraints.failing(config) is constraints[1]
    assert not check_restrictions(constraints, config)


def test_check_restrictions_verbose(capsys):
    space = ParameterSpace(tune_params)
    constraints = ConstraintSet(space, ["WGD % MDIMCD == 0"])
    assert not check_restrictions(constraints, dict(WGD=8, MDIMCD=16, NDIMCD=8, MDIMAD=8, VWMD=1), verbose=True)
    assert "skipping config" in capsys.readouterr().out


def test_constraint_divides_by_zero():
    space = ParameterSpace(dict(x=[0, 1], y=[0, 2]))
    constraints = ConstraintSet(space, ["x % y == 0"])
    with pytest.raises(DivisionByZeroError):
        constraints.check(dict(x=1, y=0))


def test_compose():
    space = ParameterSpace(tune_params)
    base = ConstraintSet(space, [(IsMultiple(), ["WGD", "MDIMCD"])])
    pins = ConstraintSet(space, [(AreEqual(), ["MDIMCD", "MDIMAD"])])
    combined = base + pins
    assert len(combined) == 2
    assert len(base) == 1
    base.extend(pins)
    assert len(base) == 2


def test_schedule():
    space = ParameterSpace(tune_params)
    constraints = ConstraintSet(space, [(IsMultiple(), ["WGD", "MDIMCD"]), (IsMultipleOfProduct(), ["WGD", "MDIMCD", "VWMD"])])
    schedule = constraints.schedule(space.all_names())
    assert len(schedule) == 5
    assert schedule[1] == [(constraints[0], (0, 1))]
    assert schedule[4] == [(constraints[1], (0, 1, 4))]
    assert schedule[0] == schedule[2] == schedule[3] == []


def test_to_python_constraint():
    space = ParameterSpace(tune_params)
    constraints = ConstraintSet(space, [(IsMultipleOfProduct(), ["WGD", "MDIMCD", "MDIMCD"])])
    function_constraint, variables = constraints[0].to_python_constraint()
    assert isinstance(function_constraint, FunctionConstraint)
    assert variables == ["WGD", "MDIMCD"]


def test_incomplete_predicate():
    class Unfinished(Predicate):
        name = "Unfinished"
        arity = 1

    with pytest.raises(TypeError):
        Unfinished()
