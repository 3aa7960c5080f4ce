from itertools import product
from math import ceil

import numpy as np
import pytest

from tunespace.restrictions import ConstraintSet, IsMultiple
from tunespace.searchspace import Configuration, ParameterSpace, Searchspace, TunableParameter
from tunespace.util import DuplicateParameterError, EmptyDomainError, SampleExhaustionError, SpaceFrozenError

# 24 combinations, of which 16 pass the restriction
simple_tune_params = dict()
simple_tune_params["x"] = [1, 2, 3, 4]
simple_tune_params["y"] = [2, 4, 6]
simple_tune_params["z"] = [0, 1]
simple_restrict = ["y % x == 0"]


def simple_searchspace(framework="backtracking", restrict=simple_restrict):
    space = ParameterSpace(simple_tune_params)
    return Searchspace(space, ConstraintSet(space, restrict), framework=framework)


def test_tunable_parameter():
    param = TunableParameter("WGD", [8, 16, 32])
    assert param.name == "WGD"
    assert param.candidates == (8, 16, 32)

    with pytest.raises(EmptyDomainError):
        TunableParameter("WGD", [])
    with pytest.raises(ValueError):
        TunableParameter("WGD", [8, 8])
    with pytest.raises(ValueError):
        TunableParameter("WGD", [-1, 8])
    with pytest.raises(ValueError):
        TunableParameter("WGD", [1.5])


def test_parameter_space():
    space = ParameterSpace()
    space.add("b", [1, 2])
    space.add("a", [3, 4, 5])
    assert space.all_names() == ["b", "a"]
    assert space.cartesian_size() == 6
    assert "a" in space
    assert len(space) == 2

    with pytest.raises(DuplicateParameterError):
        space.add("a", [1])
    with pytest.raises(EmptyDomainError):
        space.add("c", [])

    # an empty domain or duplicate name is also a ValueError
    with pytest.raises(ValueError):
        space.add("a", [1])


def test_space_frozen_after_resolution():
    space = ParameterSpace(simple_tune_params)
    Searchspace(space)
    assert space.frozen
    with pytest.raises(SpaceFrozenError):
        space.add("w", [1])


def test_empty_space():
    with pytest.raises(ValueError):
        Searchspace(ParameterSpace())


def test_invalid_framework():
    with pytest.raises(ValueError):
        simple_searchspace(framework="bogus")


def test_constraints_on_other_space():
    space = ParameterSpace(simple_tune_params)
    other = ParameterSpace(simple_tune_params)
    with pytest.raises(ValueError):
        Searchspace(space, ConstraintSet(other, simple_restrict))


def test_configuration():
    config = Configuration(["x", "y"], [1, 2])
    assert config["x"] == 1
    assert list(config) == ["x", "y"]
    assert config.as_tuple() == (1, 2)
    assert config == dict(x=1, y=2)
    assert config == Configuration(("x", "y"), (1, 2))
    assert hash(config) == hash(Configuration(("x", "y"), (1, 2)))
    assert len({config, Configuration(["x", "y"], [1, 2])}) == 1
    with pytest.raises(TypeError):
        config["x"] = 3
    with pytest.raises(ValueError):
        Configuration(["x", "y"], [1])


def test_exhaustive():
    searchspace = simple_searchspace()
    configs = list(searchspace.iter_exhaustive())
    assert len(configs) == 16
    assert configs[0] == dict(x=1, y=2, z=0)
    assert configs[1] == dict(x=1, y=2, z=1)
    assert configs[-1] == dict(x=4, y=4, z=1)
    for config in configs:
        assert searchspace.verify(config)
    # no duplicates
    assert len(set(configs)) == len(configs)


def test_exhaustive_lexicographic_order():
    searchspace = simple_searchspace()
    indices = [searchspace.get_param_indices(config) for config in searchspace]
    assert indices == sorted(indices)


def test_frameworks_agree():
    backtracking = list(simple_searchspace().iter_exhaustive())
    bruteforce = list(simple_searchspace("bruteforce").iter_exhaustive())
    pythonconstraint = list(simple_searchspace("pythonconstraint").iter_exhaustive())
    assert backtracking == bruteforce
    assert backtracking == pythonconstraint


def test_no_constraints_full_product():
    searchspace = simple_searchspace(restrict=[])
    configs = [config.as_tuple() for config in searchspace.iter_exhaustive()]
    assert configs == list(product(*simple_tune_params.values()))


def test_exhaustive_restartable_by_new_call():
    searchspace = simple_searchspace()
    first = searchspace.iter_exhaustive()
    list(first)
    assert list(first) == []
    assert len(list(searchspace.iter_exhaustive())) == 16


def test_repeated_parameter_in_constraint():
    space = ParameterSpace(dict(x=[1, 2, 3], y=[1, 2]))
    constraints = ConstraintSet(space)
    constraints.add(IsMultiple(), ["x", "x"])
    constraints.add(lambda v: v[0] + v[1] + v[2] > 4, ["x", "y", "x"])
    for framework in ["backtracking", "bruteforce", "pythonconstraint"]:
        searchspace = Searchspace(space, constraints, framework=framework)
        configs = [config.as_tuple() for config in searchspace.iter_exhaustive()]
        assert configs == [(2, 1), (2, 2), (3, 1), (3, 2)]


def test_fixed_prefix():
    searchspace = simple_searchspace()
    configs = list(searchspace.iter_exhaustive(fixed=dict(x=3)))
    assert configs == [dict(x=3, y=6, z=0), dict(x=3, y=6, z=1)]
    with pytest.raises(ValueError):
        searchspace.iter_exhaustive(fixed=dict(x=5))


def test_partitions():
    searchspace = simple_searchspace()
    partitions = searchspace.partitions()
    assert len(partitions) == len(simple_tune_params["x"])
    combined = [config for partition in partitions for config in partition]
    assert combined == searchspace.sorted_list()


def test_is_param_config_valid():
    searchspace = simple_searchspace()
    assert searchspace.is_param_config_valid((2, 4, 0))
    assert searchspace.is_param_config_valid(dict(x=2, y=4, z=0))
    assert not searchspace.is_param_config_valid((3, 4, 0))
    assert not searchspace.is_param_config_valid((5, 4, 0))


def test_get_num_samples():
    searchspace = simple_searchspace()
    assert searchspace.get_num_samples(1.0) == 24
    assert searchspace.get_num_samples(0.1) == ceil(0.1 * 24)
    for fraction in [0, -0.5, 1.5]:
        with pytest.raises(ValueError):
            searchspace.get_num_samples(fraction)


def test_sample_valid_and_distinct():
    searchspace = simple_searchspace()
    sample = searchspace.get_random_sample(0.5, seed=1)
    assert len(sample) == 12
    assert len(set(sample)) == len(sample)
    for config in sample:
        assert searchspace.verify(config)


def test_sample_full_fraction_converges():
    searchspace = simple_searchspace()
    with pytest.warns(UserWarning):
        sample = searchspace.get_random_sample(1.0, seed=3)
    # only 16 of the 24 configurations are valid, sampling stops once the whole product has been drawn
    assert set(sample) == set(searchspace.sorted_list())


def test_sample_seed_reproducible():
    searchspace = simple_searchspace()
    first = searchspace.get_random_sample(0.25, seed=42)
    second = searchspace.get_random_sample(0.25, seed=42)
    assert first == second
    generator_sample = searchspace.get_random_sample(0.25, seed=np.random.default_rng(42))
    assert generator_sample == first


def test_sample_draw_budget():
    searchspace = simple_searchspace()
    with pytest.warns(UserWarning):
        sample = searchspace.get_random_sample(1.0, max_draws=3, seed=0)
    assert len(sample) <= 3


def test_sample_exhaustion():
    space = ParameterSpace(dict(x=list(range(100)), y=list(range(100))))
    constraints = ConstraintSet(space, ["x == 0 and y == 0"])
    searchspace = Searchspace(space, constraints)
    with pytest.raises(SampleExhaustionError) as excinfo:
        searchspace.get_random_sample(0.5, max_rejections=10, seed=7)
    assert excinfo.value.num_found == len(excinfo.value.configurations)
    assert excinfo.value.num_found <= 1


def test_sample_argument_checks():
    searchspace = simple_searchspace()
    with pytest.raises(ValueError):
        searchspace.iter_sample(0)
    with pytest.raises(ValueError):
        searchspace.iter_sample(0.5, max_draws=0)
    with pytest.raises(ValueError):
        searchspace.iter_sample(0.5, max_rejections=0)


def test_get_random_configurations():
    searchspace = simple_searchspace()
    configs = searchspace.get_random_configurations(5, seed=3)
    assert len(configs) == 5
    assert len(set(configs)) == 5
    for config in configs:
        assert searchspace.verify(config)
    assert searchspace.get_random_configurations(5, seed=3) == configs
    with pytest.raises(ValueError):
        searchspace.get_random_configurations(0)


def test_get_neighbors():
    searchspace = simple_searchspace()
    neighbors = searchspace.get_neighbors(dict(x=2, y=4, z=0))
    assert set(neighbors) == {
        Configuration(["x", "y", "z"], values)
        for values in [(1, 4, 0), (4, 4, 0), (2, 2, 0), (2, 6, 0), (2, 4, 1)]
    }
    for neighbor in neighbors:
        assert searchspace.verify(neighbor)
