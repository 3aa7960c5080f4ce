import pytest

from tunespace.geometry import ProblemSize, derive
from tunespace.kernels import get_declaration, kernel_families, xgemm_direct
from tunespace.util import DeclarationError

# unrestricted sizes and number of valid configurations of both variations
variation_1_size = 3888
variation_1_valid = 46
variation_1_unpinned_valid = 193
variation_2_size = 62208
variation_2_valid = 8420


def test_registry():
    assert "xgemm_direct" in kernel_families
    with pytest.raises(DeclarationError):
        get_declaration("xgemm_indirect")
    with pytest.raises(DeclarationError):
        get_declaration("xgemm_direct", 3)


def test_variation_1_exhaustive():
    declaration = xgemm_direct.get_declaration(1)
    searchspace = declaration.searchspace()
    assert searchspace.cartesian_size == variation_1_size
    configs = searchspace.sorted_list()
    assert len(configs) == variation_1_valid
    assert configs[0] == dict(WGD=8, MDIMCD=8, NDIMCD=8, MDIMAD=8, NDIMBD=8, KWID=2, VWMD=1, VWND=1, PADA=1, PADB=1)
    for config in configs:
        assert config["MDIMCD"] == config["MDIMAD"]
        assert config["NDIMCD"] == config["NDIMBD"]
        assert searchspace.verify(config)


def test_variation_1_unpinned():
    searchspace = xgemm_direct.get_declaration(1).searchspace(pinned=False)
    assert len(searchspace.sorted_list()) == variation_1_unpinned_valid


@pytest.mark.parametrize("framework", ["bruteforce", "pythonconstraint"])
def test_variation_1_frameworks(framework):
    declaration = xgemm_direct.get_declaration(1)
    assert declaration.searchspace(framework=framework).sorted_list() == declaration.searchspace().sorted_list()


def test_variation_2_exhaustive():
    searchspace = xgemm_direct.get_declaration(2).searchspace()
    assert searchspace.cartesian_size == variation_2_size
    assert sum(1 for _ in searchspace.iter_exhaustive()) == variation_2_valid


def test_variation_2_sample():
    declaration = xgemm_direct.get_declaration(2)
    assert declaration.defaults.strategy == "random_sample"
    searchspace = declaration.searchspace()
    sample = searchspace.get_random_sample(declaration.defaults.fraction, seed=64)
    # ceil(62208 / 64)
    assert len(sample) == 972
    assert len(set(sample)) == len(sample)
    for config in sample:
        assert searchspace.verify(config)


def test_geometry_of_valid_configurations():
    declaration = xgemm_direct.get_declaration(1)
    problem_size = ProblemSize(m=256, n=256, k=256)
    for config in declaration.searchspace():
        local_size, global_size = derive(problem_size, declaration.base_local, declaration.base_global, declaration.rules, config)
        assert local_size == (config["MDIMCD"], config["NDIMCD"])
        assert global_size == (256 * config["MDIMCD"] // config["WGD"], 256 * config["NDIMCD"] // config["WGD"])


def test_reference_geometry():
    declaration = xgemm_direct.get_declaration(1)
    assert declaration.reference_geometry(ProblemSize(m=100, n=64, k=8)) == ((8, 8), (104, 64))


def test_metric():
    declaration = xgemm_direct.get_declaration(2)
    assert declaration.get_metric_amount(ProblemSize(m=2, n=3, k=4)) == 48
