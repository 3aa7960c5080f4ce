import pytest

from tunespace.util import SkippableFailure


class FakeTimer:
    """Timing callback that returns a deterministic execution time for each kernel instance.

    The time is lowest for the configuration that is closest to the preferred values.
    """

    def __init__(self, preferred=None, fail_when=None):
        self.preferred = preferred or {}
        self.fail_when = fail_when
        self.instances = []

    def __call__(self, instance):
        self.instances.append(instance)
        if self.fail_when is not None and self.fail_when(instance.params):
            raise SkippableFailure("too many resources requested for launch")
        distance = sum(abs(instance.params[k] - v) for k, v in self.preferred.items())
        return 1.0 + distance


@pytest.fixture
def fake_timer():
    """Factory of FakeTimer callbacks."""
    return FakeTimer


@pytest.fixture
def xgemm_buffers():
    return dict(a="a_gpu", b="b_gpu", c="c_gpu")
