import pytest
from utils.docker_fakes import DummyDocker, FakeClock


@pytest.fixture
def clock():
    return FakeClock(start=1000.0)


@pytest.fixture
def docker():
    return DummyDocker()
