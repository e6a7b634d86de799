import pytest

from s_engine import Engine
from utils import example_programs, example_repository


@pytest.fixture
def programs():
    return example_programs()


@pytest.fixture
def repo():
    return example_repository()


@pytest.fixture
def engine(repo):
    return Engine(repo, max_steps=1_000_000)
