"""Shared fixtures for solver tests."""

import pytest

from common.http_client import clear_cache
from constants import Constants
from repository.base import DependencySpec
from repository.memory import InMemoryRepository
from solver.graph import DependencyGraph
from solver.index import FingerprintIndex


@pytest.fixture(autouse=True)
def restore_constants():
    """Keep Constants overrides from leaking between tests."""
    saved = {k: v for k, v in vars(Constants).items() if k.isupper()}
    clear_cache()
    yield
    for key, value in saved.items():
        setattr(Constants, key, value)
    clear_cache()


@pytest.fixture
def repo():
    """web needs db >=2.0.0 and optionally cache; db ships three versions."""
    return (
        InMemoryRepository()
        .add("web", "1.0.0", [DependencySpec("db", ">=2.0.0"), DependencySpec("cache", "*", optional=True)])
        .add("db", "1.0.0")
        .add("db", "2.0.0")
        .add("db", "2.1.0")
        .add("cache", "3.0.0")
    )


def graph_of(*pkgs):
    """Index mock packages and build a graph over all of them (no repository)."""
    index = FingerprintIndex()
    for p in pkgs:
        index.insert(p)
    return DependencyGraph.build(index, None, [p.fingerprint for p in pkgs])


@pytest.fixture
def make_graph():
    """Factory building a graph over mock packages."""
    return graph_of
