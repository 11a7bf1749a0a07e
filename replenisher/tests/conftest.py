"""Shared fixtures for the replenisher tests."""

import pytest

from replenisher.world import SimulatedNetwork


@pytest.fixture
def network():
    """A network with a 27-slot source and a 9-slot target."""
    net = SimulatedNetwork()
    net.add_container("source", size=27)
    net.add_container("target", size=9)
    return net
