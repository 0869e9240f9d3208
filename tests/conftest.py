"""Shared pytest fixtures for deploy tunnel tests."""

from unittest.mock import AsyncMock, Mock

import pytest

from deploy_tunnel.models import Address, AddressTriple

ALLOCATED_PORT = 40123


@pytest.fixture
def events():
    """Progress events received by the ``progress`` fixture."""
    return []


@pytest.fixture
def progress(events):
    """Progress callback recording every event."""
    return events.append


@pytest.fixture
def allocated_port():
    """Local port handed out by the ``port_allocator`` fixture."""
    return ALLOCATED_PORT


@pytest.fixture
def port_allocator(allocated_port):
    """Free-port allocator always returning ``allocated_port``."""
    return AsyncMock(return_value=allocated_port)


def _strategy(name):
    tunnel = Mock(name=f"{name}_tunnel")
    strategy = Mock(name=f"{name}_strategy")
    strategy.name = name
    strategy.open = AsyncMock(return_value=tunnel)
    return strategy


@pytest.fixture
def native_strategy():
    """Native strategy whose open() returns a mock tunnel.

    Returns:
        Mock: Strategy, the tunnel is ``strategy.open.return_value``
    """
    return _strategy("native")


@pytest.fixture
def embedded_strategy():
    """Embedded strategy whose open() returns a mock tunnel."""
    return _strategy("embedded")


@pytest.fixture
def addresses(allocated_port):
    """A typical set of forward endpoints."""
    return AddressTriple(
        server=Address(host="example.com", port=2222),
        from_=Address(host="localhost", port=allocated_port),
        to=Address(host="localhost", port=3000),
    )
