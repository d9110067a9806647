"""Pytest configuration and shared fixtures."""

import pytest
import pytest_asyncio

from bridgecall import Channel, ChannelConfig, LoopbackTransport, create


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def transports() -> tuple[LoopbackTransport, LoopbackTransport]:
    """Two connected in-memory transport endpoints."""
    return LoopbackTransport.pair()


@pytest_asyncio.fixture
async def channels(transports):
    """Two channels wired through a loopback pair, closed after the test."""
    left, right = transports
    a = create(left, ChannelConfig(name="a"))
    b = create(right, ChannelConfig(name="b"))
    yield a, b
    await a.aclose()
    await b.aclose()


@pytest.fixture
def channel_a(channels) -> Channel:
    return channels[0]


@pytest.fixture
def channel_b(channels) -> Channel:
    return channels[1]
