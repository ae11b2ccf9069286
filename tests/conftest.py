"""
Pytest configuration for document store testing.

Behavioral tests take the ``store`` fixture and run once per store driver:
the in-memory fake always, and a moto server when moto's server extra is
installed.
"""

import pytest

from tests.framework import FakeStoreDriver, MotoStoreDriver
from tests.framework.drivers import free_port

STORE_DRIVERS = ["fake", "moto"]


@pytest.fixture
def anyio_backend():
    """Run anyio tests on asyncio only (trio is not installed)."""
    return "asyncio"


@pytest.fixture(scope="session")
def moto_endpoint():
    """Start a moto server for the whole session."""
    server = pytest.importorskip("moto.server")
    port = free_port()
    moto = server.ThreadedMotoServer(ip_address="127.0.0.1", port=port, verbose=False)
    moto.start()
    yield f"http://127.0.0.1:{port}"
    moto.stop()


@pytest.fixture(params=STORE_DRIVERS)
def store(request):
    """Store driver for the current parametrization."""
    if request.param == "moto":
        return MotoStoreDriver(request.getfixturevalue("moto_endpoint"))
    return FakeStoreDriver()


@pytest.fixture
def fake_store():
    return FakeStoreDriver()
