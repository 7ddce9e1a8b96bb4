"""Shared fixtures."""

import pytest

from fakes import StatusServer
from siteaudit.events import QueueTransport


@pytest.fixture
def transport():
    return QueueTransport()


@pytest.fixture
def server():
    return StatusServer()
