"""Shared fixtures."""

import pytest

from factories import FakeFeed, FakeNotifier, InMemorySignalRepository


@pytest.fixture
def repo():
    return InMemorySignalRepository()


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def notifier():
    return FakeNotifier()
