"""Shared fixtures: a capturing console and in-memory release capabilities."""

from __future__ import annotations

import pytest

from fk.output.console import MockConsole
from fk.test._fakes import FakeBuilder, FakePackager, FakeRegistry, MemoryRecords


@pytest.fixture
def console() -> MockConsole:
    return MockConsole()


@pytest.fixture
def builder() -> FakeBuilder:
    return FakeBuilder()


@pytest.fixture
def records() -> MemoryRecords:
    return MemoryRecords()


@pytest.fixture
def packager() -> FakePackager:
    return FakePackager()


@pytest.fixture
def registry() -> FakeRegistry:
    """Accepts every publish and records the calls."""
    return FakeRegistry()
