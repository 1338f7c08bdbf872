"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from tests.fakes import RecordingSink


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
