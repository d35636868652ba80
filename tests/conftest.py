"""Fixtures shared by the notification client tests."""

from __future__ import annotations

import pytest

from fakes import FakeApi, FakeChannel, ManualScheduler


@pytest.fixture()
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()
