"""Shared fixtures: in-memory order store, fake bus, scripted randomness."""

import pytest
from sqlalchemy.pool import StaticPool

from orderflow.common.db import Base, create_session_factory
from orderflow.common.store import OrderStore


class FakeBus:
    """In-process stand-in for `KafkaBus` recording published envelopes."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.published = []
        self.closed = False

    async def publish(self, topic, event) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.published.append((topic, event))

    async def close(self) -> None:
        self.closed = True


class ScriptedRandom:
    """Deterministic random source returning queued values in order."""

    def __init__(self, *values: float) -> None:
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0)


@pytest.fixture
def session_factory():
    factory = create_session_factory(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(factory.kw["bind"])
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def store(session_factory):
    return OrderStore(session_factory)


@pytest.fixture
def bus():
    return FakeBus()
