"""Shared fixtures: a migrated sqlite file per test and helpers to fill the pool."""
from __future__ import annotations

import random

import pytest

from forge.allocation_service import AllocationService
from forge.db_helpers import create_session_factory, get_db_engine
from forge.entities import Base, DemoLogoStyle
from forge.seed_pool import SeedPool
from forge.style_store import FingerprintStore


def make_seeds(count: int) -> list[str]:
    """Valid 64-hex seeds that sort in creation order."""
    return [f"{i + 1:064x}" for i in range(count)]


def store_corrupt_style(session_factory, seed: str) -> None:
    """Write a style row whose chrome is outside its domain."""
    session = session_factory()
    try:
        session.add(DemoLogoStyle(
            seed=seed,
            palette="neonPinkBlue",
            gradient="horizontal",
            glow="hardNeon",
            chrome="goldLeaf",
            bloom="heavy",
            texture="none",
            lighting="front",
        ))
        session.commit()
    finally:
        session.close()


@pytest.fixture
def engine(tmp_path):
    engine = get_db_engine(f"sqlite:///{tmp_path / 'forge.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def pool(session_factory):
    return SeedPool(session_factory)


@pytest.fixture
def filled_pool(pool):
    """Pool holding three seeds."""
    pool.load(make_seeds(3))
    return pool


@pytest.fixture
def style_store(session_factory):
    return FingerprintStore(session_factory, rng=random.Random(1234))


@pytest.fixture
def service(session_factory):
    return AllocationService.from_session_factory(session_factory, rng=random.Random(42))
