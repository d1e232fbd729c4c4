"""
Tests for lazily created, immutable per-seed styles.
"""

import random
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from forge.errors import PersistenceFailure
from forge.style_store import FingerprintStore
from forge.style_variants import StylePolicy, validate

from conftest import make_seeds, store_corrupt_style


class TestGetOrCreate:
    """Idempotent creation."""

    def test_creates_valid_style(self, style_store):
        seed = make_seeds(1)[0]
        fp = style_store.get_or_create(seed)
        assert validate(fp)

    def test_second_call_returns_stored_style(self, session_factory):
        seed = make_seeds(1)[0]
        first = FingerprintStore(session_factory, rng=random.Random(1)).get_or_create(seed)
        # a different rng would draw something else if it were asked
        for i in range(2, 12):
            again = FingerprintStore(session_factory, rng=random.Random(i)).get_or_create(seed)
            assert again == first

    def test_get_never_creates(self, style_store):
        seed = make_seeds(1)[0]
        assert style_store.get(seed) is None
        assert style_store.get(seed) is None
        assert style_store.variant_stats()["total"] == 0

    def test_get_returns_created_style(self, style_store):
        seed = make_seeds(1)[0]
        fp = style_store.get_or_create(seed)
        assert style_store.get(seed) == fp

    def test_custom_policy_is_used(self, session_factory):
        store = FingerprintStore(session_factory, policy=StylePolicy(), rng=random.Random(8))
        fp = store.get_or_create(make_seeds(1)[0])
        assert validate(fp, StylePolicy())


class TestConcurrentCreation:
    """Racing first accesses agree on one stored style."""

    def test_all_callers_see_same_style(self, session_factory):
        seed = make_seeds(1)[0]
        callers = 10
        barrier = threading.Barrier(callers)

        def worker(i):
            store = FingerprintStore(session_factory, rng=random.Random(i))
            barrier.wait()
            return store.get_or_create(seed)

        with ThreadPoolExecutor(max_workers=callers) as executor:
            results = list(executor.map(worker, range(callers)))

        assert len(set(results)) == 1
        stored = FingerprintStore(session_factory).get(seed)
        assert stored == results[0]
        assert FingerprintStore(session_factory).variant_stats()["total"] == 1


class TestReporting:
    """variant_stats and find_by_variant."""

    def test_variant_stats_counts(self, style_store):
        for seed in make_seeds(6):
            style_store.get_or_create(seed)

        report = style_store.variant_stats(top=3)
        assert report["total"] == 6
        for name in ("palette", "gradient", "glow", "chrome", "bloom", "texture", "lighting"):
            rows = report[name]
            assert len(rows) <= 3
            counts = [row["count"] for row in rows]
            assert counts == sorted(counts, reverse=True)

        assert sum(row["count"] for row in report["bloom"]) == 6

    def test_find_by_variant(self, style_store):
        seeds = make_seeds(5)
        styles = {seed: style_store.get_or_create(seed) for seed in seeds}
        palette = styles[seeds[0]].palette

        found = style_store.find_by_variant("palette", palette.value)
        expected = {seed for seed, fp in styles.items() if fp.palette is palette}
        assert set(found) == expected

    def test_find_by_variant_unknown_dimension(self, style_store):
        with pytest.raises(ValueError):
            style_store.find_by_variant("font", "comicSans")

    def test_find_by_variant_unknown_value(self, style_store):
        with pytest.raises(ValueError):
            style_store.find_by_variant("chrome", "goldLeaf")


class TestCorruptRows:
    """A stored value outside its domain is a storage fault."""

    def test_get_raises_persistence_failure(self, session_factory, style_store):
        seed = make_seeds(1)[0]
        store_corrupt_style(session_factory, seed)
        with pytest.raises(PersistenceFailure, match="corrupt style row"):
            style_store.get(seed)

    def test_get_or_create_does_not_overwrite(self, session_factory, style_store):
        seed = make_seeds(1)[0]
        store_corrupt_style(session_factory, seed)
        with pytest.raises(PersistenceFailure):
            style_store.get_or_create(seed)


class TestMissingSchema:
    def test_get_or_create_without_tables(self, tmp_path):
        from forge.db_helpers import create_session_factory, get_db_engine

        engine = get_db_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        try:
            store = FingerprintStore(create_session_factory(engine))
            with pytest.raises(PersistenceFailure):
                store.get_or_create(make_seeds(1)[0])
        finally:
            engine.dispose()
