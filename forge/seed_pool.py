# forge/seed_pool.py
"""
Fixed, non-renewable pool of opaque demo seeds.

Every consume runs in its own transaction: lock one unused row with
FOR UPDATE SKIP LOCKED, flip it to used with a guarded UPDATE, commit.
Concurrent consumers skip rows another transaction holds instead of
queueing behind it. On backends that ignore SKIP LOCKED (sqlite) the guarded
UPDATE still refuses a row somebody else already took, and the attempt moves
on to the next candidate.
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from forge.entities import DemoSeed
from forge.errors import PersistenceFailure

logger = logging.getLogger("forge_backend")

SEED_BYTES = 32  # 256 bits -> 64 hex chars
IMPORT_BATCH_SIZE = 1000
DEFAULT_POOL_SIZE = 9000
MAX_CALLER_ID_LENGTH = 255

_SEED_RE = re.compile(r"^[0-9a-f]{64}$")


def is_seed_value(value: str) -> bool:
    return bool(value) and bool(_SEED_RE.match(value))


def generate_seeds(count: int = DEFAULT_POOL_SIZE) -> List[str]:
    """
    `count` unique seeds of 256 random bits each, as lowercase hex.
    """
    if count <= 0:
        raise ValueError(f"Seed count must be positive, got {count}")

    seeds: List[str] = []
    seen = set()
    attempts = 0
    max_attempts = count * 10

    while len(seeds) < count and attempts < max_attempts:
        seed = os.urandom(SEED_BYTES).hex()
        if seed not in seen:
            seen.add(seed)
            seeds.append(seed)
        attempts += 1

    if len(seeds) != count:
        raise RuntimeError(f"Failed to generate {count} unique seeds after {max_attempts} attempts")
    return seeds


@dataclass(frozen=True)
class SeedToken:
    value: str
    used: bool
    used_at: Optional[datetime] = None
    used_by: Optional[str] = None


@dataclass(frozen=True)
class PoolStats:
    total: int
    used: int
    available: int
    percentage_used: float

    @property
    def exhausted(self) -> bool:
        return self.available == 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "used": self.used,
            "available": self.available,
            "percentageUsed": self.percentage_used,
        }

    @classmethod
    def from_counts(cls, total: int, used: int) -> "PoolStats":
        percentage = round(used / total * 100, 2) if total > 0 else 0.0
        return cls(total=total, used=used, available=total - used, percentage_used=percentage)


class SeedPool:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.SessionFactory = session_factory

    def _unused(self):
        return (
            select(DemoSeed.seed)
            .where(DemoSeed.used.is_(False))
            .order_by(DemoSeed.seed.asc())
        )

    def preview_next(self) -> Optional[str]:
        """
        Some currently unused seed, without touching it. Advisory only: a
        concurrent consume can take it before the caller does anything.
        """
        session = self.SessionFactory()
        try:
            return session.execute(self._unused().limit(1)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"preview_next failed: {e}") from e
        finally:
            session.close()

    def consume(self, caller_id: Optional[str] = None) -> Optional[SeedToken]:
        """
        Atomically take one unused seed. Returns None once the pool is
        exhausted. Nothing is marked used unless the commit succeeds.
        """
        if caller_id:
            caller_id = str(caller_id)[:MAX_CALLER_ID_LENGTH]
        else:
            caller_id = None

        session = self.SessionFactory()
        try:
            # each lost guard means another caller consumed that row,
            # so the loop is bounded by the number of unused seeds
            while True:
                candidate = session.execute(
                    self._unused().with_for_update(skip_locked=True).limit(1)
                ).scalar_one_or_none()

                if candidate is None:
                    session.rollback()
                    logger.info("consume: seed pool exhausted")
                    return None

                now = datetime.now(timezone.utc)
                result = session.execute(
                    update(DemoSeed)
                    .where(DemoSeed.seed == candidate, DemoSeed.used.is_(False))
                    .values(used=True, used_at=now, used_by=caller_id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    session.commit()
                    return SeedToken(value=candidate, used=True, used_at=now, used_by=caller_id)

                logger.debug("consume: seed %s... taken concurrently, trying next", candidate[:12])

        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceFailure(f"consume failed: {e}") from e
        finally:
            session.close()

    def get(self, seed: str) -> Optional[SeedToken]:
        session = self.SessionFactory()
        try:
            row = session.get(DemoSeed, seed)
            if row is None:
                return None
            return SeedToken(value=row.seed, used=row.used, used_at=row.used_at, used_by=row.used_by)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"get seed failed: {e}") from e
        finally:
            session.close()

    def stats(self) -> PoolStats:
        """
        Snapshot of the counts. Can trail in-flight consumes; good for a
        progress bar, not for allocation decisions.
        """
        session = self.SessionFactory()
        try:
            total = session.execute(select(func.count()).select_from(DemoSeed)).scalar_one()
            used = session.execute(
                select(func.count()).select_from(DemoSeed).where(DemoSeed.used.is_(True))
            ).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"stats failed: {e}") from e
        finally:
            session.close()

        return PoolStats.from_counts(int(total), int(used))

    # -----------------------
    # Bulk loading (tooling, before the pool opens)
    # -----------------------

    def load(self, seeds: Iterable[str], batch_size: int = IMPORT_BATCH_SIZE) -> int:
        """
        Insert the seeds not already present, in batches. Returns how many rows
        were added. Malformed seeds raise ValueError before anything is written.
        """
        unique = list(dict.fromkeys(str(s).strip().lower() for s in seeds))
        bad = [s for s in unique if not is_seed_value(s)]
        if bad:
            raise ValueError(f"{len(bad)} malformed seed(s), first: {bad[0]!r}")

        added = 0
        session = self.SessionFactory()
        try:
            for i in range(0, len(unique), batch_size):
                batch = unique[i:i + batch_size]
                existing = set(
                    session.execute(select(DemoSeed.seed).where(DemoSeed.seed.in_(batch))).scalars()
                )
                fresh = [s for s in batch if s not in existing]
                session.add_all(DemoSeed(seed=s, used=False) for s in fresh)
                session.commit()
                added += len(fresh)
                logger.info("load: imported %d/%d", min(i + batch_size, len(unique)), len(unique))
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceFailure(f"load failed after {added} seeds: {e}") from e
        finally:
            session.close()

        return added

    def initialize(self, count: int = DEFAULT_POOL_SIZE) -> int:
        """
        Fill an empty pool with `count` fresh seeds. A pool that already has
        seeds is left alone: the universe is fixed once it exists.
        """
        existing = self.stats().total
        if existing:
            logger.info("initialize: pool already holds %d seeds, nothing to do", existing)
            return 0
        return self.load(generate_seeds(count))
