# forge/allocation_service.py

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from forge.db_helpers import create_session_factory
from forge.filter_stack import FilterStack, compose
from forge.forge_status import ForgeStatus, ForgeStatusCache
from forge.seed_pool import PoolStats, SeedPool, SeedToken
from forge.style_store import FingerprintStore
from forge.style_variants import DEFAULT_POLICY, StyleFingerprint, StylePolicy

logger = logging.getLogger("forge_backend")

FORGE_STATUS_TTL_SECONDS = float(os.getenv("FORGE_STATUS_TTL_SECONDS", "60"))


@dataclass(frozen=True)
class Allocation:
    token: SeedToken
    fingerprint: StyleFingerprint


class AllocationService:
    """
    Façade over the seed pool, the style store and the filter pipeline.

    None results are expected outcomes: an exhausted pool for
    preview_seed / allocate_seed, a not-yet-styled seed for the style reads.
    """

    def __init__(
        self,
        pool: SeedPool,
        styles: FingerprintStore,
        status_ttl_seconds: float = FORGE_STATUS_TTL_SECONDS,
    ) -> None:
        self.pool = pool
        self.styles = styles
        self.status_cache = ForgeStatusCache(pool.stats, ttl_seconds=status_ttl_seconds)

    @classmethod
    def from_session_factory(
        cls,
        session_factory: Callable[[], Session],
        policy: StylePolicy = DEFAULT_POLICY,
        rng=None,
        status_ttl_seconds: float = FORGE_STATUS_TTL_SECONDS,
    ) -> "AllocationService":
        return cls(
            SeedPool(session_factory),
            FingerprintStore(session_factory, policy=policy, rng=rng),
            status_ttl_seconds=status_ttl_seconds,
        )

    @classmethod
    def from_env(cls) -> "AllocationService":
        return cls.from_session_factory(create_session_factory())

    def preview_seed(self) -> Optional[str]:
        return self.pool.preview_next()

    def allocate_seed(self, caller_id: Optional[str] = None) -> Optional[Allocation]:
        """
        The only path that both consumes a seed and guarantees it has a style.

        The seed is consumed once its transaction commits, even if styling
        it fails afterwards. That seed is never handed out again, so only
        get_or_create_style (the admin path) can give it a style later.
        """
        token = self.pool.consume(caller_id)
        if token is None:
            return None
        self.status_cache.invalidate()

        fingerprint = self.styles.get_or_create(token.value)
        logger.info("allocate_seed: seed %s... -> %s", token.value[:12], fingerprint.to_dict())
        return Allocation(token=token, fingerprint=fingerprint)

    def get_style(self, seed: str) -> Optional[StyleFingerprint]:
        return self.styles.get(seed)

    def get_or_create_style(self, seed: str) -> StyleFingerprint:
        return self.styles.get_or_create(seed)

    def get_renderable_style(self, seed: str) -> Optional[FilterStack]:
        fingerprint = self.styles.get(seed)
        if fingerprint is None:
            return None
        return compose(fingerprint)

    def pool_stats(self) -> PoolStats:
        return self.pool.stats()

    def forge_status(self) -> ForgeStatus:
        return self.status_cache.get()
