# forge/style_store.py

import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from forge.entities import DemoLogoStyle
from forge.errors import PersistenceFailure
from forge.style_variants import (
    DEFAULT_POLICY,
    DIMENSIONS,
    StyleFingerprint,
    StylePolicy,
    make_valid_fingerprint,
    validate,
)

logger = logging.getLogger("forge_backend")


def _row_to_fingerprint(row: DemoLogoStyle) -> StyleFingerprint:
    try:
        return StyleFingerprint.from_dict({name: getattr(row, name) for name in DIMENSIONS})
    except ValueError as e:
        # a stored value outside its domain is a corrupt row, not a caller error
        raise PersistenceFailure(f"corrupt style row for seed {row.seed[:12]}...: {e}") from e


class FingerprintStore:
    """
    seed -> fingerprint, created lazily and never changed afterwards.

    The unique constraint on DemoLogoStyle.seed decides concurrent first-time
    creation: the loser's INSERT fails, it rolls back and returns the row the
    winner stored.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        policy: StylePolicy = DEFAULT_POLICY,
        rng=None,
    ) -> None:
        self.SessionFactory = session_factory
        self.policy = policy
        self.rng = rng

    def _load(self, session: Session, seed: str) -> Optional[StyleFingerprint]:
        row = session.execute(
            select(DemoLogoStyle).where(DemoLogoStyle.seed == seed)
        ).scalar_one_or_none()
        return _row_to_fingerprint(row) if row is not None else None

    def get(self, seed: str) -> Optional[StyleFingerprint]:
        """Read-only lookup. Never creates anything."""
        session = self.SessionFactory()
        try:
            return self._load(session, str(seed))
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"style lookup failed: {e}") from e
        finally:
            session.close()

    def get_or_create(self, seed: str) -> StyleFingerprint:
        seed = str(seed)
        session = self.SessionFactory()
        try:
            existing = self._load(session, seed)
            if existing is not None:
                return existing

            fingerprint = make_valid_fingerprint(self.policy, self.rng)
            if not validate(fingerprint, self.policy):
                # make_valid_fingerprint repairs; reaching this is a policy bug
                raise ValueError(f"Refusing to store invalid fingerprint for seed {seed[:12]}...")

            session.add(DemoLogoStyle(seed=seed, **fingerprint.to_dict()))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                winner = self._load(session, seed)
                if winner is None:
                    raise
                logger.info("get_or_create: lost creation race for seed %s..., using stored style", seed[:12])
                return winner

            logger.info("get_or_create: stored new style for seed %s...: %s", seed[:12], fingerprint.to_dict())
            return fingerprint

        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceFailure(f"style get_or_create failed: {e}") from e
        finally:
            session.close()

    # -----------------------
    # Reporting
    # -----------------------

    def variant_stats(self, top: int = 10) -> Dict[str, object]:
        """
        Total stored styles and the most common values per dimension.
        """
        session = self.SessionFactory()
        try:
            total = session.execute(select(func.count()).select_from(DemoLogoStyle)).scalar_one()
            report: Dict[str, object] = {"total": int(total)}
            for name in DIMENSIONS:
                column = getattr(DemoLogoStyle, name)
                count = func.count().label("count")
                rows = session.execute(
                    select(column, count)
                    .group_by(column)
                    .order_by(count.desc(), column.asc())
                    .limit(top)
                ).all()
                report[name] = [{"value": value, "count": int(n)} for value, n in rows]
            return report
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"style stats failed: {e}") from e
        finally:
            session.close()

    def find_by_variant(self, dimension: str, value: str, limit: int = 100) -> List[str]:
        """
        Seeds whose style uses `value` for `dimension`, newest first.
        """
        if dimension not in DIMENSIONS:
            raise ValueError(f"Unknown style dimension: {dimension}")
        DIMENSIONS[dimension](value)  # ValueError on a value outside the domain

        session = self.SessionFactory()
        try:
            column = getattr(DemoLogoStyle, dimension)
            rows = session.execute(
                select(DemoLogoStyle.seed)
                .where(column == value)
                .order_by(DemoLogoStyle.created_at.desc(), DemoLogoStyle.id.desc())
                .limit(limit)
            ).scalars()
            return list(rows)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"style search failed: {e}") from e
        finally:
            session.close()
